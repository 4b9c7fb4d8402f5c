"""Content-addressed memoisation for pure pipeline stages."""

from __future__ import annotations

import hashlib
import json
import logging
from collections import OrderedDict
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Callable, Hashable, Mapping, Optional, Tuple, TypeVar

import pandas as pd

logger = logging.getLogger(__name__)

T = TypeVar("T")


def frame_fingerprint(frame: pd.DataFrame) -> str:
    """Stable digest of a frame's columns and cell values."""

    digest = hashlib.sha256()
    digest.update(json.dumps([str(column) for column in frame.columns]).encode("utf-8"))
    digest.update(json.dumps([str(dtype) for dtype in frame.dtypes]).encode("utf-8"))
    if not frame.empty:
        hashed = pd.util.hash_pandas_object(frame, index=False)
        digest.update(hashed.to_numpy().tobytes())
    return digest.hexdigest()


def _freeze(value: Any) -> Hashable:
    if is_dataclass(value) and not isinstance(value, type):
        return _freeze(asdict(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return tuple(sorted((str(key), _freeze(item)) for key, item in value.items()))
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_freeze(item) for item in value]
        return tuple(sorted(items, key=repr)) if isinstance(value, (set, frozenset)) else tuple(items)
    if isinstance(value, pd.DataFrame):
        return frame_fingerprint(value)
    return value if isinstance(value, Hashable) else repr(value)


class ResultCache:
    """Least-recently-used cache keyed by (stage name, dataset fingerprint, parameters).

    Any change to the dataset contents or to a parameter produces a new key, so
    stale entries are never served; they simply age out.
    """

    def __init__(self, maxsize: int = 32) -> None:
        self.maxsize = max(int(maxsize), 0)
        self._entries: "OrderedDict[Tuple[Hashable, ...], Any]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def key(self, name: str, frame: pd.DataFrame, params: Optional[Mapping[str, Any]] = None) -> Tuple[Hashable, ...]:
        return (name, frame_fingerprint(frame), _freeze(dict(params or {})))

    def get_or_compute(
        self,
        name: str,
        frame: pd.DataFrame,
        params: Optional[Mapping[str, Any]],
        compute: Callable[[], T],
    ) -> T:
        key = self.key(name, frame, params)
        if key in self._entries:
            self.hits += 1
            self._entries.move_to_end(key)
            return self._entries[key]

        self.misses += 1
        value = compute()
        if self.maxsize:
            self._entries[key] = value
            while len(self._entries) > self.maxsize:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted cached result for %s", evicted[0])
        return value

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0
