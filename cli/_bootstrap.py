"""Shared setup for CLI scripts: package import and logging."""

from __future__ import annotations

import importlib.util
import logging
import sys
from pathlib import Path
from types import ModuleType


_PACKAGE_NAME = "Campaign_analytics"
_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def ensure_package_imported() -> ModuleType:
    """Make ``Campaign_analytics`` importable when a script runs from a checkout."""

    module = sys.modules.get(_PACKAGE_NAME)
    if module is not None:
        return module

    package_dir = Path(__file__).resolve().parents[1] / _PACKAGE_NAME
    init_path = package_dir / "__init__.py"
    if not init_path.exists():
        raise ModuleNotFoundError(f"Cannot locate {_PACKAGE_NAME} package at {package_dir}")

    spec = importlib.util.spec_from_file_location(
        _PACKAGE_NAME,
        init_path,
        submodule_search_locations=[str(package_dir)],
    )
    if spec is None or spec.loader is None:
        raise ModuleNotFoundError(f"Unable to load {_PACKAGE_NAME} from {init_path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[_PACKAGE_NAME] = module
    spec.loader.exec_module(module)
    return module


def configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=_LOG_FORMAT)
    # matplotlib logs font discovery at DEBUG
    logging.getLogger("matplotlib").setLevel(logging.WARNING)
