"""Lowercase runtime alias for the Campaign_analytics package."""

from __future__ import annotations

import importlib
import sys

_module = importlib.import_module("Campaign_analytics")
sys.modules[__name__] = _module
