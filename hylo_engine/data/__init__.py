"""Versioned YAML documents shipped with the engine."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml

from ..errors import ConfigError, ErrorCode


SUPPORTED_VERSION = 1


def data_path(name: str) -> Path:
    # hylo_engine/data/__init__.py -> hylo_engine/data/<name>
    return Path(__file__).resolve().parent / name


@lru_cache(maxsize=None)
def load_document(name: str) -> Mapping[str, Any]:
    path = data_path(name)
    obj = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(obj, Mapping):
        raise ConfigError(ErrorCode.CONFIG_VALIDATION, f"{name} must be a mapping")
    version = obj.get("version")
    if version != SUPPORTED_VERSION:
        raise ConfigError(ErrorCode.CONFIG_VALIDATION, f"{name}: unsupported version {version!r}")
    return obj
