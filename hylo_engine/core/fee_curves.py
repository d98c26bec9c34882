"""Shipped stablecoin fee curves (21-point mint, 20-point redeem, N5)."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Mapping

from ..data import load_document
from ..errors import ConfigError, ErrorCode
from .interp import FixInterp


MINT_CURVE_POINTS = 21
REDEEM_CURVE_POINTS = 20


def _curve_values(doc: Mapping[str, Any], name: str, expected: int) -> tuple[tuple[int, int], ...]:
    section = doc.get(name)
    if not isinstance(section, Mapping):
        raise ConfigError(ErrorCode.CONFIG_VALIDATION, f"{name} must be a mapping")
    raw = section.get("points")
    if not isinstance(raw, list) or len(raw) != expected:
        raise ConfigError(ErrorCode.CONFIG_VALIDATION, f"{name} must have {expected} points")
    out = []
    for item in raw:
        if (
            not isinstance(item, list)
            or len(item) != 2
            or not all(isinstance(v, int) and not isinstance(v, bool) for v in item)
        ):
            raise ConfigError(ErrorCode.CONFIG_VALIDATION, f"{name}: malformed point {item!r}")
        out.append((item[0], item[1]))
    return tuple(out)


def _precision(doc: Mapping[str, Any]) -> int:
    exp = doc.get("precision")
    if not isinstance(exp, int) or isinstance(exp, bool):
        raise ConfigError(ErrorCode.CONFIG_VALIDATION, "precision must be an int")
    return exp


def mint_curve_from_document(doc: Mapping[str, Any]) -> FixInterp:
    return FixInterp.from_values(_curve_values(doc, "mint_fee", MINT_CURVE_POINTS), _precision(doc))


def redeem_curve_from_document(doc: Mapping[str, Any]) -> FixInterp:
    return FixInterp.from_values(_curve_values(doc, "redeem_fee", REDEEM_CURVE_POINTS), _precision(doc))


@lru_cache(maxsize=1)
def mint_fee_curve() -> FixInterp:
    return mint_curve_from_document(load_document("fee_curves.yaml"))


@lru_cache(maxsize=1)
def redeem_fee_curve() -> FixInterp:
    return redeem_curve_from_document(load_document("fee_curves.yaml"))
