"""
Settings Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into a frozen
``LedgerSettings``.  Callers use ``ledger_config.get_active_settings()``;
this module is its implementation.

File format
-----------
::

    ledger:
      company_code: ACME
      investigation_threshold: "10"
      amount_decimal_places: 2
      allow_negative_stock: false
      default_currency: INR

The top-level ``ledger`` key is optional.  Unknown keys are rejected.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key or invalid value  -> ``ValueError``.
"""

from __future__ import annotations

from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import LedgerSettings


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file gives an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def _parse_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name}: not a number: {value!r}") from exc


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"{name}: expected true/false, got {value!r}")


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """
    Parse a settings mapping into ``LedgerSettings``.

    Raises:
        ValueError: on unknown keys or invalid values.
    """
    section = data.get("ledger", data)
    if not isinstance(section, dict):
        raise ValueError("'ledger' section must be a mapping")

    known = {f.name for f in fields(LedgerSettings)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ValueError(f"Unknown ledger settings: {', '.join(unknown)}")

    kwargs: dict[str, Any] = {}
    if "company_code" in section:
        kwargs["company_code"] = str(section["company_code"])
    if "investigation_threshold" in section:
        kwargs["investigation_threshold"] = _parse_decimal(
            "investigation_threshold", section["investigation_threshold"]
        )
    if "amount_decimal_places" in section:
        places = section["amount_decimal_places"]
        if isinstance(places, bool) or not isinstance(places, int):
            raise ValueError(f"amount_decimal_places: expected an integer, got {places!r}")
        kwargs["amount_decimal_places"] = places
    if "allow_negative_stock" in section:
        kwargs["allow_negative_stock"] = _parse_bool(
            "allow_negative_stock", section["allow_negative_stock"]
        )
    if "default_currency" in section:
        kwargs["default_currency"] = str(section["default_currency"]).upper()

    return LedgerSettings(**kwargs)


def load_settings(path: Path) -> LedgerSettings:
    return parse_settings(load_yaml_file(path))
