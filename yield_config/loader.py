"""
Configuration Loader (``yield_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen
``yield_config.schema`` types.  Build/test tooling: runtime callers go
through ``yield_config.get_active_config()``.

Invariants enforced
-------------------
* Numbers are parsed into ``Decimal`` through ``str()``; no floats survive
  parsing.
* Required keys raise ``KeyError``; there are no silent defaults for them.
* ``compute_checksum`` is a deterministic SHA-256 over the raw document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Non-numeric weights or percentages  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from yield_config.schema import (
    CategoryDef,
    CutDef,
    EngineSettings,
    ShopConfiguration,
    TemplateDef,
    TemplateItemDef,
    WeightRangeDef,
)
from yield_kernel.domain.values import to_decimal


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _dec(value: Any, field: str) -> Decimal:
    return to_decimal(value, field)


def parse_settings(data: dict[str, Any] | None) -> EngineSettings:
    """Parse EngineSettings; absent keys keep their defaults."""
    if not data:
        return EngineSettings()
    known = EngineSettings.__dataclass_fields__
    unknown = set(data) - set(known)
    if unknown:
        raise ValueError(f"Unknown engine settings: {sorted(unknown)}")
    return EngineSettings(**{k: _dec(v, k) for k, v in data.items()})


def parse_category(data: dict[str, Any]) -> CategoryDef:
    return CategoryDef(
        name=data["name"],
        description=data.get("description"),
        is_active=bool(data.get("is_active", True)),
    )


def parse_weight_range(data: dict[str, Any]) -> WeightRangeDef:
    return WeightRangeDef(
        label=data["label"],
        min_weight=_dec(data["min_weight"], "min_weight"),
        max_weight=_dec(data["max_weight"], "max_weight"),
    )


def parse_cut(data: dict[str, Any]) -> CutDef:
    return CutDef(
        name=data["name"],
        cut_category=data["cut_category"],
        cut_role=data.get("cut_role", "sellable"),
        is_sellable=bool(data.get("is_sellable", True)),
        display_order=int(data["display_order"]),
        description=data.get("description"),
        min_stock_alert=_dec(data.get("min_stock_alert", 0), "min_stock_alert"),
    )


def parse_template(data: dict[str, Any]) -> TemplateDef:
    """
    Parse a TemplateDef.  ``items`` maps cut name -> percentage and keeps
    YAML order.
    """
    items = tuple(
        TemplateItemDef(cut=cut, percentage=_dec(pct, f"items.{cut}"))
        for cut, pct in data["items"].items()
    )
    reference_weight = data.get("reference_weight")
    return TemplateDef(
        category=data["category"],
        weight_range=data["weight_range"],
        items=items,
        name=data.get("name"),
        status=data.get("status", "active"),
        reference_weight=(
            _dec(reference_weight, "reference_weight")
            if reference_weight is not None
            else None
        ),
        notes=data.get("notes"),
    )


def parse_configuration(data: dict[str, Any]) -> ShopConfiguration:
    return ShopConfiguration(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        description=data.get("description"),
        settings=parse_settings(data.get("settings")),
        categories=tuple(parse_category(c) for c in data.get("categories", [])),
        weight_ranges=tuple(
            parse_weight_range(r) for r in data.get("weight_ranges", [])
        ),
        cuts=tuple(parse_cut(c) for c in data.get("cuts", [])),
        templates=tuple(parse_template(t) for t in data.get("templates", [])),
        checksum=compute_checksum(data),
    )


def load_configuration(path: Path) -> ShopConfiguration:
    """Load and parse one configuration set file."""
    return parse_configuration(load_yaml_file(path))
