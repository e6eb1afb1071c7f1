"""
Configuration Validator (``yield_config.validator``).

Responsibility
--------------
Checks a ``ShopConfiguration`` before it is used or seeded.

Invariants enforced
-------------------
* Category, cut and range names are unique.
* Weight ranges are well-formed and do not overlap; gaps are warnings.
* cut_role agrees with is_sellable (sellable <-> True).
* cut_category and cut_role are known values.
* Templates reference declared categories, ranges and cuts, list each cut
  once, have no negative percentage, and active ones sum to 100 within
  the configured tolerance.
* Learning-rate floor is positive and not above the initial rate.

Failure modes
-------------
* ``errors``  -> the configuration MUST NOT be used.
* ``warnings`` -> usable, should be reviewed.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal

from yield_config.schema import ShopConfiguration
from yield_engines.range_resolver import RangeSpec, validate_ranges
from yield_kernel.exceptions import InvalidInputError, WeightRangeOverlapError
from yield_kernel.models.catalog import CutCategory, CutRole
from yield_kernel.models.yield_template import TemplateStatus

_CUT_CATEGORIES = {c.value for c in CutCategory}
_CUT_ROLES = {r.value for r in CutRole}
_TEMPLATE_STATUSES = {s.value for s in TemplateStatus}


@dataclass
class ConfigValidationResult:
    """``is_valid`` is True only when ``errors`` is empty."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def _duplicates(names: list[str]) -> list[str]:
    return sorted(name for name, n in Counter(names).items() if n > 1)


def validate_configuration(config: ShopConfiguration) -> ConfigValidationResult:
    """Validate a configuration set; never raises for content problems."""
    result = ConfigValidationResult()

    _validate_settings(config, result)

    for kind, names in (
        ("category", [c.name for c in config.categories]),
        ("cut", [c.name for c in config.cuts]),
        ("weight range", [r.label for r in config.weight_ranges]),
    ):
        for dup in _duplicates(names):
            result.add_error(f"Duplicate {kind} name: {dup}")

    _validate_ranges(config, result)
    _validate_cuts(config, result)
    _validate_templates(config, result)

    return result


def _validate_settings(config: ShopConfiguration, result: ConfigValidationResult) -> None:
    s = config.settings
    if s.learning_rate_floor <= 0:
        result.add_error("learning_rate_floor must be positive")
    if s.learning_rate_floor > s.learning_rate_initial:
        result.add_error("learning_rate_floor must not exceed learning_rate_initial")
    if s.learning_rate_initial > 1:
        result.add_error("learning_rate_initial must not exceed 1")
    if not 0 <= s.default_shrink_percent < 100:
        result.add_error("default_shrink_percent must be in [0, 100)")


def _validate_ranges(config: ShopConfiguration, result: ConfigValidationResult) -> None:
    specs = [
        RangeSpec(
            range_id=r.label,
            label=r.label,
            min_weight=r.min_weight,
            max_weight=r.max_weight,
        )
        for r in config.weight_ranges
    ]
    try:
        validation = validate_ranges(specs)
    except (InvalidInputError, WeightRangeOverlapError) as e:
        result.add_error(str(e))
        return
    for gap in validation.gaps:
        result.add_warning(
            f"Weights between {gap.gap_from} and {gap.gap_to} kg "
            f"('{gap.lower_label}' / '{gap.upper_label}') match no range"
        )


def _validate_cuts(config: ShopConfiguration, result: ConfigValidationResult) -> None:
    for cut in config.cuts:
        if cut.cut_category not in _CUT_CATEGORIES:
            result.add_error(f"Cut '{cut.name}' has unknown category '{cut.cut_category}'")
        if cut.cut_role not in _CUT_ROLES:
            result.add_error(f"Cut '{cut.name}' has unknown role '{cut.cut_role}'")
        elif (cut.cut_role == CutRole.SELLABLE) != cut.is_sellable:
            result.add_error(
                f"Cut '{cut.name}' has role '{cut.cut_role}' "
                f"but is_sellable={cut.is_sellable}"
            )
        if cut.min_stock_alert < 0:
            result.add_error(f"Cut '{cut.name}' has a negative min_stock_alert")


def _validate_templates(config: ShopConfiguration, result: ConfigValidationResult) -> None:
    categories = {c.name for c in config.categories}
    ranges = {r.label for r in config.weight_ranges}
    cuts = {c.name for c in config.cuts}
    tolerance = config.settings.sum_tolerance
    seen: set[tuple[str, str]] = set()

    for tpl in config.templates:
        key = (tpl.category, tpl.weight_range)
        label = tpl.name or f"{tpl.category} {tpl.weight_range}"
        if key in seen:
            result.add_error(f"Duplicate template for {key}")
        seen.add(key)

        if tpl.category not in categories:
            result.add_error(f"Template '{label}' references unknown category '{tpl.category}'")
        if tpl.weight_range not in ranges:
            result.add_error(
                f"Template '{label}' references unknown weight range '{tpl.weight_range}'"
            )
        if tpl.status not in _TEMPLATE_STATUSES:
            result.add_error(f"Template '{label}' has unknown status '{tpl.status}'")
        if not tpl.items:
            result.add_error(f"Template '{label}' has no items")

        for dup in _duplicates([i.cut for i in tpl.items]):
            result.add_error(f"Template '{label}' lists cut '{dup}' more than once")
        for item in tpl.items:
            if item.cut not in cuts:
                result.add_error(f"Template '{label}' references unknown cut '{item.cut}'")
            if item.percentage < 0:
                result.add_error(f"Template '{label}' has a negative percentage for '{item.cut}'")

        if tpl.status == TemplateStatus.ACTIVE and tpl.items:
            total = tpl.total_percentage
            if abs(total - Decimal("100")) > tolerance:
                result.add_error(f"Template '{label}' sums to {total}, expected 100.00")
