"""
Typed Exception Hierarchy for the Yield Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the HTTP adapters, the CLI, tests) must distinguish "the user typed
a bad weight" from "nobody configured a template for heifers of this size"
from "the ledger is corrupt".  Matching on message strings is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.estimate_stock(category_id, Decimal("220"), unit_count=2)
    except RangeNotFoundError as e:
        return {"error": e.code, "avg_weight": str(e.avg_weight)}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    YieldKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidInputError
    |   +-- MissingUnitCountError
    |
    +-- ConfigurationError
    |   +-- RangeNotFoundError
    |   +-- TemplateNotFoundError
    |   +-- NoTemplateItemsError
    |   +-- WeightRangeOverlapError
    |   +-- TemplateSumInvalidError
    |
    +-- CatalogError
    |   +-- CategoryNotFoundError
    |   +-- CategoryInactiveError
    |   +-- CutNotFoundError
    |   +-- CutRoleMismatchError
    |
    +-- LedgerError
    |   +-- BatchNotFoundError
    |   +-- DailyCloseNotFoundError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ConsistencyError
        +-- YieldSumInvariantError
        +-- LedgerConsistencyError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_INPUT               | Non-positive weight, bad identifier
                | MISSING_UNIT_COUNT          | Range auto-detect without unit count
----------------|-----------------------------|-----------------------------------------
Configuration   | RANGE_NOT_FOUND             | No weight range contains the weight
                | TEMPLATE_NOT_FOUND          | No (active) template for category+range
                | NO_TEMPLATE_ITEMS           | Active template has zero items
                | WEIGHT_RANGE_OVERLAP        | New range overlaps a configured one
                | TEMPLATE_SUM_INVALID        | Active template items do not sum to 100
----------------|-----------------------------|-----------------------------------------
Catalog         | CATEGORY_NOT_FOUND          | Animal category ID doesn't exist
                | CATEGORY_INACTIVE           | Category was soft-deactivated
                | CUT_NOT_FOUND               | Cut ID doesn't exist
                | CUT_ROLE_MISMATCH           | cut_role disagrees with is_sellable
----------------|-----------------------------|-----------------------------------------
Ledger          | BATCH_NOT_FOUND             | General stock batch doesn't exist
                | DAILY_CLOSE_NOT_FOUND       | Daily close ID doesn't exist
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Template replaced by another writer
----------------|-----------------------------|-----------------------------------------
Consistency     | YIELD_SUM_INVARIANT         | Normalized template still off 100
                | LEDGER_CONSISTENCY          | Deduction references missing batch,
                |                             | or reversal drives sold_kg negative

Configuration and validation errors are shown to the user as blocking
messages.  Consistency errors indicate a bug: they are logged at ERROR and the
enclosing transaction is rolled back.
"""

from decimal import Decimal


class YieldKernelError(Exception):
    """
    Base exception for all yield kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "YIELD_KERNEL_ERROR"


# Validation exceptions


class ValidationError(YieldKernelError):
    """Base exception for rejected input (raised before any state mutation)."""

    code: str = "VALIDATION_ERROR"


class InvalidInputError(ValidationError):
    """An input field has an invalid value."""

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class MissingUnitCountError(ValidationError):
    """Range auto-detection needs a positive unit count."""

    code: str = "MISSING_UNIT_COUNT"

    def __init__(self):
        super().__init__(
            "unit_count is required to auto-detect the weight range. "
            "Provide range_id directly or a unit_count > 0."
        )


# Configuration exceptions


class ConfigurationError(YieldKernelError):
    """Base exception for missing or broken shop configuration."""

    code: str = "CONFIGURATION_ERROR"


class RangeNotFoundError(ConfigurationError):
    """No configured weight range contains the given weight."""

    code: str = "RANGE_NOT_FOUND"

    def __init__(self, avg_weight: Decimal):
        self.avg_weight = avg_weight
        super().__init__(
            f"No weight range found for average weight {avg_weight:.2f} kg"
        )


class TemplateNotFoundError(ConfigurationError):
    """No yield template (or no active one) for category + range."""

    code: str = "TEMPLATE_NOT_FOUND"

    def __init__(self, category_id: str, range_id: str, active_only: bool = True):
        self.category_id = category_id
        self.range_id = range_id
        self.active_only = active_only
        qualifier = "active " if active_only else ""
        super().__init__(
            f"No {qualifier}yield template for category {category_id} "
            f"and range {range_id}"
        )


class NoTemplateItemsError(ConfigurationError):
    """An active template has no cuts defined."""

    code: str = "NO_TEMPLATE_ITEMS"

    def __init__(self, template_id: str, template_name: str | None = None):
        self.template_id = template_id
        self.template_name = template_name
        super().__init__(
            f'Template "{template_name or template_id}" has no cuts defined'
        )


class WeightRangeOverlapError(ConfigurationError):
    """A weight range overlaps an already configured one."""

    code: str = "WEIGHT_RANGE_OVERLAP"

    def __init__(self, label: str, other_label: str):
        self.label = label
        self.other_label = other_label
        super().__init__(
            f"Weight range '{label}' overlaps configured range '{other_label}'"
        )


class TemplateSumInvalidError(ConfigurationError):
    """Active template percentages do not add up to 100."""

    code: str = "TEMPLATE_SUM_INVALID"

    def __init__(self, template_id: str, total: Decimal):
        self.template_id = template_id
        self.total = total
        super().__init__(
            f"Template {template_id} percentages sum to {total}, expected 100.00"
        )


# Catalog exceptions


class CatalogError(YieldKernelError):
    """Base exception for catalog (category / cut) errors."""

    code: str = "CATALOG_ERROR"


class CategoryNotFoundError(CatalogError):
    """Animal category with given ID was not found."""

    code: str = "CATEGORY_NOT_FOUND"

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Animal category not found: {category_id}")


class CategoryInactiveError(CatalogError):
    """Animal category was soft-deactivated."""

    code: str = "CATEGORY_INACTIVE"

    def __init__(self, category_id: str, name: str):
        self.category_id = category_id
        self.name = name
        super().__init__(f"Animal category '{name}' is inactive")


class CutNotFoundError(CatalogError):
    """Cut with given ID was not found."""

    code: str = "CUT_NOT_FOUND"

    def __init__(self, cut_id: str):
        self.cut_id = cut_id
        super().__init__(f"Cut not found: {cut_id}")


class CutRoleMismatchError(CatalogError):
    """cut_role and is_sellable disagree."""

    code: str = "CUT_ROLE_MISMATCH"

    def __init__(self, name: str, cut_role: str, is_sellable: bool):
        self.name = name
        self.cut_role = cut_role
        self.is_sellable = is_sellable
        super().__init__(
            f"Cut '{name}' has role '{cut_role}' but is_sellable={is_sellable}"
        )


# Ledger exceptions


class LedgerError(YieldKernelError):
    """Base exception for general stock ledger errors."""

    code: str = "LEDGER_ERROR"


class BatchNotFoundError(LedgerError):
    """General stock batch with given ID was not found."""

    code: str = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"General stock batch not found: {batch_id}")


class DailyCloseNotFoundError(LedgerError):
    """Daily close with given ID was not found."""

    code: str = "DAILY_CLOSE_NOT_FOUND"

    def __init__(self, close_id: str):
        self.close_id = close_id
        super().__init__(f"Daily close not found: {close_id}")


# Concurrency exceptions


class ConcurrencyError(YieldKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, expected_version: int | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Consistency exceptions (bugs, never user errors)


class ConsistencyError(YieldKernelError):
    """Base exception for broken internal invariants."""

    code: str = "CONSISTENCY_ERROR"


class YieldSumInvariantError(ConsistencyError):
    """Template percentages still off 100 after normalization."""

    code: str = "YIELD_SUM_INVARIANT"

    def __init__(self, template_id: str, total: Decimal):
        self.template_id = template_id
        self.total = total
        super().__init__(
            f"Template {template_id} sums to {total} after normalization"
        )


class LedgerConsistencyError(ConsistencyError):
    """Deduction rows and batch balances disagree."""

    code: str = "LEDGER_CONSISTENCY"

    def __init__(self, close_id: str, batch_id: str, reason: str):
        self.close_id = close_id
        self.batch_id = batch_id
        self.reason = reason
        super().__init__(
            f"Ledger inconsistency for close {close_id}, batch {batch_id}: {reason}"
        )
