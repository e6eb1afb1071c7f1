"""
yield_services.catalog_service -- Categories, weight brackets and cuts.

Responsibility:
    Create and look up the reference data the yield engines read, and
    resolve a weight to its bracket against the stored brackets.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Uses WeightRangeResolver for lookup and for overlap/gap validation
    before a bracket is inserted.

Invariants enforced:
    - Overlapping brackets are rejected before insert; gaps are logged.
    - cut_role and is_sellable agree (sellable <-> True).
    - Inactive categories are rejected wherever ``require_active`` is set.

Failure modes:
    - CategoryNotFoundError / CategoryInactiveError / CutNotFoundError.
    - WeightRangeOverlapError, CutRoleMismatchError, InvalidInputError.
    - RangeNotFoundError from ``resolve_range``.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select

from yield_engines.range_resolver import RangeSpec, WeightRangeResolver
from yield_kernel.exceptions import (
    CategoryInactiveError,
    CategoryNotFoundError,
    CutNotFoundError,
    CutRoleMismatchError,
    InvalidInputError,
)
from yield_kernel.logging_config import get_logger
from yield_kernel.models.catalog import (
    AnimalCategory,
    Cut,
    CutCategory,
    CutRole,
    WeightRange,
)
from yield_kernel.services.base import BaseService
from yield_services._inputs import as_uuid, positive_decimal

logger = get_logger("services.catalog")


def _range_spec(row: WeightRange) -> RangeSpec:
    return RangeSpec(
        range_id=row.id,
        label=row.label,
        min_weight=row.min_weight,
        max_weight=row.max_weight,
    )


class CatalogService(BaseService[AnimalCategory]):
    """Reference data access for categories, brackets and cuts."""

    def __init__(self, session, resolver: WeightRangeResolver | None = None):
        super().__init__(session)
        self._resolver = resolver or WeightRangeResolver()

    # -- categories ---------------------------------------------------------

    def create_category(self, name: str, description: str | None = None) -> AnimalCategory:
        if not name or not name.strip():
            raise InvalidInputError("name", "is required")
        category = AnimalCategory(name=name.strip(), description=description, is_active=True)
        self.session.add(category)
        self.session.flush()
        logger.info(
            "animal_category_created",
            extra={"category_id": str(category.id), "category_name": category.name},
        )
        return category

    def get_category(self, category_id: Any, require_active: bool = False) -> AnimalCategory:
        category = self.session.get(AnimalCategory, as_uuid(category_id, "category_id"))
        if category is None:
            raise CategoryNotFoundError(str(category_id))
        if require_active and not category.is_active:
            raise CategoryInactiveError(str(category.id), category.name)
        return category

    def get_category_by_name(self, name: str) -> AnimalCategory | None:
        return self.session.execute(
            select(AnimalCategory).where(AnimalCategory.name == name)
        ).scalar_one_or_none()

    def set_category_active(self, category_id: Any, is_active: bool) -> AnimalCategory:
        """Soft (de)activation; categories are never deleted."""
        category = self.get_category(category_id)
        category.is_active = is_active
        self.session.flush()
        logger.info(
            "animal_category_activation_changed",
            extra={"category_id": str(category.id), "is_active": is_active},
        )
        return category

    def list_categories(self, active_only: bool = False) -> list[AnimalCategory]:
        stmt = select(AnimalCategory).order_by(AnimalCategory.name)
        if active_only:
            stmt = stmt.where(AnimalCategory.is_active.is_(True))
        return list(self.session.execute(stmt).scalars())

    # -- weight ranges ------------------------------------------------------

    def list_weight_ranges(self) -> list[WeightRange]:
        return list(
            self.session.execute(
                select(WeightRange).order_by(WeightRange.min_weight, WeightRange.max_weight)
            ).scalars()
        )

    def get_weight_range(self, range_id: Any) -> WeightRange:
        row = self.session.get(WeightRange, as_uuid(range_id, "range_id"))
        if row is None:
            raise InvalidInputError("range_id", f"no weight range {range_id}")
        return row

    def create_weight_range(self, min_weight: Any, max_weight: Any, label: str) -> WeightRange:
        """
        Insert a bracket after checking it against every stored bracket.

        Raises:
            WeightRangeOverlapError: the new bracket shares a weight with a
                stored one.
        """
        if not label:
            raise InvalidInputError("label", "is required")
        new_spec = RangeSpec(
            range_id=None,
            label=label,
            min_weight=positive_decimal(min_weight, "min_weight"),
            max_weight=positive_decimal(max_weight, "max_weight"),
        )
        existing = [_range_spec(r) for r in self.list_weight_ranges()]
        self._resolver.validate(ranges=[*existing, new_spec])

        row = WeightRange(
            min_weight=new_spec.min_weight,
            max_weight=new_spec.max_weight,
            label=label,
        )
        self.session.add(row)
        self.session.flush()
        logger.info(
            "weight_range_created",
            extra={
                "range_id": str(row.id),
                "label": label,
                "min_weight": str(row.min_weight),
                "max_weight": str(row.max_weight),
            },
        )
        return row

    def resolve_range(self, avg_weight: Decimal) -> WeightRange:
        """
        Bracket containing ``avg_weight`` (inclusive both ends).

        Raises:
            InvalidInputError: avg_weight <= 0.
            RangeNotFoundError: no bracket matches; there is no fallback.
        """
        rows = self.list_weight_ranges()
        match = self._resolver.resolve(
            ranges=[_range_spec(r) for r in rows],
            avg_weight=avg_weight,
        )
        return next(r for r in rows if r.id == match.range_id)

    # -- cuts ---------------------------------------------------------------

    def create_cut(
        self,
        name: str,
        cut_category: CutCategory | str,
        cut_role: CutRole | str = CutRole.SELLABLE,
        is_sellable: bool | None = None,
        display_order: int = 0,
        description: str | None = None,
    ) -> Cut:
        """
        Create a cut.  ``is_sellable`` defaults from the role.

        Raises:
            CutRoleMismatchError: role and is_sellable disagree.
        """
        if not name or not name.strip():
            raise InvalidInputError("name", "is required")
        try:
            role = CutRole(cut_role)
            category = CutCategory(cut_category)
        except ValueError as e:
            raise InvalidInputError("cut", str(e)) from e

        if is_sellable is None:
            is_sellable = role == CutRole.SELLABLE
        if (role == CutRole.SELLABLE) != is_sellable:
            raise CutRoleMismatchError(name, role.value, is_sellable)

        cut = Cut(
            name=name.strip(),
            description=description,
            cut_category=category.value,
            cut_role=role.value,
            is_sellable=is_sellable,
            display_order=display_order,
        )
        self.session.add(cut)
        self.session.flush()
        logger.info(
            "cut_created",
            extra={"cut_id": str(cut.id), "cut_name": cut.name, "cut_role": role.value},
        )
        return cut

    def get_cut(self, cut_id: Any) -> Cut:
        cut = self.session.get(Cut, as_uuid(cut_id, "cut_id"))
        if cut is None:
            raise CutNotFoundError(str(cut_id))
        return cut

    def get_cuts(self, cut_ids: Iterable[UUID]) -> dict[UUID, Cut]:
        """Load cuts by id; every id must exist."""
        wanted = list(cut_ids)
        if not wanted:
            return {}
        rows = self.session.execute(select(Cut).where(Cut.id.in_(wanted))).scalars()
        found = {cut.id: cut for cut in rows}
        for cut_id in wanted:
            if cut_id not in found:
                raise CutNotFoundError(str(cut_id))
        return found

    def list_cuts(self) -> list[Cut]:
        return list(
            self.session.execute(select(Cut).order_by(Cut.display_order, Cut.name)).scalars()
        )
