"""
Tests for CatalogService.

Covers:
- Category lifecycle and soft deactivation
- Weight bracket creation against stored brackets, and lookup
- Cut roles and the sellable flag
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from yield_kernel.exceptions import (
    CategoryInactiveError,
    CategoryNotFoundError,
    CutNotFoundError,
    CutRoleMismatchError,
    InvalidInputError,
    RangeNotFoundError,
    WeightRangeOverlapError,
)


class TestCategories:

    def test_create_and_find_by_name(self, catalog):
        created = catalog.create_category("  Ternero  ", "Animal joven")
        assert created.name == "Ternero"
        assert created.is_active is True
        assert catalog.get_category_by_name("Ternero").id == created.id

    def test_blank_name_rejected(self, catalog):
        with pytest.raises(InvalidInputError):
            catalog.create_category("   ")

    def test_unknown_category(self, catalog):
        with pytest.raises(CategoryNotFoundError):
            catalog.get_category(uuid4())

    def test_malformed_id(self, catalog):
        with pytest.raises(InvalidInputError):
            catalog.get_category("not-a-uuid")

    def test_deactivated_category_rejected_when_active_required(self, catalog):
        category = catalog.create_category("Toro")
        catalog.set_category_active(category.id, False)

        assert catalog.get_category(category.id).is_active is False
        with pytest.raises(CategoryInactiveError) as exc_info:
            catalog.get_category(category.id, require_active=True)
        assert exc_info.value.code == "CATEGORY_INACTIVE"

    def test_list_active_only(self, catalog, seeded):
        toro = catalog.create_category("Toro")
        catalog.set_category_active(toro.id, False)

        names = [c.name for c in catalog.list_categories(active_only=True)]
        assert "Toro" not in names
        assert names == sorted(names)
        assert {"Vaquillona", "Novillo", "Overo"} <= set(names)


class TestWeightRanges:

    def test_seeded_brackets_ordered(self, catalog, seeded):
        labels = [r.label for r in catalog.list_weight_ranges()]
        assert labels == ["80-105 kg", "106-115 kg", "116-140 kg"]

    def test_resolve(self, catalog, seeded):
        assert catalog.resolve_range(Decimal("110")).label == "106-115 kg"
        assert catalog.resolve_range(Decimal("116")).label == "116-140 kg"

    def test_resolve_in_gap_has_no_fallback(self, catalog, seeded):
        with pytest.raises(RangeNotFoundError):
            catalog.resolve_range(Decimal("115.5"))

    def test_new_bracket_above_existing(self, catalog, seeded):
        row = catalog.create_weight_range(Decimal("141"), Decimal("170"), "141-170 kg")
        assert catalog.resolve_range(Decimal("150")).id == row.id

    def test_overlapping_bracket_rejected(self, catalog, seeded):
        with pytest.raises(WeightRangeOverlapError):
            catalog.create_weight_range(Decimal("100"), Decimal("108"), "100-108 kg")

    def test_unknown_range_id(self, catalog):
        with pytest.raises(InvalidInputError):
            catalog.get_weight_range(uuid4())


class TestCuts:

    def test_sellable_defaults_from_role(self, catalog):
        bone = catalog.create_cut("Osobuco Hueso", "subproducto", "bone")
        steak = catalog.create_cut("Entraña", "parrilla")

        assert bone.is_sellable is False
        assert bone.cut_role == "bone"
        assert steak.is_sellable is True
        assert steak.cut_role == "sellable"

    def test_role_and_flag_must_agree(self, catalog):
        with pytest.raises(CutRoleMismatchError):
            catalog.create_cut("Hueso vendible", "subproducto", "bone", is_sellable=True)
        with pytest.raises(CutRoleMismatchError):
            catalog.create_cut("Lomo gratis", "premium", "sellable", is_sellable=False)

    def test_unknown_category_or_role(self, catalog):
        with pytest.raises(InvalidInputError):
            catalog.create_cut("X", "exotico")
        with pytest.raises(InvalidInputError):
            catalog.create_cut("Y", "premium", "gristle")

    def test_get_cuts_requires_every_id(self, catalog, cuts_by_name):
        lomo = cuts_by_name["Lomo"]
        found = catalog.get_cuts([lomo.id])
        assert found == {lomo.id: lomo}
        with pytest.raises(CutNotFoundError):
            catalog.get_cuts([lomo.id, uuid4()])

    def test_list_in_display_order(self, catalog, seeded):
        names = [c.name for c in catalog.list_cuts()]
        assert names[0] == "Lomo"
        assert names[-2:] == ["Hueso", "Grasa y Recortes"]
