"""
Tests for ProjectionService.

Covers:
- Purchase -> bracket -> active template -> per-cut kilograms
- Explicit bracket versus average-weight resolution
- Missing configuration surfaces as a typed error
"""

from decimal import Decimal

import pytest

from yield_kernel.exceptions import (
    CategoryInactiveError,
    MissingUnitCountError,
    RangeNotFoundError,
    TemplateNotFoundError,
)
from yield_services.projection_service import ProjectionService


@pytest.fixture
def projection_service(session, settings) -> ProjectionService:
    return ProjectionService(session, settings)


class TestEstimateStock:

    def test_four_light_heifers(self, projection_service, vaquillona):
        estimate = projection_service.estimate_stock(
            category_id=vaquillona.id,
            total_weight=Decimal("400"),
            unit_count=4,
        )

        assert estimate.range_label == "80-105 kg"
        assert estimate.avg_weight == Decimal("100")
        assert estimate.template_name == "Vaquillona Liviana - Desposte Estándar"
        by_name = {c.cut_name: c.estimated_kg for c in estimate.projection.per_cut}
        assert by_name["Lomo"] == Decimal("11.20")
        assert by_name["Asado"] == Decimal("58.00")
        assert by_name["Hueso"] == Decimal("72.00")
        assert len(by_name) == 15
        assert estimate.total_projected == Decimal("400.00")
        assert estimate.variance == Decimal("0.00")
        assert estimate.variance_exceeds_tolerance is False

    def test_cuts_in_display_order(self, projection_service, vaquillona):
        estimate = projection_service.estimate_stock(vaquillona.id, Decimal("100"), 1)
        names = [c.cut_name for c in estimate.projection.per_cut]
        assert names[:3] == ["Lomo", "Bife Ancho", "Bife Angosto"]
        assert names[-1] == "Grasa y Recortes"

    def test_explicit_range_needs_no_unit_count(self, projection_service, vaquillona, light_range):
        estimate = projection_service.estimate_stock(
            category_id=vaquillona.id,
            total_weight=Decimal("1000"),
            range_id=light_range.id,
        )
        assert estimate.avg_weight is None
        assert estimate.range_id == light_range.id
        assert estimate.total_projected == Decimal("1000.00")

    @pytest.mark.parametrize("unit_count", [None, 0, -2])
    def test_unit_count_required_for_auto_range(self, projection_service, vaquillona, unit_count):
        with pytest.raises(MissingUnitCountError) as exc_info:
            projection_service.estimate_stock(vaquillona.id, Decimal("400"), unit_count)
        assert exc_info.value.code == "MISSING_UNIT_COUNT"

    def test_average_in_gap(self, projection_service, vaquillona):
        with pytest.raises(RangeNotFoundError):
            projection_service.estimate_stock(vaquillona.id, Decimal("211"), 2)

    def test_no_template_for_pairing(self, projection_service, novillo):
        with pytest.raises(TemplateNotFoundError) as exc_info:
            projection_service.estimate_stock(novillo.id, Decimal("400"), 4)
        assert exc_info.value.code == "TEMPLATE_NOT_FOUND"

    def test_inactive_category(self, projection_service, catalog, vaquillona):
        catalog.set_category_active(vaquillona.id, False)
        with pytest.raises(CategoryInactiveError):
            projection_service.estimate_stock(vaquillona.id, Decimal("400"), 4)

    def test_projection_logged(self, projection_service, vaquillona, captured_logs):
        projection_service.estimate_stock(vaquillona.id, Decimal("400"), 4)
        records = [r for r in captured_logs() if r["message"] == "stock_estimated"]
        assert records
        assert records[0]["total_projected"] == "400.00"
