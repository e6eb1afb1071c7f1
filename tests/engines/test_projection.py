"""
Tests for the template projection engine.

Covers:
- Per-cut rounding and display order
- Variance is reported, never redistributed
- Empty templates and invalid weights
"""

from decimal import Decimal

import pytest

from yield_engines.projection import TemplateLine, TemplateSnapshot, YieldProjector
from yield_kernel.exceptions import InvalidInputError, NoTemplateItemsError


def _template(*lines: TemplateLine, template_id="tpl-1") -> TemplateSnapshot:
    return TemplateSnapshot(template_id=template_id, name="Test", lines=tuple(lines))


THREE_CUTS = _template(
    TemplateLine("hueso", "Hueso", Decimal("16"), display_order=3, cut_role="bone", is_sellable=False),
    TemplateLine("asado", "Asado", Decimal("24"), display_order=2),
    TemplateLine("lomo", "Lomo", Decimal("60"), display_order=1),
)


class TestProjection:

    def setup_method(self):
        self.projector = YieldProjector()

    def test_per_cut_kilograms(self):
        result = self.projector.project(template=THREE_CUTS, total_weight=Decimal("250.55"))

        by_cut = {c.cut_id: c.estimated_kg for c in result.per_cut}
        assert by_cut == {
            "lomo": Decimal("150.33"),
            "asado": Decimal("60.13"),
            "hueso": Decimal("40.09"),
        }
        assert result.total_projected == Decimal("250.55")
        assert result.variance == Decimal("0")

    def test_lines_come_back_in_display_order(self):
        result = self.projector.project(template=THREE_CUTS, total_weight=Decimal("100"))
        assert [c.cut_name for c in result.per_cut] == ["Lomo", "Asado", "Hueso"]

    def test_cut_attributes_are_carried(self):
        result = self.projector.project(template=THREE_CUTS, total_weight=Decimal("100"))
        hueso = result.per_cut[-1]
        assert hueso.cut_role == "bone"
        assert hueso.is_sellable is False
        assert hueso.percentage == Decimal("16")

    def test_rounding_variance_is_visible(self):
        """Three rounded thirds of 100.01 kg leave 0.01 kg unassigned."""
        template = _template(
            TemplateLine("a", "A", Decimal("33.33"), display_order=1),
            TemplateLine("b", "B", Decimal("33.33"), display_order=2),
            TemplateLine("c", "C", Decimal("33.34"), display_order=3),
        )
        result = self.projector.project(template=template, total_weight=Decimal("100.01"))

        assert [c.estimated_kg for c in result.per_cut] == [
            Decimal("33.33"),
            Decimal("33.33"),
            Decimal("33.34"),
        ]
        assert result.total_projected == Decimal("100.00")
        assert result.variance == Decimal("0.01")
        assert result.variance_percent == Decimal("0.01")
        assert result.exceeds_tolerance(Decimal("0.5")) is False
        assert result.exceeds_tolerance(Decimal("0.005")) is True

    def test_variance_rounded_for_fine_weights(self):
        template = _template(
            TemplateLine("a", "A", Decimal("50"), display_order=1),
            TemplateLine("b", "B", Decimal("50"), display_order=2),
        )
        result = self.projector.project(template=template, total_weight=Decimal("10.005"))

        assert result.total_projected == Decimal("10.00")
        assert result.variance == Decimal("0.01")
        assert result.variance == result.variance.quantize(Decimal("0.01"))

    def test_template_below_hundred_shows_large_variance(self):
        template = _template(TemplateLine("a", "A", Decimal("90")))
        result = self.projector.project(template=template, total_weight=Decimal("200"))
        assert result.total_projected == Decimal("180.00")
        assert result.variance == Decimal("20.00")

    def test_deterministic(self):
        first = self.projector.project(template=THREE_CUTS, total_weight=Decimal("987.65"))
        second = self.projector.project(template=THREE_CUTS, total_weight=Decimal("987.65"))
        assert first == second

    def test_empty_template_rejected(self):
        with pytest.raises(NoTemplateItemsError) as exc_info:
            self.projector.project(template=_template(), total_weight=Decimal("100"))
        assert exc_info.value.code == "NO_TEMPLATE_ITEMS"

    @pytest.mark.parametrize("weight", [Decimal("0"), Decimal("-5")])
    def test_non_positive_weight_rejected(self, weight):
        with pytest.raises(InvalidInputError):
            self.projector.project(template=THREE_CUTS, total_weight=weight)

    def test_engine_trace_emitted(self, captured_logs):
        self.projector.project(template=THREE_CUTS, total_weight=Decimal("100"))

        traces = [r for r in captured_logs() if r["message"] == "YIELD_ENGINE_TRACE"]
        assert traces
        assert traces[-1]["engine_name"] == "projection"
        assert len(traces[-1]["input_fingerprint"]) == 16
