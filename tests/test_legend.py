"""
Test Legend Generation

Validates legend sections built from the declared color scales.
"""
import pytest

from evmap.catalog import FALLBACK_COLOR, load_viewer_config
from evmap.viewer.legend import (
    CONTINUOUS_LABELS,
    build_legend,
    display_label,
    overlay_legend,
    render_legend_html,
    stage_legend,
)


@pytest.fixture
def cfg():
    return load_viewer_config(pmtiles_base_url="https://tiles.example.org")


class TestStageLegend:
    def test_continuous_gradient(self, cfg):
        section = stage_legend("integrated_conversion_with_ev_types", cfg)

        assert section.kind == "continuous"
        assert section.title == "Integrated Score"
        assert section.colors == ["#440154", "#3b528b", "#21918c", "#5ec962", "#fde725"]
        assert section.labels == list(CONTINUOUS_LABELS)

    def test_categorical_one_row_per_category(self, cfg):
        section = stage_legend("ev_assignment_replaceable_only", cfg)

        assert section.kind == "categorical"
        assert section.items == [
            ("2-Seater", "#3498db"),
            ("4-Seater", "#9b59b6"),
            ("Mixed", "#1abc9c"),
        ]

    def test_other_row_only_for_unmapped_values(self, cfg):
        covered = stage_legend("range_feasibility", cfg, observed=["feasible", "infeasible", None])
        assert ("Other", FALLBACK_COLOR) not in covered.items

        uncovered = stage_legend("range_feasibility", cfg, observed=["feasible", "unknown"])
        assert uncovered.items[-1] == ("Other", FALLBACK_COLOR)
        assert len(uncovered.items) == 4

    def test_unknown_stage(self, cfg):
        with pytest.raises(KeyError):
            stage_legend("nope", cfg)


class TestOverlayLegend:
    def test_scaled_overlay(self, cfg):
        section = overlay_legend("car_availability", cfg)
        assert section.title == "Car Ownership Rate"
        assert section.kind == "continuous"

    def test_point_overlay_is_a_swatch(self, cfg):
        section = overlay_legend("chargers", cfg)
        assert section.kind == "swatch"
        assert section.items == [("Public Chargers", "#f1c40f")]


class TestBuildLegend:
    def test_analysis_disabled_drops_stage_section(self, cfg):
        sections = build_legend(cfg, "adoption_propensity", ["ev_distribution"], analysis_enabled=False)
        assert [s.title for s in sections] == ["BEV Share (%)"]

    def test_html(self, cfg):
        text = render_legend_html(build_legend(cfg, "trip_purpose"))
        assert '<div class="legend-title">Trip Purpose</div>' in text
        assert "Holiday/Daytrip" in text
        assert text.count('class="legend-item"') == 12

    def test_display_label(self):
        assert display_label("ev_type") == "Ev Type"
        assert display_label("shopping") == "Shopping"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
