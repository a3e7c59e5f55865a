"""
Legend generation from declared color scales.

Continuous scales give a gradient bar with fixed 0 / 0.5 / 1 labels.
Categorical scales give one swatch per declared category; an "Other" row
in the fallback color is appended only when rendered data actually
contains a value the scale does not cover.
"""
from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from ..catalog import FALLBACK_COLOR, CategoricalScale, ContinuousScale, ViewerConfig

CONTINUOUS_LABELS = ("0", "0.5", "1")
FALLBACK_LABEL = "Other"


@dataclass
class LegendSection:
    title: str
    kind: str  # "continuous" | "categorical" | "swatch"
    colors: List[str] = field(default_factory=list)
    labels: List[str] = field(default_factory=list)
    items: List[Tuple[str, str]] = field(default_factory=list)  # (label, color)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "kind": self.kind,
            "colors": list(self.colors),
            "labels": list(self.labels),
            "items": [{"label": l, "color": c} for l, c in self.items],
        }


def display_label(value: str) -> str:
    """'ev_type' -> 'Ev Type', '2-seater' -> '2-Seater'."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), str(value).replace("_", " "))


def scale_section(title: str, scale, observed: Optional[Iterable] = None) -> LegendSection:
    if isinstance(scale, ContinuousScale):
        return LegendSection(title, "continuous", colors=scale.colors, labels=list(CONTINUOUS_LABELS))

    section = LegendSection(title, "categorical")
    for key, color in scale.categories:
        section.items.append((display_label(key), color))
    if observed is not None and any(not scale.covers(v) for v in observed if v is not None):
        section.items.append((FALLBACK_LABEL, FALLBACK_COLOR))
    return section


def stage_legend(stage: str, cfg: ViewerConfig, observed: Optional[Iterable] = None) -> LegendSection:
    st = cfg.stage(stage)
    return scale_section(st.legend_title, cfg.scale(st.color_scale), observed)


def overlay_legend(overlay_id: str, cfg: ViewerConfig) -> LegendSection:
    ov = cfg.overlay(overlay_id)
    scale = cfg.scale(ov.color_scale)
    if scale is None:
        return LegendSection(ov.legend_title or ov.name, "swatch", items=[(ov.name, ov.color)])
    return scale_section(ov.legend_title or ov.name, scale)


def build_legend(
    cfg: ViewerConfig,
    stage: Optional[str],
    overlays: Sequence[str] = (),
    analysis_enabled: bool = True,
    observed: Optional[Iterable] = None,
) -> List[LegendSection]:
    sections: List[LegendSection] = []
    if analysis_enabled and stage:
        sections.append(stage_legend(stage, cfg, observed))
    for ov in overlays:
        sections.append(overlay_legend(ov, cfg))
    return sections


def render_legend_html(sections: Sequence[LegendSection]) -> str:
    parts: List[str] = []
    for s in sections:
        parts.append(f'<div class="legend-title">{html.escape(s.title)}</div>')
        if s.kind == "continuous":
            parts.append(
                f'<div class="legend-gradient" style="background: linear-gradient(to right, {", ".join(s.colors)});"></div>'
            )
            parts.append('<div class="legend-labels">' + "".join(f"<span>{l}</span>" for l in s.labels) + "</div>")
        else:
            for label, color in s.items:
                parts.append(
                    f'<div class="legend-item"><div class="legend-color" style="background: {color};"></div>'
                    f"<span>{html.escape(label)}</span></div>"
                )
    return "\n".join(parts)
