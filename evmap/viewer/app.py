"""
Viewer selection state machine.

All state changes come from discrete UI events (region dropdown, stage
radio, basemap dropdown, overlay / analysis checkboxes, map click). Each
handler translates the new selection into add/remove calls on the single
map instance. Every active layer id maps to exactly one source plus one
or two layers, and removal undoes exactly what addition did.
"""
from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from ..catalog import ViewerConfig, archive_key
from . import layers
from .formatting import info_rows
from .legend import LegendSection, build_legend, render_legend_html
from .map_model import MapModel

logger = logging.getLogger(__name__)

ALL_REGIONS = "all"
DEFAULT_REGION = "zettrans"  # the only region with every stage published initially
DEFAULT_STAGE = "adoption_propensity"


@dataclass
class ViewerState:
    region: str = DEFAULT_REGION
    stage: str = DEFAULT_STAGE
    basemap: str = "light"
    overlays: Set[str] = field(default_factory=set)
    analysis_enabled: bool = True
    active_layers: List[str] = field(default_factory=list)


@dataclass
class InfoPanel:
    visible: bool = False
    rows: List[Tuple[str, object]] = field(default_factory=list)

    def to_html(self) -> str:
        return "\n".join(
            f'<div class="info-row"><span class="info-label">{html.escape(str(label))}</span>'
            f'<span class="info-value">{html.escape(str(value))}</span></div>'
            for label, value in self.rows
        )


class ViewerApp:
    def __init__(self, cfg: ViewerConfig, map_: Optional[MapModel] = None,
                 state: Optional[ViewerState] = None):
        self.cfg = cfg
        self.state = state or ViewerState(basemap=cfg.default_basemap)
        self.map = map_ or MapModel(
            cfg.basemaps[self.state.basemap]["style"],
            center=cfg.map.center,
            zoom=cfg.map.zoom,
        )
        self.info = InfoPanel()
        # layer id -> (region, stage), so removal never has to parse ids
        self._layer_keys: Dict[str, Tuple[str, str]] = {}

    # -----------------------------
    # Lifecycle
    # -----------------------------
    def load(self) -> List[LegendSection]:
        """Map 'load' event: add the initial selection and return its legend."""
        self.update_layers()
        self._restore_overlays()
        return self.legend()

    # -----------------------------
    # UI events
    # -----------------------------
    def select_region(self, region: str) -> None:
        if region != ALL_REGIONS and self.cfg.region(region) is None:
            raise ValueError(f"Unknown region '{region}'")
        self.state.region = region
        self.update_layers()
        self.fly_to_region()

    def select_stage(self, stage: str) -> List[LegendSection]:
        self.cfg.stage(stage)  # KeyError for unknown stages
        self.state.stage = stage
        self.update_layers()
        return self.legend()

    def select_basemap(self, basemap: str) -> None:
        """
        Swap the basemap style.

        setStyle wipes every added source and layer, so once the new style
        reports 'style.load' the previous view is restored and all toggled
        layers are added again.
        """
        if basemap not in self.cfg.basemaps:
            raise ValueError(f"Unknown basemap '{basemap}'")
        self.state.basemap = basemap
        center, zoom = self.map.get_center(), self.map.get_zoom()
        self.map.set_style(self.cfg.basemaps[basemap]["style"])

        def _restore():
            self.map.set_center(center)
            self.map.set_zoom(zoom)
            self.update_layers()
            self._restore_overlays()

        self.map.once("style.load", _restore)

    def set_analysis_enabled(self, enabled: bool) -> None:
        self.state.analysis_enabled = bool(enabled)
        self.update_layers()

    def toggle_overlay(self, overlay_id: str, enabled: bool) -> None:
        overlay = self.cfg.overlay(overlay_id)
        if enabled:
            self.state.overlays.add(overlay_id)
            self._add_overlay(overlay_id)
        else:
            self.state.overlays.discard(overlay_id)
            layers.remove_overlay(self.map, overlay)

    def handle_click(self, point) -> InfoPanel:
        features = self.map.query_rendered_features(point, layers=list(self.state.active_layers))
        if not features:
            self.info = InfoPanel(visible=False)
            return self.info
        props = features[0].get("properties", {}) or {}
        self.info = InfoPanel(visible=True, rows=info_rows(self.state.stage, props))
        return self.info

    def close_info(self) -> None:
        self.info = InfoPanel(visible=False)

    # -----------------------------
    # Derived state
    # -----------------------------
    def regions_to_show(self) -> List[str]:
        if self.state.region == ALL_REGIONS:
            return [r.id for r in self.cfg.regions]
        return [self.state.region]

    def observed_values(self) -> List[object]:
        """Values of the stage color property among rendered features."""
        prop = self.cfg.stage(self.state.stage).color_property
        values = []
        for f in self.map.query_rendered_features(None, layers=list(self.state.active_layers)):
            props = f.get("properties", {}) or {}
            if prop in props:
                values.append(props[prop])
        return values

    def legend(self) -> List[LegendSection]:
        overlays = [o.id for o in self.cfg.overlays if o.id in self.state.overlays]
        return build_legend(
            self.cfg,
            self.state.stage,
            overlays,
            analysis_enabled=self.state.analysis_enabled,
            observed=self.observed_values(),
        )

    def legend_html(self) -> str:
        return render_legend_html(self.legend())

    # -----------------------------
    # Map mutation
    # -----------------------------
    def update_layers(self) -> None:
        """Remove every active analysis layer, then add the current selection."""
        for lid in self.state.active_layers:
            region, stage = self._layer_keys.pop(lid, (None, None))
            if region is not None:
                layers.remove_layer(self.map, region, stage)
        self.state.active_layers = []

        if not self.state.analysis_enabled:
            return

        stage = self.state.stage
        for region in self.regions_to_show():
            if not self.cfg.is_available(archive_key(region, stage)):
                continue
            try:
                lid = layers.add_layer(self.map, region, stage, self.cfg)
            except Exception as e:
                logger.warning(f"Failed to load layer for {region}/{stage}: {e}")
                layers.remove_layer(self.map, region, stage)
                continue
            self.state.active_layers.append(lid)
            self._layer_keys[lid] = (region, stage)

    def fly_to_region(self) -> None:
        if self.state.region == ALL_REGIONS:
            self.map.fly_to(self.cfg.map.center, self.cfg.map.zoom)
            return
        region = self.cfg.region(self.state.region)
        if region is not None:
            self.map.fly_to(region.center, region.zoom)

    def _add_overlay(self, overlay_id: str) -> None:
        if not self.cfg.is_available(overlay_id):
            return
        try:
            layers.add_overlay(self.map, self.cfg.overlay(overlay_id), self.cfg)
        except Exception as e:
            logger.warning(f"Failed to load overlay {overlay_id}: {e}")
            layers.remove_overlay(self.map, self.cfg.overlay(overlay_id))

    def _restore_overlays(self) -> None:
        for o in self.cfg.overlays:
            if o.id in self.state.overlays:
                self._add_overlay(o.id)
