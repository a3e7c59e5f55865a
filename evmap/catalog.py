"""
Static catalog of stages, regions, overlays, color scales and basemaps.

These tables are shared by the conversion pipeline (column ranges, geometry
types, region folder names) and the viewer (colors, legend titles, fly-to
targets, archive availability). Nothing here is mutated at runtime.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from . import config
from .errors import UnknownStageError

FALLBACK_COLOR = "#95a5a6"
LINE_FALLBACK_COLOR = "#3498db"


# ---------- Color scales ----------

@dataclass(frozen=True)
class ContinuousScale:
    stops: Tuple[Tuple[float, str], ...]

    @property
    def colors(self) -> List[str]:
        return [c for _, c in self.stops]

    def to_dict(self):
        return [[pos, color] for pos, color in self.stops]


@dataclass(frozen=True)
class CategoricalScale:
    categories: Tuple[Tuple[str, str], ...]

    def color_for(self, value) -> str:
        for key, color in self.categories:
            if key == value:
                return color
        return FALLBACK_COLOR

    def covers(self, value) -> bool:
        return any(key == value for key, _ in self.categories)

    def to_dict(self):
        return {key: color for key, color in self.categories}


ColorScale = Union[ContinuousScale, CategoricalScale]

COLOR_SCALES: Dict[str, ColorScale] = {
    "viridis": ContinuousScale((
        (0.0, "#440154"),
        (0.25, "#3b528b"),
        (0.5, "#21918c"),
        (0.75, "#5ec962"),
        (1.0, "#fde725"),
    )),
    "plasma": ContinuousScale((
        (0.0, "#0d0887"),
        (0.25, "#7e03a8"),
        (0.5, "#cc4778"),
        (0.75, "#f89540"),
        (1.0, "#f0f921"),
    )),
    "feasibility": CategoricalScale((
        ("feasible", "#2ecc71"),
        ("constrained", "#f39c12"),
        ("infeasible", "#e74c3c"),
    )),
    "charging_category": CategoricalScale((
        ("excellent", "#2ecc71"),
        ("good", "#27ae60"),
        ("fair", "#f39c12"),
        ("poor", "#e74c3c"),
    )),
    "ev_type": CategoricalScale((
        ("2-seater", "#3498db"),
        ("4-seater", "#9b59b6"),
        ("mixed", "#1abc9c"),
    )),
    "categorical": CategoricalScale((
        ("Commuting", "#e74c3c"),
        ("Business", "#c0392b"),
        ("Education", "#3498db"),
        ("shopping", "#2ecc71"),
        ("Other personal business", "#9b59b6"),
        ("Escort", "#f39c12"),
        ("Visiting friends or relatives", "#1abc9c"),
        ("Holiday/daytrip", "#e91e63"),
        ("Sport/Entertainment", "#00bcd4"),
        ("Eating/Drinking", "#ff9800"),
        ("Visit Hospital or other health", "#607d8b"),
        ("Other Journey", "#95a5a6"),
    )),
}


# ---------- Stages / regions / overlays ----------

@dataclass(frozen=True)
class Stage:
    id: str
    name: str
    geometry_type: str  # "polygon" | "line"
    description: str
    color_property: str
    color_scale: str
    legend_title: str
    column_range: Optional[Tuple[int, int]] = None  # 1-based, inclusive

    @property
    def is_line(self) -> bool:
        return self.geometry_type == "line"


@dataclass(frozen=True)
class Region:
    id: str
    name: str
    center: Tuple[float, float]  # lon, lat
    zoom: float

    @property
    def source_dir(self) -> str:
        # Analysis outputs are foldered by display name (output/ZetTrans/...)
        return self.name


@dataclass(frozen=True)
class Overlay:
    id: str
    name: str
    geometry_type: str  # "polygon" | "point"
    description: str
    color_property: Optional[str] = None
    color_scale: Optional[str] = None
    legend_title: Optional[str] = None
    color: str = "#f1c40f"  # used when there is no color scale

    @property
    def source_layer(self) -> str:
        return self.id


STAGES: Tuple[Stage, ...] = (
    Stage("adoption_propensity", "Adoption Propensity", "polygon",
          "Demographic-based EV adoption likelihood",
          "final_adoption_propensity", "viridis", "Final Adoption Propensity",
          (418, 438)),
    Stage("charging_network", "Charging Network", "polygon",
          "Charging infrastructure accessibility",
          "charging_accessibility_category", "charging_category", "Charging Accessibility",
          (418, 434)),
    Stage("trip_purpose", "Trip Purpose", "line",
          "Trip purpose suitability analysis",
          "purpose", "categorical", "Trip Purpose",
          (15, 25)),
    Stage("range_feasibility", "Range Feasibility", "line",
          "100km range constraint analysis",
          "feasibility_category", "feasibility", "Feasibility",
          (3, 10)),
    Stage("conversion_potential", "Conversion Potential", "polygon",
          "Trip conversion potential",
          "purpose_weight", "viridis", "Purpose Weight",
          (418, 439)),
    Stage("ev_assignment_replaceable_only", "EV Assignment", "polygon",
          "2-seater vs 4-seater assignment",
          "ev_type_assignment", "ev_type", "EV Type Assignment",
          (418, 451)),
    Stage("integrated_conversion_with_ev_types", "Integrated Analysis", "polygon",
          "Final integrated feasibility",
          "integrated_score", "viridis", "Integrated Score",
          (418, 444)),
)

REGIONS: Tuple[Region, ...] = (
    Region("hitrans", "HITRANS", (-5.5, 57.5), 7),
    Region("nestrans", "Nestrans", (-2.1, 57.15), 9),
    Region("sestran", "SESTRAN", (-3.2, 55.95), 9),
    Region("spt", "SPT", (-4.25, 55.85), 9),
    Region("swestrans", "SWESTRANS", (-4.0, 55.1), 9),
    Region("tactran", "Tactran", (-3.8, 56.5), 8),
    Region("zettrans", "ZetTrans", (-1.2, 60.4), 9),
)

OVERLAYS: Tuple[Overlay, ...] = (
    Overlay("car_availability", "Car/Van Availability", "polygon",
            "Household car ownership from 2011 Census",
            "car_ownership_rate", "viridis", "Car Ownership Rate"),
    Overlay("ev_distribution", "EV Distribution", "polygon",
            "Current EV registrations by postcode area",
            "bev_share", "plasma", "BEV Share (%)"),
    Overlay("chargers", "Public Chargers", "point",
            "Public charge point locations"),
)

# Attributes shown first in the info panel, per stage
KEY_PROPERTIES: Dict[str, Tuple[str, ...]] = {
    "adoption_propensity": ("geo_code", "adoption_propensity_score", "home_charging_feasibility"),
    "charging_network": ("geo_code", "accessibility_score", "capacity_factor"),
    "trip_purpose": ("origin_code", "destination_code", "purpose", "distance_km"),
    "range_feasibility": ("origin_code", "destination_code", "feasibility_category", "distance_km"),
    "conversion_potential": ("geo_code", "conversion_potential"),
    "ev_assignment_replaceable_only": ("geo_code", "ev_type", "two_seater_score", "four_seater_score"),
    "integrated_conversion_with_ev_types": ("geo_code", "integrated_score", "deployment_priority"),
}
DEFAULT_KEY_PROPERTIES: Tuple[str, ...] = ("geo_code",)


# ---------- Map / basemaps ----------

@dataclass(frozen=True)
class MapSettings:
    center: Tuple[float, float] = (-4.0, 56.5)  # Scotland
    zoom: float = 6
    min_zoom: float = 5
    max_zoom: float = 14
    bounds: Tuple[Tuple[float, float], Tuple[float, float]] = ((-8.0, 54.5), (0.0, 61.0))


def _raster_style(sources: Dict[str, Tuple[str, Optional[str]]], layer_ids: Dict[str, str]) -> dict:
    """Inline raster style document; sources maps id -> (tile url, attribution)."""
    style_sources = {}
    for sid, (url, attribution) in sources.items():
        src = {"type": "raster", "tiles": [url], "tileSize": 256}
        if attribution:
            src["attribution"] = attribution
        style_sources[sid] = src
    return {
        "version": 8,
        "sources": style_sources,
        "layers": [
            {"id": lid, "type": "raster", "source": sid, "minzoom": 0, "maxzoom": 19}
            for lid, sid in layer_ids.items()
        ],
    }


_ESRI_IMAGERY = "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}"

BASEMAPS: Dict[str, Dict[str, object]] = {
    "dark": {
        "name": "Dark",
        "style": "https://basemaps.cartocdn.com/gl/dark-matter-gl-style/style.json",
    },
    "light": {
        "name": "Light",
        "style": "https://basemaps.cartocdn.com/gl/positron-gl-style/style.json",
    },
    "osm": {
        "name": "OpenStreetMap",
        "style": _raster_style(
            {"osm": ("https://tile.openstreetmap.org/{z}/{x}/{y}.png", "© OpenStreetMap contributors")},
            {"osm-tiles": "osm"},
        ),
    },
    "satellite": {
        "name": "Satellite",
        "style": _raster_style({"satellite": (_ESRI_IMAGERY, "© Esri")}, {"satellite-tiles": "satellite"}),
    },
    "satellite-streets": {
        "name": "Satellite + Roads",
        "style": _raster_style(
            {
                "satellite": (_ESRI_IMAGERY, "© Esri"),
                "carto-labels": ("https://a.basemaps.cartocdn.com/rastertiles/voyager_only_labels/{z}/{x}/{y}.png", None),
            },
            {"satellite-tiles": "satellite", "road-labels": "carto-labels"},
        ),
    },
}
DEFAULT_BASEMAP = "light"


# ---------- Archive keys ----------

def archive_key(region: str, stage: str) -> str:
    return f"{region}_{stage}"


AVAILABLE_ARCHIVES: Tuple[str, ...] = tuple(
    [o.id for o in OVERLAYS]
    + [archive_key(r.id, s.id) for r in REGIONS for s in sorted(STAGES, key=lambda s: s.id)]
)


def discover_archives(directory: str) -> Tuple[str, ...]:
    """Archive keys for the .pmtiles files actually present in `directory`."""
    if not os.path.isdir(directory):
        return ()
    return tuple(sorted(
        f[: -len(".pmtiles")] for f in os.listdir(directory) if f.endswith(".pmtiles")
    ))


# ---------- Lookups ----------

_STAGES_BY_ID = {s.id: s for s in STAGES}

POLYGON_STAGES = tuple(s.id for s in STAGES if not s.is_line)
LINE_STAGES = tuple(s.id for s in STAGES if s.is_line)


def get_stage(stage_id: str) -> Optional[Stage]:
    return _STAGES_BY_ID.get(stage_id)


# ---------- Viewer configuration bundle ----------

@dataclass(frozen=True)
class ViewerConfig:
    pmtiles_base_url: str
    available: Tuple[str, ...]
    stages: Tuple[Stage, ...] = STAGES
    regions: Tuple[Region, ...] = REGIONS
    overlays: Tuple[Overlay, ...] = OVERLAYS
    color_scales: Dict[str, ColorScale] = field(default_factory=lambda: dict(COLOR_SCALES))
    basemaps: Dict[str, Dict[str, object]] = field(default_factory=lambda: dict(BASEMAPS))
    default_basemap: str = DEFAULT_BASEMAP
    map: MapSettings = MapSettings()

    def stage(self, stage_id: str) -> Stage:
        for s in self.stages:
            if s.id == stage_id:
                return s
        raise UnknownStageError(stage_id)

    def region(self, region_id: str) -> Optional[Region]:
        for r in self.regions:
            if r.id == region_id:
                return r
        return None

    def overlay(self, overlay_id: str) -> Overlay:
        for o in self.overlays:
            if o.id == overlay_id:
                return o
        raise KeyError(overlay_id)

    def scale(self, name: Optional[str]) -> Optional[ColorScale]:
        if name is None:
            return None
        return self.color_scales.get(name)

    def is_available(self, key: str) -> bool:
        return key in self.available

    def to_dict(self) -> dict:
        """JSON-safe payload consumed by the browser viewer."""
        return {
            "pmtilesBaseUrl": self.pmtiles_base_url,
            "availableFiles": list(self.available),
            "overlayLayers": [
                {
                    "id": o.id,
                    "name": o.name,
                    "type": o.geometry_type,
                    "description": o.description,
                    "colorProperty": o.color_property,
                    "colorScale": o.color_scale,
                    "legendTitle": o.legend_title,
                    "sourceLayer": o.source_layer,
                }
                for o in self.overlays
            ],
            "map": {
                "center": list(self.map.center),
                "zoom": self.map.zoom,
                "minZoom": self.map.min_zoom,
                "maxZoom": self.map.max_zoom,
                "bounds": [list(p) for p in self.map.bounds],
            },
            "regions": [
                {"id": r.id, "name": r.name, "center": list(r.center), "zoom": r.zoom}
                for r in self.regions
            ],
            "stages": [
                {
                    "id": s.id,
                    "name": s.name,
                    "type": s.geometry_type,
                    "description": s.description,
                    "colorProperty": s.color_property,
                    "colorScale": s.color_scale,
                    "legendTitle": s.legend_title,
                }
                for s in self.stages
            ],
            "colorScales": {name: scale.to_dict() for name, scale in self.color_scales.items()},
            "basemaps": self.basemaps,
            "defaultBasemap": self.default_basemap,
        }


def load_viewer_config(
    pmtiles_base_url: Optional[str] = None,
    archive_dir: Optional[str] = None,
) -> ViewerConfig:
    """
    Build the viewer configuration.

    When `archive_dir` is given, availability is read from the archives
    present there instead of the published list.
    """
    available = AVAILABLE_ARCHIVES
    if archive_dir is not None:
        available = discover_archives(archive_dir)
    return ViewerConfig(
        pmtiles_base_url=(pmtiles_base_url or config.PMTILES_BASE_URL).rstrip("/"),
        available=available,
    )
