"""
MapLibre source/layer definitions for stage and overlay archives.

Ids are deterministic:
    source      {region}-{stage}-source
    layer       {region}-{stage}
    outline     {region}-{stage}-outline    (polygons only)
    source-layer {region}_{stage}            (= archive file stem)
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional

from ..catalog import (
    FALLBACK_COLOR,
    LINE_FALLBACK_COLOR,
    CategoricalScale,
    ColorScale,
    ContinuousScale,
    Overlay,
    ViewerConfig,
    archive_key,
)
from .map_model import MapModel

logger = logging.getLogger(__name__)

FILL_OPACITY = 0.7
OUTLINE_PAINT = {"line-color": "#ffffff", "line-width": 0.5, "line-opacity": 0.5}


def source_url(base_url: str, key: str) -> str:
    return f"pmtiles://{base_url}/{key}.pmtiles"


def source_layer(region: str, stage: str) -> str:
    return archive_key(region, stage)


def layer_id(region: str, stage: str) -> str:
    return f"{region}-{stage}"


def source_id(region: str, stage: str) -> str:
    return f"{layer_id(region, stage)}-source"


def outline_id(lid: str) -> str:
    return f"{lid}-outline"


def color_expression(scale: Optional[ColorScale], prop: Optional[str], default: str = FALLBACK_COLOR) -> Any:
    """Data-driven color: interpolate for continuous scales, match for categorical."""
    if isinstance(scale, ContinuousScale):
        expr: List[Any] = ["interpolate", ["linear"], ["coalesce", ["get", prop], 0]]
        for pos, color in scale.stops:
            expr += [pos, color]
        return expr
    if isinstance(scale, CategoricalScale):
        expr = ["match", ["get", prop]]
        for key, color in scale.categories:
            expr += [key, color]
        expr.append(FALLBACK_COLOR)
        return expr
    return default


def polygon_fill_style(src: str, lid: str, src_layer: str, scale: Optional[ColorScale], prop: Optional[str]) -> dict:
    return {
        "id": lid,
        "type": "fill",
        "source": src,
        "source-layer": src_layer,
        "paint": {
            "fill-color": color_expression(scale, prop),
            "fill-opacity": FILL_OPACITY,
        },
    }


def polygon_outline_style(src: str, lid: str, src_layer: str) -> dict:
    return {
        "id": outline_id(lid),
        "type": "line",
        "source": src,
        "source-layer": src_layer,
        "paint": dict(OUTLINE_PAINT),
    }


def line_style(src: str, lid: str, src_layer: str, scale: Optional[ColorScale], prop: Optional[str]) -> dict:
    # Continuous scales are not used for lines; they fall back to a flat color
    if isinstance(scale, CategoricalScale):
        color = color_expression(scale, prop)
    else:
        color = LINE_FALLBACK_COLOR
    return {
        "id": lid,
        "type": "line",
        "source": src,
        "source-layer": src_layer,
        "paint": {
            "line-color": color,
            "line-width": ["interpolate", ["linear"], ["zoom"], 8, 1, 14, 3],
            "line-opacity": 0.8,
        },
    }


def point_style(src: str, lid: str, src_layer: str, color: str) -> dict:
    return {
        "id": lid,
        "type": "circle",
        "source": src,
        "source-layer": src_layer,
        "paint": {
            "circle-color": color,
            "circle-radius": ["interpolate", ["linear"], ["zoom"], 6, 2, 14, 6],
            "circle-stroke-color": "#ffffff",
            "circle-stroke-width": 1,
        },
    }


def _add_styled(map_: MapModel, src: str, lid: str, src_layer: str, geometry_type: str,
                scale: Optional[ColorScale], prop: Optional[str], color: str = LINE_FALLBACK_COLOR) -> None:
    if map_.get_layer(lid) is not None:
        return
    if geometry_type == "polygon":
        map_.add_layer(polygon_fill_style(src, lid, src_layer, scale, prop))
        map_.add_layer(polygon_outline_style(src, lid, src_layer))
    elif geometry_type == "line":
        map_.add_layer(line_style(src, lid, src_layer, scale, prop))
    elif geometry_type == "point":
        map_.add_layer(point_style(src, lid, src_layer, color))


def _remove_pieces(map_: MapModel, lid: str, src: str) -> None:
    for piece in (lid, outline_id(lid)):
        if map_.get_layer(piece) is not None:
            map_.remove_layer(piece)
    if map_.get_source(src) is not None:
        map_.remove_source(src)


def add_layer(map_: MapModel, region: str, stage: str, cfg: ViewerConfig) -> str:
    """Add the source and styled layer(s) for (region, stage); no-op if present."""
    st = cfg.stage(stage)
    src = source_id(region, stage)
    lid = layer_id(region, stage)

    if map_.get_source(src) is None:
        map_.add_source(src, {
            "type": "vector",
            "url": source_url(cfg.pmtiles_base_url, archive_key(region, stage)),
        })
    _add_styled(map_, src, lid, source_layer(region, stage), st.geometry_type,
                cfg.scale(st.color_scale), st.color_property)
    return lid


def remove_layer(map_: MapModel, region: str, stage: str) -> None:
    """Remove layer, outline and source; anything already absent is ignored."""
    _remove_pieces(map_, layer_id(region, stage), source_id(region, stage))


def overlay_layer_id(overlay: Overlay) -> str:
    return overlay.id


def overlay_source_id(overlay: Overlay) -> str:
    return f"{overlay.id}-source"


def add_overlay(map_: MapModel, overlay: Overlay, cfg: ViewerConfig) -> str:
    src = overlay_source_id(overlay)
    lid = overlay_layer_id(overlay)
    if map_.get_source(src) is None:
        map_.add_source(src, {"type": "vector", "url": source_url(cfg.pmtiles_base_url, overlay.id)})
    _add_styled(map_, src, lid, overlay.source_layer, overlay.geometry_type,
                cfg.scale(overlay.color_scale), overlay.color_property, overlay.color)
    return lid


def remove_overlay(map_: MapModel, overlay: Overlay) -> None:
    _remove_pieces(map_, overlay_layer_id(overlay), overlay_source_id(overlay))
