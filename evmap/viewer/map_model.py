"""
In-process model of the MapLibre map state the viewer mutates.

Mirrors the calls the browser app makes (addSource / addLayer / setStyle /
once('style.load') / queryRenderedFeatures / flyTo) so that selection
logic, the API and tests all drive the same object. Like the real engine,
adding a duplicate source or layer, or a layer without its source, raises.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

Style = Union[str, Dict[str, Any]]


class MapModel:
    def __init__(self, style: Style, center: Tuple[float, float], zoom: float):
        self.style: Style = style
        self.center: Tuple[float, float] = tuple(center)
        self.zoom: float = zoom
        self.sources: Dict[str, dict] = {}
        self.layers: List[dict] = []
        self.flights: List[dict] = []
        self.style_loaded = True
        self._once: Dict[str, List[Callable[[], None]]] = defaultdict(list)
        self._rendered: Dict[str, List[dict]] = {}

    # ---- sources ----
    def add_source(self, source_id: str, spec: dict) -> None:
        if source_id in self.sources:
            raise ValueError(f"There is already a source with ID \"{source_id}\".")
        self.sources[source_id] = dict(spec)

    def get_source(self, source_id: str) -> Optional[dict]:
        return self.sources.get(source_id)

    def remove_source(self, source_id: str) -> None:
        if source_id not in self.sources:
            raise ValueError(f"There is no source with ID \"{source_id}\"")
        users = [l["id"] for l in self.layers if l.get("source") == source_id]
        if users:
            raise ValueError(f"Source \"{source_id}\" cannot be removed while layer \"{users[0]}\" is using it.")
        del self.sources[source_id]

    # ---- layers ----
    def add_layer(self, layer: dict) -> None:
        layer_id = layer["id"]
        if self.get_layer(layer_id) is not None:
            raise ValueError(f"Layer \"{layer_id}\" already exists on this map.")
        if layer.get("source") not in self.sources:
            raise ValueError(f"Source \"{layer.get('source')}\" not found for layer \"{layer_id}\".")
        self.layers.append(dict(layer))

    def get_layer(self, layer_id: str) -> Optional[dict]:
        for layer in self.layers:
            if layer["id"] == layer_id:
                return layer
        return None

    def remove_layer(self, layer_id: str) -> None:
        if self.get_layer(layer_id) is None:
            raise ValueError(f"Cannot remove non-existing layer \"{layer_id}\".")
        self.layers = [l for l in self.layers if l["id"] != layer_id]
        self._rendered.pop(layer_id, None)

    @property
    def layer_ids(self) -> List[str]:
        return [l["id"] for l in self.layers]

    # ---- style ----
    def set_style(self, style: Style) -> None:
        """Replace the style; every added source and layer is dropped."""
        self.style = style
        self.sources.clear()
        self.layers.clear()
        self._rendered.clear()
        self.style_loaded = False

    def once(self, event: str, handler: Callable[[], None]) -> None:
        self._once[event].append(handler)

    def fire(self, event: str) -> None:
        if event == "style.load":
            self.style_loaded = True
        handlers, self._once[event] = self._once[event], []
        for handler in handlers:
            handler()

    # ---- view ----
    def get_center(self) -> Tuple[float, float]:
        return self.center

    def set_center(self, center: Sequence[float]) -> None:
        self.center = tuple(center)

    def get_zoom(self) -> float:
        return self.zoom

    def set_zoom(self, zoom: float) -> None:
        self.zoom = zoom

    def fly_to(self, center: Sequence[float], zoom: float, duration: int = 1000) -> None:
        self.flights.append({"center": tuple(center), "zoom": zoom, "duration": duration})
        self.set_center(center)
        self.set_zoom(zoom)

    # ---- features ----
    def set_rendered_features(self, layer_id: str, features: List[dict]) -> None:
        """Register the features a layer renders at any point (stand-in for tiles)."""
        self._rendered[layer_id] = list(features)

    def query_rendered_features(self, point, layers: Optional[Sequence[str]] = None) -> List[dict]:
        ids = self.layer_ids if layers is None else [l for l in layers if self.get_layer(l) is not None]
        hits: List[dict] = []
        for layer_id in ids:
            hits.extend(self._rendered.get(layer_id, []))
        return hits

    def snapshot(self) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
        """(source ids, layer ids) - used to compare map states."""
        return tuple(sorted(self.sources)), tuple(self.layer_ids)
