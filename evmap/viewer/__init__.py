from .app import ALL_REGIONS, InfoPanel, ViewerApp, ViewerState
from .map_model import MapModel

__all__ = ["ALL_REGIONS", "InfoPanel", "MapModel", "ViewerApp", "ViewerState"]

# -------------------------
# Viewer file structure
# -------------------------
# map_model.py: in-process stand-in for the MapLibre map instance.
# layers.py: source/layer ids, style builders, add/remove.
# legend.py: legend sections from color scales.
# formatting.py: info panel labels and values.
# app.py: selection state machine (region/stage/basemap/overlays/click).
# page.py: standalone MapLibre page for a composed selection.
