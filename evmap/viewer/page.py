"""Standalone MapLibre page for a composed viewer selection."""
from __future__ import annotations

import json

from ..catalog import ViewerConfig
from .app import ViewerApp
from .formatting import key_properties

MAPLIBRE_VERSION = "4.7.1"
PMTILES_VERSION = "3.2.0"
INFO_URL = "/api/info"


def compose_style(app: ViewerApp) -> dict:
    """Basemap + the sources/layers the selection added + current view."""
    return {
        "basemap": app.map.style,
        "sources": dict(app.map.sources),
        "layers": list(app.map.layers),
        "center": list(app.map.get_center()),
        "zoom": app.map.get_zoom(),
        "stage": app.state.stage,
        "keyProperties": list(key_properties(app.state.stage)),
        "activeLayers": list(app.state.active_layers),
        "legend": [s.to_dict() for s in app.legend()],
    }


def render_page(app: ViewerApp, cfg: ViewerConfig, info_url: str = INFO_URL) -> str:
    """
    Page for the composed selection.

    Clicked features are posted to `info_url`, which answers with the
    ordered, formatted info-panel rows; values are inserted as text.
    """
    payload = compose_style(app)
    legend_html = app.legend_html()
    return f"""<!doctype html><html><head>
<meta charset="utf-8"><meta name="viewport" content="width=device-width,initial-scale=1">
<title>EV Modelling</title>
<link rel="stylesheet" href="https://unpkg.com/maplibre-gl@{MAPLIBRE_VERSION}/dist/maplibre-gl.css">
<style>
html,body,#map{{margin:0;height:100%}}
#legend{{position:absolute;bottom:24px;left:10px;background:#fff;padding:10px;border-radius:6px;box-shadow:0 0 10px rgba(0,0,0,.2);font:12px sans-serif}}
.legend-gradient{{height:10px;width:180px}}.legend-labels{{display:flex;justify-content:space-between}}
.legend-item{{display:flex;align-items:center;gap:6px}}.legend-color{{width:12px;height:12px}}
#info-panel{{position:absolute;top:10px;left:10px;background:#fff;padding:10px;max-width:320px;font:12px sans-serif}}
.hidden{{display:none}}.info-row{{display:flex;justify-content:space-between;gap:8px}}
</style></head><body>
<div id="map"></div>
<div id="legend">{legend_html}</div>
<div id="info-panel" class="hidden"><button id="info-close">&times;</button><div id="info-content"></div></div>
<script src="https://unpkg.com/maplibre-gl@{MAPLIBRE_VERSION}/dist/maplibre-gl.js"></script>
<script src="https://unpkg.com/pmtiles@{PMTILES_VERSION}/dist/pmtiles.js"></script>
<script>
var S={json.dumps(payload)};
var protocol=new pmtiles.Protocol();maplibregl.addProtocol('pmtiles',protocol.tile);
var map=new maplibregl.Map({{container:'map',style:S.basemap,center:S.center,zoom:S.zoom,
  minZoom:{cfg.map.min_zoom},maxZoom:{cfg.map.max_zoom},maxBounds:{json.dumps([list(p) for p in cfg.map.bounds])}}});
map.addControl(new maplibregl.NavigationControl(),'top-right');
map.addControl(new maplibregl.ScaleControl(),'bottom-right');
map.on('load',function(){{
  Object.keys(S.sources).forEach(function(id){{map.addSource(id,S.sources[id]);}});
  S.layers.forEach(function(l){{map.addLayer(l);}});
}});
map.on('click',function(e){{
  var panel=document.getElementById('info-panel');
  var f=map.queryRenderedFeatures(e.point,{{layers:S.activeLayers}});
  if(!f.length){{panel.classList.add('hidden');return;}}
  fetch('{info_url}',{{method:'POST',headers:{{'Content-Type':'application/json'}},
    body:JSON.stringify({{stage:S.stage,properties:f[0].properties}})}})
    .then(function(r){{return r.json();}})
    .then(function(d){{
      var box=document.getElementById('info-content');box.innerHTML='';
      d.rows.forEach(function(row){{
        var div=document.createElement('div');div.className='info-row';
        var l=document.createElement('span');l.className='info-label';l.textContent=row[0];
        var v=document.createElement('span');v.className='info-value';v.textContent=row[1];
        div.appendChild(l);div.appendChild(v);box.appendChild(div);
      }});
      panel.classList.remove('hidden');
    }});
}});
document.getElementById('info-close').onclick=function(){{document.getElementById('info-panel').classList.add('hidden');}};
</script></body></html>"""
