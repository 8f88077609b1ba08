# config.py
from dataclasses import dataclass
from pathlib import Path
import json

from .geocoder import NOMINATIM_URL

@dataclass
class MapConfig:
    scene: str | None = None          # scene JSON; packaged Grenoble scene when None
    base_layer: str | None = None     # initially active base layer name
    zoom: float | None = None         # overrides the scene zoom
    tiles: bool = True                # draw base tiles
    fetch_timeout: float | None = None
    geocoder: bool = True
    geocoder_url: str = NOMINATIM_URL
    user_agent: str = "grenoble-map/0.1"
    width_px: int = 1200
    height_px: int = 900
    dpi: int = 120
    min_zoom: float = 0
    max_zoom: float = 19
    save: str | None = None
    print_distance: bool = False
    log_level: str = "INFO"

def load_json(path: str | None) -> dict:
    if not path: return {}
    p = Path(path)
    if not p.exists(): raise FileNotFoundError(path)
    with p.open("r", encoding="utf-8") as f: cfg = json.load(f)
    if not isinstance(cfg, dict): raise ValueError("config json must be an object")
    return cfg
