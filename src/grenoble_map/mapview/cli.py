# cli.py
import argparse
import logging
from .config import MapConfig, load_json
from .session import MapSession
from .renderer import MapCanvas
from grenoble_map.model.loader import SceneLoader

def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Interactive map of Grenoble points of interest and cycle paths")
    p.add_argument("--config", help="JSON file with MapConfig defaults")
    p.add_argument("--scene", help="scene JSON (default: packaged Grenoble scene)")
    p.add_argument("--zoom", type=float, help="initial zoom level")
    p.add_argument("--base-layer", dest="base_layer", help="initially active base layer name")
    p.add_argument("--no-tiles", dest="tiles", action="store_false", default=None, help="do not draw base tiles")
    p.add_argument("--fetch-timeout", dest="fetch_timeout", type=float, help="timeout [s] of the GeoJSON request")
    p.add_argument("--save", help="write a PNG instead of opening a window")
    p.add_argument("--print-distance", dest="print_distance", action="store_true", default=None,
                   help="print polyline lengths as CSV")
    p.add_argument("--log-level", dest="log_level", help="DEBUG, INFO, WARNING, ...")
    return p.parse_args(argv)

def main(argv=None):
    args = parse_args(argv)
    cfg_dict = load_json(args.config)
    # JSON gives the defaults, CLI overrides
    for k, v in vars(args).items():
        if k == "config": continue
        if v is not None: cfg_dict[k] = v
    cfg = MapConfig(**cfg_dict)

    logging.basicConfig(level=cfg.log_level.upper(), format="%(asctime)s - %(levelname)s - %(message)s")

    scene = SceneLoader(validate_schema=True).load(cfg.scene)

    with MapSession(scene, cfg) as session:
        if cfg.print_distance:
            print("# shape_id,distance_m")
            for line, d in session.distances():
                print(f"{line.id},{d:.2f}")

        canvas = MapCanvas(session)
        if cfg.save:
            canvas.save(cfg.save, timeout=cfg.fetch_timeout)
        else:
            canvas.show()
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
