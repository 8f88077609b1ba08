# mapview/__init__.py
"""
Interactive map layer on top of matplotlib + contextily.

- ViewController: center / zoom / active base layer, emits zoom & move events
- MapSession: owns one open map (shapes, handlers, remote overlays, geocoder)
- MapCanvas: draws a session and turns mouse / widget events into view operations
"""
__all__ = ["view", "session", "renderer", "handlers", "remote", "geocoder", "overlay", "projection"]
