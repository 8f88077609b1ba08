# model/__init__.py
"""
Model layer: immutable scene description plus the shapes the UI mutates.

- models: Coordinate, shapes (Marker / Polygon / Polyline), legend, Scene
- events: Evented observer mixin shared by shapes and the view controller
- loader: SceneLoader (scene.json -> Scene, validated with jsonschema)
"""
__all__ = ["models", "events", "loader"]
