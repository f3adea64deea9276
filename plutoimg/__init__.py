"""Image upload, cropping, resizing and cached delivery for Flask applications."""

__version__ = "0.1.0"

__all__ = ["config", "params", "imaging", "app"]