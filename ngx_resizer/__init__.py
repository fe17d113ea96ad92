"""On-the-fly image resizing through an nginx image_filter proxy."""

__version__ = "1.0.0"
