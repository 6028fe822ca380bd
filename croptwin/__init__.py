"""CropTwin: crop growth digital-twin engine."""

__version__ = "0.1.0"
