"""CropPredict: LLM-assisted crop yield and market value estimation."""

__version__ = "1.0.0"
