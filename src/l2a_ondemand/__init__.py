"""On-demand Sentinel-2 L2A reprocessing through a web processing service."""

__version__ = "1.0.0"
