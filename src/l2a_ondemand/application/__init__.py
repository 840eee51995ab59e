"""Application layer package."""

from l2a_ondemand.application.download_manager import DownloadManager
from l2a_ondemand.application.transformer import L2ATransformer
from l2a_ondemand.application.factories import TransformerFactory

__all__ = ["DownloadManager", "L2ATransformer", "TransformerFactory"]
