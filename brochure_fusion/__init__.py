"""Brochure content fusion engine."""

__version__ = "0.1.0"

from .orchestrator import FusionOrchestrator, classify_images, fuse, fuse_documents
from .processing.images import select_images
from .processing.ranking import rank_search_results

__all__ = [
    '__version__',
    'FusionOrchestrator',
    'fuse',
    'fuse_documents',
    'classify_images',
    'rank_search_results',
    'select_images',
]
