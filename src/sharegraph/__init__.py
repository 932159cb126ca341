"""
ShareGraph - publish and duplicate engine for a shared content graph.
"""

__version__ = "1.0.0"
__author__ = "ShareGraph Team"

# Re-export main components for easy access
from .shared.config.settings import get_settings
from .shared.models.graph import GraphSnapshot, CanvasNode
from .shared.exceptions import ShareGraphError, ConfigurationError

__all__ = [
    "get_settings",
    "GraphSnapshot",
    "CanvasNode",
    "ShareGraphError",
    "ConfigurationError",
]
