"""
growengine
==========
Environmental sensing and automation control for grow rooms.
"""

from growengine.config import EngineConfig, load_config
from growengine.engine import AutomationEngine, create_engine
from growengine.registry import InMemoryReadingStore, InMemoryRegistry

__version__ = "1.0.0"

__all__ = [
    "AutomationEngine",
    "EngineConfig",
    "InMemoryReadingStore",
    "InMemoryRegistry",
    "__version__",
    "create_engine",
    "load_config",
]
