"""Teeforge - AI design iteration for apparel-print artwork."""

__version__ = "0.1.0"

from teeforge.core.config import TeeforgeConfig, config
from teeforge.core.orchestrator import IterationOrchestrator
from teeforge.core.transforms import TransformKind

__all__ = [
    "IterationOrchestrator",
    "TeeforgeConfig",
    "TransformKind",
    "config",
]
