from .config import render_placement_values, setup_logging
from .context import placement_context

__all__ = [
    "placement_context",
    "render_placement_values",
    "setup_logging",
]
