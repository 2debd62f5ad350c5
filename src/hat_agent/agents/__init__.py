from .editor import edit_composite
from .placement_estimator import estimate_placement, fallback_placement

__all__ = [
    "estimate_placement",
    "fallback_placement",
    "edit_composite",
]
