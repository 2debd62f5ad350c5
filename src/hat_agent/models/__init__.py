from .composite import CompositeRequest, OverlayAsset
from .edit import EditResult, PlacementHint
from .placement import PlacementDescriptor, PlacementSource, RawPlacement

__all__ = [
    "PlacementSource",
    "RawPlacement",
    "PlacementDescriptor",
    "OverlayAsset",
    "CompositeRequest",
    "PlacementHint",
    "EditResult",
]
