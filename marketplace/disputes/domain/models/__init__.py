from .dispute import Dispute, DisputeMessage, DisputeStatus, ResolutionType


__all__ = [
    "Dispute",
    "DisputeMessage",
    "DisputeStatus",
    "ResolutionType",
]
