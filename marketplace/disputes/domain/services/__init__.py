from .dispute_service import DisputeService


__all__ = [
    "DisputeService",
]
