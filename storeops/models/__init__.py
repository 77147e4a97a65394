from .dead_letter import DeadLetterRecord, ResolutionType

__all__ = ["DeadLetterRecord", "ResolutionType"]
