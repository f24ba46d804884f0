from .source import Pop3EmailSource

__all__ = ["Pop3EmailSource"]
