from .bodystructure import BodyStructureError, to_descriptor
from .source import ImapEmailSource

__all__ = ["BodyStructureError", "ImapEmailSource", "to_descriptor"]
