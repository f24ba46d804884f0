from .base import MailTransport
from .factory import open_transport
from .models import BodyParameter, BodyPartDescriptor, BodyType, ConnectionSpec, OverviewRecord

__all__ = [
    "BodyParameter",
    "BodyPartDescriptor",
    "BodyType",
    "ConnectionSpec",
    "MailTransport",
    "OverviewRecord",
    "open_transport",
]
