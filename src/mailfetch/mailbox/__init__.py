from .attachment import Attachment
from .message import FLAG_TYPES, AddressType, Message, MessageAddresses, MessageFlag, MessageStatus, parse_date
from .server import EXCLUSIVE_FLAGS, SSL_FLAGS, Server

__all__ = [
    "AddressType",
    "Attachment",
    "EXCLUSIVE_FLAGS",
    "FLAG_TYPES",
    "Message",
    "MessageAddresses",
    "MessageFlag",
    "MessageStatus",
    "SSL_FLAGS",
    "Server",
    "parse_date",
]
