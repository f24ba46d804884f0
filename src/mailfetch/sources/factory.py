from __future__ import annotations

from mailfetch.errors import UnsupportedService

from .base import MailTransport
from .models import ConnectionSpec


def open_transport(spec: ConnectionSpec) -> MailTransport:
    service = spec.service.lower()
    if service == "imap":
        from .email_imap import ImapEmailSource

        return ImapEmailSource.open(spec)
    if service == "pop3":
        from .email_pop3 import Pop3EmailSource

        return Pop3EmailSource.open(spec)
    raise UnsupportedService(f"No transport available for service {spec.service!r}")
