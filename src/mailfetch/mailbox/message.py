from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from dateutil import parser as dt_parser

from mailfetch.core.mime import (
    Address,
    BodyPartWalker,
    decode_header_block,
    decode_mime_header,
    parse_address_list,
    split_header_block,
)
from mailfetch.core.mime.html import nl2br, strip_tags
from mailfetch.errors import InvalidDate, InvalidFlagName, MissingFrom
from mailfetch.sources.models import BodyPartDescriptor, OverviewRecord

from .attachment import Attachment

if TYPE_CHECKING:
    from mailfetch.sources.base import MailTransport

    from .server import Server


class AddressType(str, Enum):
    TO = "to"
    CC = "cc"
    FROM = "from"
    REPLY_TO = "reply_to"


class MessageFlag(str, Enum):
    RECENT = "recent"
    FLAGGED = "flagged"
    ANSWERED = "answered"
    DELETED = "deleted"
    SEEN = "seen"
    DRAFT = "draft"

    @property
    def imap_name(self) -> str:
        return "\\" + self.value.capitalize()


FLAG_TYPES = tuple(flag.value for flag in MessageFlag)


@dataclass(slots=True)
class MessageStatus:
    recent: bool = False
    flagged: bool = False
    answered: bool = False
    deleted: bool = False
    seen: bool = False
    draft: bool = False

    @classmethod
    def from_overview(cls, overview: OverviewRecord) -> MessageStatus:
        return cls(**{name: bool(getattr(overview, name, False)) for name in FLAG_TYPES})

    def get(self, flag: MessageFlag) -> bool:
        return getattr(self, flag.value)

    def set(self, flag: MessageFlag, enabled: bool) -> None:
        setattr(self, flag.value, enabled)


@dataclass(slots=True)
class MessageAddresses:
    to: list[Address] | None = None
    cc: list[Address] | None = None
    from_: list[Address] = field(default_factory=list)
    reply_to: list[Address] = field(default_factory=list)

    def get(self, kind: AddressType) -> list[Address] | None:
        if kind is AddressType.TO:
            return self.to
        if kind is AddressType.CC:
            return self.cc
        if kind is AddressType.FROM:
            return self.from_
        return self.reply_to


def parse_date(value: str | None) -> datetime | None:
    """Parse an overview date into an aware datetime.

    RFC 2822 dates are tried first, then anything dateutil understands.
    Dates without a zone are taken as UTC.
    """
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        try:
            parsed = dt_parser.parse(value)
        except (ValueError, OverflowError) as exc:
            raise InvalidDate(f"Unparsable message date: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Message:
    """A single message on the server, addressed by UID.

    Construction fetches the overview, the header block and the body
    structure, then walks the structure to collect the plaintext and HTML
    bodies and the attachments. Each of the three fetches is cached and can
    be refreshed on its own with ``force_reload``.
    """

    def __init__(self, uid: int, server: Server, logger: logging.Logger | logging.LoggerAdapter | None = None):
        self._uid = uid
        self._server = server
        self.logger = logger or getattr(server, "logger", None) or logging.getLogger("mailfetch")

        self._overview: OverviewRecord | None = None
        self._raw_headers: dict[str, list[str]] | None = None
        self._headers: dict[str, Any] | None = None
        self._structure: BodyPartDescriptor | None = None

        self.raw_subject: str | None = None
        self.date: datetime | None = None
        self.size = 0
        self.status = MessageStatus()
        self.addresses = MessageAddresses()
        self.plaintext_message: str | None = None
        self.html_message: str | None = None
        self.attachments: list[Attachment] = []

        self.load()

    def __repr__(self) -> str:
        return f"Message(uid={self._uid!r}, subject={self.get_subject()!r})"

    @property
    def uid(self) -> int:
        return self._uid

    @property
    def server(self) -> Server:
        return self._server

    @property
    def transport(self) -> MailTransport:
        return self._server.get_transport()

    def load(self, force_reload: bool = False) -> None:
        overview = self.get_overview(force_reload)
        self.raw_subject = overview.subject
        self.date = parse_date(overview.date)
        self.size = overview.size or 0
        self.status = MessageStatus.from_overview(overview)

        self.get_headers(force_reload)
        raw_headers = self._raw_headers or {}
        if "from" not in raw_headers:
            raise MissingFrom(f"Message {self._uid} has no From header")
        from_ = parse_address_list(raw_headers["from"])
        self.addresses = MessageAddresses(
            to=parse_address_list(raw_headers["to"]) if "to" in raw_headers else None,
            cc=parse_address_list(raw_headers["cc"]) if "cc" in raw_headers else None,
            from_=from_,
            reply_to=parse_address_list(raw_headers["reply-to"]) if "reply-to" in raw_headers else from_,
        )

        structure = self.get_structure(force_reload)
        walker = BodyPartWalker(
            fetch_part=self._fetch_part,
            make_attachment=lambda part, part_id: Attachment(self, part, part_id),
            logger=self.logger,
        )
        content = walker.walk(structure)
        self.plaintext_message = content.plaintext
        self.html_message = content.html
        self.attachments = content.attachments
        self.logger.debug(
            "Loaded message %s: plaintext=%s html=%s attachments=%s",
            self._uid,
            self.plaintext_message is not None,
            self.html_message is not None,
            len(self.attachments),
        )

    def reload(self) -> None:
        self.load(force_reload=True)

    def _fetch_part(self, part_id: str | None) -> bytes:
        self.logger.debug("Fetching part %s of message %s", part_id or "TEXT", self._uid)
        return self.transport.fetch_body(self._uid, part_id)

    def get_overview(self, force_reload: bool = False) -> OverviewRecord:
        if force_reload or self._overview is None:
            self.logger.debug("Fetching overview of message %s", self._uid)
            self._overview = self.transport.fetch_overview(self._uid)
        return self._overview

    def get_headers(self, force_reload: bool = False) -> dict[str, Any]:
        if force_reload or self._headers is None:
            self.logger.debug("Fetching headers of message %s", self._uid)
            raw_block = self.transport.fetch_header_block(self._uid)
            self._raw_headers = split_header_block(raw_block)
            self._headers = decode_header_block(raw_block)
        return self._headers

    def get_structure(self, force_reload: bool = False) -> BodyPartDescriptor:
        if force_reload or self._structure is None:
            self.logger.debug("Fetching structure of message %s", self._uid)
            self._structure = self.transport.fetch_structure(self._uid)
        return self._structure

    def get_uid(self) -> int:
        return self._uid

    def get_raw_subject(self) -> str | None:
        return self.raw_subject

    def get_subject(self) -> str | None:
        if self.raw_subject is None:
            return None
        return decode_mime_header(self.raw_subject)

    def get_date(self) -> datetime | None:
        return self.date

    def get_size(self) -> int:
        return self.size

    def get_addresses(self, kind: AddressType | str, as_string: bool = False) -> list[Address] | str:
        try:
            addresses = self.addresses.get(AddressType(kind))
        except ValueError:
            addresses = None
        if not addresses:
            return "" if as_string else []
        if as_string:
            return ", ".join(str(address) for address in addresses)
        return list(addresses)

    @property
    def to(self) -> list[Address]:
        return self.get_addresses(AddressType.TO)

    @property
    def cc(self) -> list[Address]:
        return self.get_addresses(AddressType.CC)

    @property
    def from_(self) -> list[Address]:
        return self.get_addresses(AddressType.FROM)

    @property
    def reply_to(self) -> list[Address]:
        return self.get_addresses(AddressType.REPLY_TO)

    def get_message_body(self, html: bool = False) -> str | None:
        if html:
            if self.html_message is not None:
                return self.html_message
            if self.plaintext_message is not None:
                return nl2br(self.plaintext_message)
        else:
            if self.plaintext_message is not None:
                return self.plaintext_message
            if self.html_message is not None:
                return strip_tags(self.html_message)
        return None

    def get_attachments(self, filename: str | None = None) -> Attachment | list[Attachment] | None:
        if not self.attachments:
            return None
        if filename is None:
            return list(self.attachments)

        matches = [attachment for attachment in self.attachments if attachment.get_file_name() == filename]
        if not matches:
            return None
        if len(matches) == 1:
            return matches[0]
        return matches

    def check_flag(self, flag: MessageFlag | str = MessageFlag.FLAGGED) -> bool:
        try:
            return self.status.get(MessageFlag(flag))
        except ValueError:
            return False

    def set_flag(self, flag: MessageFlag | str, enable: bool = True) -> None:
        try:
            message_flag = MessageFlag(flag)
        except ValueError as exc:
            raise InvalidFlagName(f"Unknown message flag: {flag!r}") from exc
        if message_flag is MessageFlag.RECENT:
            raise InvalidFlagName("The recent flag is read-only")

        if enable:
            self.transport.set_flag(self._uid, message_flag.imap_name)
        else:
            self.transport.clear_flag(self._uid, message_flag.imap_name)
        self.status.set(message_flag, enable)
        self.logger.debug("Flag %s %s on message %s", message_flag.imap_name, "set" if enable else "cleared", self._uid)

    def delete(self) -> None:
        self.transport.delete(self._uid)
        self.status.deleted = True

    def move_to_mailbox(self, mailbox: str) -> None:
        self.transport.move(self._uid, mailbox)
        self.logger.info("Moved message %s to %s", self._uid, mailbox)
