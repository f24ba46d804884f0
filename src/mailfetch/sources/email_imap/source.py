from __future__ import annotations

import ssl
from typing import Any, Callable

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError

from mailfetch.core.mime.decoder import split_header_block
from mailfetch.errors import TransportError
from mailfetch.sources.models import BodyPartDescriptor, ConnectionSpec, OverviewRecord

from .bodystructure import BodyStructureError, to_descriptor

OVERVIEW_ITEMS = ["FLAGS", "RFC822.SIZE", "BODY.PEEK[HEADER.FIELDS (SUBJECT DATE)]"]
STATUS_FLAGS = ("recent", "flagged", "answered", "deleted", "seen", "draft")

IMAP_ERRORS = (IMAPClientError, OSError)


def _ssl_context(spec: ConnectionSpec) -> ssl.SSLContext:
    context = ssl.create_default_context()
    if spec.has_flag("novalidate-cert"):
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def _section(data: dict[bytes, Any]) -> bytes:
    """Return the single ``BODY[...]`` item of a parsed fetch response."""
    for key, value in data.items():
        if isinstance(key, bytes) and key.upper().startswith(b"BODY["):
            return bytes(value) if value is not None else b""
    return b""


def _flag_name(flag: Any) -> str:
    if isinstance(flag, (bytes, bytearray)):
        return bytes(flag).decode("ascii", errors="replace")
    return str(flag)


class ImapEmailSource:
    """:class:`~mailfetch.sources.base.MailTransport` over ``imapclient``.

    Every message operation addresses messages by UID. Body fetches use
    ``BODY.PEEK`` so reading a message never sets ``\\Seen``.
    """

    def __init__(self, client: IMAPClient, readonly: bool = False):
        self.client = client
        self.readonly = readonly
        self.mailbox: str | None = None
        self._exists = 0

    @classmethod
    def open(cls, spec: ConnectionSpec) -> ImapEmailSource:
        port = spec.port or (993 if spec.has_flag("ssl") else 143)
        try:
            if spec.has_flag("ssl"):
                client = IMAPClient(spec.host, port=port, ssl=True, ssl_context=_ssl_context(spec), timeout=spec.timeout)
            else:
                client = IMAPClient(spec.host, port=port, ssl=False, timeout=spec.timeout)
                if spec.has_flag("tls"):
                    client.starttls(ssl_context=_ssl_context(spec))
            client.login(spec.username or "", spec.password or "")
        except IMAP_ERRORS as exc:
            raise TransportError(f"IMAP connection to {spec.host}:{port} failed: {exc}") from exc

        source = cls(client, readonly=spec.has_flag("readonly"))
        source.select(spec.mailbox or "INBOX")
        return source

    def _call(self, description: str, method: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return method(*args, **kwargs)
        except IMAP_ERRORS as exc:
            raise TransportError(f"{description} failed: {exc}") from exc

    def _fetch(self, uid: int, items: list[str]) -> dict[bytes, Any]:
        response = self._call(f"UID FETCH {uid}", self.client.fetch, [uid], items)
        if uid not in response:
            raise TransportError(f"Message UID {uid} not found")
        return response[uid]

    def select(self, mailbox: str) -> None:
        response = self._call(f"SELECT {mailbox}", self.client.select_folder, mailbox, readonly=self.readonly)
        self.mailbox = mailbox
        self._exists = int(response.get(b"EXISTS") or 0)

    def close(self) -> None:
        if self.mailbox is not None:
            self._call("CLOSE", self.client.close_folder)
            self.mailbox = None
        self._call("LOGOUT", self.client.logout)

    def fetch_overview(self, uid: int) -> OverviewRecord:
        data = self._fetch(uid, OVERVIEW_ITEMS)
        flags = [_flag_name(flag) for flag in data.get(b"FLAGS", ())]
        lowered = {flag.lower().lstrip("\\") for flag in flags}
        headers = split_header_block(_section(data))

        record = OverviewRecord(
            uid=uid,
            subject=headers.get("subject", [None])[0],
            date=headers.get("date", [None])[0],
            size=int(data.get(b"RFC822.SIZE") or 0),
            flags=flags,
        )
        for name in STATUS_FLAGS:
            setattr(record, name, name in lowered)
        return record

    def fetch_header_block(self, uid: int) -> bytes:
        return _section(self._fetch(uid, ["BODY.PEEK[HEADER]"]))

    def fetch_structure(self, uid: int) -> BodyPartDescriptor:
        data = self._fetch(uid, ["BODYSTRUCTURE"])
        try:
            return to_descriptor(data.get(b"BODYSTRUCTURE"))
        except (BodyStructureError, IndexError, ValueError) as exc:
            raise TransportError(f"Unreadable BODYSTRUCTURE for UID {uid}: {exc}") from exc

    def fetch_body(self, uid: int, part: str | None = None) -> bytes:
        section = part or "TEXT"
        return _section(self._fetch(uid, [f"BODY.PEEK[{section}]"]))

    def search(self, criteria: str = "ALL") -> list[int]:
        return [int(uid) for uid in self._call(f"UID SEARCH {criteria}", self.client.search, criteria)]

    def num_messages(self) -> int:
        if self.mailbox is not None:
            self.select(self.mailbox)
        return self._exists

    def uid_for_sequence(self, sequence: int) -> int:
        self.client.use_uid = False
        try:
            response = self._call(f"FETCH {sequence} (UID)", self.client.fetch, [sequence], ["UID"])
        finally:
            self.client.use_uid = True
        uid = response.get(sequence, {}).get(b"UID")
        if uid is None:
            raise TransportError(f"No UID for message {sequence}")
        return int(uid)

    def set_flag(self, uid: int, flag: str) -> None:
        self._call(f"UID STORE {uid} +FLAGS", self.client.add_flags, [uid], [flag])

    def clear_flag(self, uid: int, flag: str) -> None:
        self._call(f"UID STORE {uid} -FLAGS", self.client.remove_flags, [uid], [flag])

    def delete(self, uid: int) -> None:
        self.set_flag(uid, "\\Deleted")

    def move(self, uid: int, mailbox: str) -> None:
        if self.client.has_capability("MOVE"):
            self._call(f"UID MOVE {uid}", self.client.move, [uid], mailbox)
            return
        self._call(f"UID COPY {uid}", self.client.copy, [uid], mailbox)
        self.delete(uid)

    def expunge(self) -> None:
        self._call("EXPUNGE", self.client.expunge)

    def has_mailbox(self, mailbox: str) -> bool:
        return bool(self._call(f"LIST {mailbox}", self.client.folder_exists, mailbox))

    def create_mailbox(self, mailbox: str) -> None:
        self._call(f"CREATE {mailbox}", self.client.create_folder, mailbox)
