from __future__ import annotations

from typing import Protocol

from .models import BodyPartDescriptor, OverviewRecord


class MailTransport(Protocol):
    """Blocking mail protocol client addressed by message UID.

    Implementations are stateful (selected mailbox, open socket) and must not
    be shared across threads without external locking.
    """

    def select(self, mailbox: str) -> None: ...

    def close(self) -> None: ...

    def fetch_overview(self, uid: int) -> OverviewRecord: ...

    def fetch_header_block(self, uid: int) -> bytes: ...

    def fetch_structure(self, uid: int) -> BodyPartDescriptor: ...

    def fetch_body(self, uid: int, part: str | None = None) -> bytes: ...

    def search(self, criteria: str = "ALL") -> list[int]: ...

    def num_messages(self) -> int: ...

    def uid_for_sequence(self, sequence: int) -> int: ...

    def set_flag(self, uid: int, flag: str) -> None: ...

    def clear_flag(self, uid: int, flag: str) -> None: ...

    def delete(self, uid: int) -> None: ...

    def move(self, uid: int, mailbox: str) -> None: ...

    def expunge(self) -> None: ...

    def has_mailbox(self, mailbox: str) -> bool: ...

    def create_mailbox(self, mailbox: str) -> None: ...
