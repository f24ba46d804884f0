from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum


class BodyType(IntEnum):
    TEXT = 0
    MULTIPART = 1
    MESSAGE = 2
    APPLICATION = 3
    AUDIO = 4
    IMAGE = 5
    VIDEO = 6
    OTHER = 7

    @classmethod
    def from_name(cls, name: str | None) -> BodyType:
        if not name:
            return cls.OTHER
        try:
            return cls[name.strip().upper()]
        except KeyError:
            return cls.OTHER


@dataclass(slots=True, frozen=True)
class BodyParameter:
    attribute: str
    value: str


@dataclass(slots=True, frozen=True)
class BodyPartDescriptor:
    type: int
    subtype: str | None = None
    encoding: int = 0
    size: int | None = None
    parameters: tuple[BodyParameter, ...] | None = None
    dparameters: tuple[BodyParameter, ...] | None = None
    disposition: str | None = None
    parts: tuple[BodyPartDescriptor, ...] | None = None


@dataclass(slots=True)
class OverviewRecord:
    uid: int
    subject: str | None = None
    date: str | None = None
    size: int = 0
    recent: bool = False
    flagged: bool = False
    answered: bool = False
    deleted: bool = False
    seen: bool = False
    draft: bool = False
    flags: list[str] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class ConnectionSpec:
    host: str
    port: int | None
    service: str = "imap"
    username: str | None = None
    password: str | None = None
    mailbox: str = "INBOX"
    flags: tuple[str, ...] = ()
    options: int = 0
    timeout: float | None = None

    def has_flag(self, name: str) -> bool:
        return any(flag == name or flag.startswith(name + "=") for flag in self.flags)
