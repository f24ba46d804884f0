from __future__ import annotations

import re
from collections.abc import Iterable
from email.utils import formataddr, getaddresses

from mailfetch.errors import InvalidAddress

from .decoder import decode_mime_header

EMAIL_PATTERN = re.compile(r"^[^@]+@[^@]+$")


class Address:
    """An email address with an optional display name.

    The email is validated on construction and cannot change afterwards. The
    display name can be attached once; it is kept both as received and
    MIME-decoded.
    """

    __slots__ = ("_email", "_name", "_raw_name")

    def __init__(self, email: str, name: str | None = None):
        if not isinstance(email, str) or not EMAIL_PATTERN.match(email):
            raise InvalidAddress(f"Invalid email address: {email!r}")
        self._email = email
        self._name: str | None = None
        self._raw_name: str | None = None
        if name is not None:
            self.set_name(name)

    @property
    def email(self) -> str:
        return self._email

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def raw_name(self) -> str | None:
        return self._raw_name

    def get_email(self) -> str:
        return self._email

    def get_name(self) -> str | None:
        return self._name

    def get_raw_name(self) -> str | None:
        return self._raw_name

    def set_name(self, name: str) -> None:
        if not isinstance(name, str):
            return
        if self._raw_name is not None:
            raise AttributeError(f"Display name of {self._email} is already set")
        self._raw_name = name
        self._name = decode_mime_header(name) or ""

    def __str__(self) -> str:
        return formataddr((self._name or "", self._email))

    def __repr__(self) -> str:
        return f"Address({self._email!r}, name={self._name!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Address):
            return NotImplemented
        return (self._email, self._name) == (other._email, other._name)

    def __hash__(self) -> int:
        return hash((self._email, self._name))


def parse_address_list(raw_value: str | Iterable[str] | None) -> list[Address]:
    """Parse an address header value into :class:`Address` records.

    ``raw_value`` is the undecoded header text (or several occurrences of
    it). Group syntax without members, such as ``undisclosed-recipients:;``,
    yields nothing.
    """
    if not raw_value:
        return []
    if isinstance(raw_value, str):
        values = [raw_value]
    elif isinstance(raw_value, Iterable):
        values = [value for value in raw_value if isinstance(value, str)]
    else:
        return []

    addresses: list[Address] = []
    for personal, addr in getaddresses(values):
        if not addr:
            continue
        mailbox, _, host = addr.rpartition("@") if "@" in addr else (addr, "", "")
        address = Address(f"{mailbox}@{host}")
        if personal:
            address.set_name(personal)
        addresses.append(address)
    return addresses
