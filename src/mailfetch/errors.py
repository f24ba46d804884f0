from __future__ import annotations


class MailFetchError(Exception):
    pass


class ConfigError(MailFetchError):
    pass


class InvalidAddress(MailFetchError, ValueError):
    pass


class InvalidDate(MailFetchError, ValueError):
    pass


class MissingFrom(MailFetchError, LookupError):
    pass


class InvalidFlagName(MailFetchError, ValueError):
    pass


class TransportError(MailFetchError):
    pass


class UnsupportedService(MailFetchError):
    pass
