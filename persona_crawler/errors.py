from __future__ import annotations


class PersonaCrawlerError(Exception):
    """Base class for errors raised by the extraction engine."""


class ConfigError(PersonaCrawlerError, ValueError):
    """Configuration is missing or inconsistent."""


class DriverError(PersonaCrawlerError):
    """A page driver could not run a query against the loaded page."""


class FetchError(PersonaCrawlerError):
    """A strategy could not load a page."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason
