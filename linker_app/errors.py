"""
Exception hierarchy for Linker.

Every error raised by the package derives from LinkerError so callers
(the CLI, the lifecycle manager) can catch one type. The original cause is
always chained with ``raise ... from err`` and stays inspectable through
``__cause__``.
"""

from typing import List, Optional


class LinkerError(Exception):
    """Base class for all Linker errors"""


class ConfigError(LinkerError):
    """Configuration could not be loaded or applied (fatal at startup)"""


class NotConfiguredError(LinkerError):
    """An operation was attempted on a service that is not configured"""

    def __init__(self, message: str = "database is not loaded or configured"):
        super().__init__(message)


class InvalidNameError(LinkerError):
    """A short name contains invalid or non printable characters"""

    def __init__(self, name: str):
        super().__init__(f'name "{name}" contains invalid characters')
        self.name = name


class InvalidURLError(LinkerError):
    """A destination URL could not be parsed"""

    def __init__(self, url: str):
        super().__init__(f'invalid URL "{url}"')
        self.url = url


class DuplicateNameError(LinkerError):
    """A mapping with the same short name already exists"""

    def __init__(self, name: str):
        super().__init__(f'a link named "{name}" already exists')
        self.name = name


class LookupFailedError(LinkerError):
    """The lookup query failed for a reason other than a missing row"""

    def __init__(self, name: str, message: Optional[str] = None):
        super().__init__(message or f'unable to look up "{name}"')
        self.name = name


class LookupCancelledError(LookupFailedError):
    """The lookup was abandoned because the service is shutting down"""

    def __init__(self, name: str):
        super().__init__(name, f'lookup of "{name}" was cancelled')


class StatementClosedError(LinkerError):
    """The prepared lookup statement was used after it was closed"""


class ServerError(LinkerError):
    """The HTTP server failed to start or stopped unexpectedly"""


class ShutdownError(LinkerError):
    """
    One or more teardown steps failed.

    All steps are still attempted; ``errors`` holds every failure in the
    order it happened.
    """

    def __init__(self, errors: List[Exception]):
        super().__init__("; ".join(str(e) for e in errors))
        self.errors = errors
