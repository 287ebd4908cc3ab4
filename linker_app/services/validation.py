"""
Short name and destination URL checks shared by the admin operations and
the redirect path.
"""

from urllib.parse import urlsplit, urlunsplit

from linker_app.errors import InvalidURLError

# Punctuation rejected inside the accepted code point band
_BLACKLIST = frozenset(":;<=>?@[]\\^_`{|}~")


def is_name_valid(name: str) -> bool:
    """
    Check that a short name only holds allowed characters.

    Every character must fall in the code point band 48-123 and not be one
    of the blacklisted punctuation marks, which leaves ASCII letters and
    digits. The empty string passes; callers that need a name reject it
    themselves.
    """
    for char in name:
        value = ord(char)
        if value < 48 or value > 123:
            return False
        if char in _BLACKLIST:
            return False
    return True


def normalize_url(url: str) -> str:
    """
    Return ``url`` as an absolute URL, assuming ``https`` when no scheme is given.

    Raises:
        InvalidURLError: the URL is empty or cannot be parsed
    """
    value = url.strip()
    if not value:
        raise InvalidURLError(url)
    try:
        parts = urlsplit(value)
        if not parts.scheme:
            # "example.com/docs" parses as a bare path, re-read it as a host
            parts = urlsplit("https://" + value.lstrip("/"))
    except ValueError as err:
        raise InvalidURLError(url) from err
    if not parts.netloc and not parts.path:
        raise InvalidURLError(url)
    return urlunsplit(parts)
