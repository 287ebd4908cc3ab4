import html
import re
from typing import NamedTuple, Optional

# A single slash followed by letters or digits, anchored at the start
_LEADING_NAME = re.compile(r"(^/[a-zA-Z0-9]+)")


class PathMatch(NamedTuple):
    """Candidate short name found at the start of a request URI"""
    uri: str
    end: int

    @property
    def name(self) -> str:
        return self.uri[1:self.end]

    @property
    def suffix(self) -> str:
        """Whatever follows the name: extra path segments, query string"""
        return self.uri[self.end:]


def match_path(uri: str) -> Optional[PathMatch]:
    """
    Find the short name at the start of a raw request URI.

    The URI is HTML-escaped before matching so markup can never reach a
    response. Escaping leaves ``/`` and alphanumerics untouched, so the
    matched span lines up with the raw URI and the suffix is returned
    verbatim.

    Returns:
        PathMatch, or None when the default redirect should be used
    """
    escaped = html.escape(uri)
    found = _LEADING_NAME.search(escaped)
    if found is None or found.start() != 0 or found.end() <= 1:
        return None
    return PathMatch(uri=uri, end=found.end())
