from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse, RedirectResponse, Response

from linker_app.dependencies import ServiceHandle, get_service_handle
from linker_app.errors import LookupFailedError
from linker_app.logging_config import get_logger
from linker_app.services.matcher import match_path
from linker_app.services.resolver import Resolver

logger = get_logger("http")

router = APIRouter(tags=["redirect"])

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@dataclass(frozen=True)
class Decision:
    """Outcome of one request: a redirect target or an error body"""
    status_code: int
    location: Optional[str] = None
    body: str = ""

    @classmethod
    def redirect(cls, location: str) -> "Decision":
        # 307 so clients keep the method and never cache a mutable link
        return cls(status.HTTP_307_TEMPORARY_REDIRECT, location=location)


async def decide_redirect(uri: str, default_url: str, resolver: Resolver) -> Decision:
    """
    Decide where a request URI should go.

    Flow:
    1. Root path (length <= 1) goes to the default URL
    2. No short name at the start of the path goes to the default URL
    3. Resolve the name; a failed lookup is a 500 naming the key
    4. Unknown name or empty URL goes to the default URL
    5. Otherwise the resolved URL, with any trailing path or query appended
    """
    if len(uri) <= 1:
        return Decision.redirect(default_url)

    match = match_path(uri)
    if match is None:
        return Decision.redirect(default_url)

    try:
        url = await resolver.resolve(match.name)
    except LookupFailedError as err:
        logger.error("lookup of %r failed: %s (cause: %r)", match.name, err, err.__cause__)
        return Decision(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            body=f'Could not fetch requested URL "{match.name}"',
        )

    if not url:
        return Decision.redirect(default_url)
    if match.suffix:
        return Decision.redirect(url + match.suffix)
    return Decision.redirect(url)


def request_uri(request: Request) -> str:
    """Rebuild the raw request target (path and query) from the ASGI scope."""
    raw_path = request.scope.get("raw_path") or request.scope.get("path", "").encode("utf-8")
    uri = raw_path.split(b"?", 1)[0].decode("latin-1")
    query = request.scope.get("query_string", b"")
    if query:
        uri += "?" + query.decode("latin-1")
    return uri


@router.api_route("/{full_path:path}", methods=ALL_METHODS, include_in_schema=False)
async def redirect_short_name(
    request: Request,
    handle: ServiceHandle = Depends(get_service_handle),
) -> Response:
    """
    Redirect any path to its mapped URL.

    A fault while handling one request is logged and answered with a bare
    500; the listener keeps serving the next request.
    """
    try:
        decision = await decide_redirect(request_uri(request), handle.default_url, handle.resolver)
        if decision.location is not None:
            return RedirectResponse(url=decision.location, status_code=decision.status_code)
        return PlainTextResponse(decision.body, status_code=decision.status_code)
    except Exception:
        logger.exception("http handler recovered from a fault")
        return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
