"""
FastAPI dependencies for the redirect path.

The service handle is built once by the lifecycle manager and stored on
``app.state``; handlers receive it through ``Depends`` instead of reaching
for module globals.
"""

from dataclasses import dataclass

from fastapi import Request

from linker_app.errors import NotConfiguredError
from linker_app.services.resolver import Resolver


@dataclass(frozen=True)
class ServiceHandle:
    """Everything a request needs: the fallback target and the resolver."""
    default_url: str
    resolver: Resolver


def get_service_handle(request: Request) -> ServiceHandle:
    handle = getattr(request.app.state, "handle", None)
    if handle is None:
        raise NotConfiguredError("service handle is not installed")
    return handle
