from fastapi import FastAPI

from linker_app import __version__
from linker_app.api import redirect
from linker_app.dependencies import ServiceHandle


def create_app(handle: ServiceHandle) -> FastAPI:
    """
    Build the redirect application around an immutable service handle.

    Every path belongs to the redirect router, so the interactive docs and
    the OpenAPI schema are switched off.
    """
    app = FastAPI(
        title="Linker",
        version=__version__,
        description="Short name to URL redirect service",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.handle = handle
    app.include_router(redirect.router)
    return app
