from typing import Optional

from fastapi import Depends, Header, Request

from journal_api.core.context import AppContext
from journal_api.features.auth.validator import Principal
from journal_api.shared.errors import ServiceUnavailable


def get_context(request: Request) -> AppContext:
    """Provide the application context for request handlers."""
    context: Optional[AppContext] = getattr(request.app.state, "context", None)
    if context is None or context.validator is None:
        raise ServiceUnavailable("Service is starting up")
    return context


async def require_principal(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    context: AppContext = Depends(get_context),
) -> Principal:
    """Authenticate the bearer token before any other work happens."""
    principal = await context.validator.authenticate(authorization)
    request.state.principal = principal
    return principal
