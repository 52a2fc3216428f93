from dataclasses import dataclass

from fastapi import Depends
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from salesflow.context import get_correlation_id
from salesflow.core.auth import AuthUser, get_current_user


@dataclass
class RequestContext:
    request_id: str
    correlation_id: str
    user_id: str | None


@dataclass
class ActorContext:
    user_id: str
    roles: list[str]
    correlation_id: str | None = None


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = getattr(request.state, "correlation_id", None)
        request.state.context = RequestContext(
            request_id=correlation_id or "",
            correlation_id=correlation_id or "",
            user_id=None,
        )
        response = await call_next(request)
        response.headers["x-request-id"] = request.state.context.request_id
        return response


def get_actor_context(request: Request, auth_user: AuthUser = Depends(get_current_user)) -> ActorContext:
    correlation_id = get_correlation_id() or getattr(getattr(request.state, "context", None), "request_id", None)
    return ActorContext(user_id=auth_user.sub, roles=list(auth_user.roles), correlation_id=correlation_id)
