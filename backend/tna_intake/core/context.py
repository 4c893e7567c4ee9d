"""
Per-request context shared by dependencies, endpoints and audit entries.

``RequestContextMiddleware`` stores the correlation id on
``request.state.request_id``; everything that audits reads it from here so
log lines and audit rows for one request can be joined.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from .config import ParameterProvider, Settings
from .security import generate_request_id


@dataclass(frozen=True)
class RequestContext:
    request_id: str
    ip_address: Optional[str]
    method: str
    path: str


def get_client_ip(request: Request) -> Optional[str]:
    """First address of X-Forwarded-For when behind a proxy, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = generate_request_id()
        request.state.request_id = request_id
    return request_id


async def get_request_context(request: Request) -> RequestContext:
    return RequestContext(
        request_id=get_request_id(request),
        ip_address=get_client_ip(request),
        method=request.method,
        path=request.url.path,
    )


async def get_parameters(request: Request) -> Settings:
    """Current parameter snapshot from the provider injected at app construction."""
    provider: ParameterProvider = request.app.state.parameters
    return provider.get()
