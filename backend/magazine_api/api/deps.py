from __future__ import annotations

from typing import Callable

from fastapi import Request

from magazine_api.core.errors import ConfigurationError
from magazine_api.services.checklist import Checklist
from magazine_api.services.portone.client import PortOneClient


def get_gateway(request: Request) -> PortOneClient | None:
    return getattr(request.app.state, "gateway", None)


def require_gateway(gateway: PortOneClient | None) -> PortOneClient:
    if gateway is None:
        raise ConfigurationError("PORTONE_API_SECRET is not configured")
    return gateway


def checklist_for(steps: tuple[str, ...]) -> Callable[[Request], Checklist]:
    """Dependency that attaches a fresh checklist to the request.

    The error handlers read it back from ``request.state`` so failed
    responses report how far the request got.
    """

    def _dependency(request: Request) -> Checklist:
        checklist = Checklist(steps)
        request.state.checklist = checklist
        return checklist

    return _dependency
