"""FastAPI dependencies: the shared service container and the caller's identity."""

from __future__ import annotations

from typing import Annotated

from fastapi import Header, HTTPException, Request

from src.services import Services


def get_services(request: Request) -> Services:
    services: Services | None = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Service not initialised")
    return services


def get_user_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    """Authenticated user id, set by the auth proxy in front of this API."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id
