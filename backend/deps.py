"""
Shared FastAPI dependencies.

Routers import the app-wide event broadcaster and common query parameters
from here; the DB session dependency is database.get_db.
"""

from __future__ import annotations

from typing import TypedDict

from fastapi import Query, Request

from services.broadcaster import EventBroadcaster


class Pagination(TypedDict):
    limit: int
    offset: int


def pagination_params(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=100_000),
) -> Pagination:
    return {"limit": limit, "offset": offset}


def get_broadcaster(request: Request) -> EventBroadcaster:
    """The broadcaster built by main.create_app() for this application."""
    return request.app.state.broadcaster
