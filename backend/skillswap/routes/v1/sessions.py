# backend/skillswap/routes/v1/sessions.py
"""
Tutoring session routes - API v1

Endpoints:
    GET / - Sessions of the acting user (tutor-side group sessions collapsed)
    GET /{session_id} - One session, parties only
    PATCH /{session_id} - Complete, cancel or set the meeting link
"""

import asyncio
import logging
from typing import List, NoReturn

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status

from ...api.dependencies import get_current_user_id, get_session_service
from ...core.exceptions import DomainException
from ...schemas.session import SessionListEntry, SessionUpdate
from ...services.session_service import SessionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sessions-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("", response_model=List[SessionListEntry])
async def list_sessions(
    role: str = Query("all", pattern="^(tutor|student|all)$"),
    status_filter: str = Query(
        "all", alias="status", pattern="^(scheduled|completed|cancelled|all)$"
    ),
    current_user_id: str = Depends(get_current_user_id),
    session_service: SessionService = Depends(get_session_service),
) -> List[SessionListEntry]:
    try:
        return await asyncio.to_thread(
            session_service.list_sessions, current_user_id, role, status_filter
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/{session_id}",
    response_model=SessionListEntry,
    responses={403: {"description": "Not a party"}, 404: {"description": "Session not found"}},
)
async def get_session(
    session_id: str = Path(..., description="Session ULID", pattern=ULID_PATH_PATTERN),
    current_user_id: str = Depends(get_current_user_id),
    session_service: SessionService = Depends(get_session_service),
) -> SessionListEntry:
    try:
        return await asyncio.to_thread(session_service.get_session, session_id, current_user_id)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch(
    "/{session_id}",
    response_model=SessionListEntry,
    responses={
        403: {"description": "Not a party, or not the tutor for meeting links"},
        404: {"description": "Session not found"},
        409: {"description": "Session is no longer scheduled"},
    },
)
async def update_session(
    session_id: str = Path(..., description="Session ULID", pattern=ULID_PATH_PATTERN),
    payload: SessionUpdate = Body(...),
    current_user_id: str = Depends(get_current_user_id),
    session_service: SessionService = Depends(get_session_service),
) -> SessionListEntry:
    """Group sessions are updated for every student when the tutor acts."""
    try:
        return await asyncio.to_thread(
            session_service.update_session, session_id, current_user_id, payload
        )
    except DomainException as e:
        handle_domain_exception(e)
