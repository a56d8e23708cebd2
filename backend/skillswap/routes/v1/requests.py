# backend/skillswap/routes/v1/requests.py
"""
Session request routes - API v1

Endpoints:
    GET / - Requests the acting user is party to
    POST /{request_id}/accept - Tutor accepts a pending request
    POST /{request_id}/decline - Tutor declines a pending request
"""

import asyncio
import logging
from typing import List, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from ...api.dependencies import (
    get_booking_workflow,
    get_current_user_id,
    get_session_request_service,
)
from ...core.exceptions import DomainException
from ...schemas.session import SessionResponse
from ...schemas.session_request import AcceptResponse, RequestListItem, RequestResponse
from ...services.booking_workflow import BookingWorkflow
from ...services.session_request_service import SessionRequestService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["requests-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("", response_model=List[RequestListItem])
async def list_requests(
    role: str = Query("all", pattern="^(tutor|student|all)$"),
    status_filter: str = Query(
        "all", alias="status", pattern="^(pending|accepted|declined|cancelled|all)$"
    ),
    current_user_id: str = Depends(get_current_user_id),
    request_service: SessionRequestService = Depends(get_session_request_service),
) -> List[RequestListItem]:
    """Requests where the caller is tutor, student or either, newest first."""
    try:
        return await asyncio.to_thread(
            request_service.list_requests, current_user_id, role, status_filter
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{request_id}/accept",
    response_model=AcceptResponse,
    responses={
        403: {"description": "Not the request's tutor"},
        404: {"description": "Request not found"},
        409: {"description": "Request already resolved or slot already full"},
    },
)
async def accept_request(
    request_id: str = Path(..., description="Request ULID", pattern=ULID_PATH_PATTERN),
    current_user_id: str = Depends(get_current_user_id),
    workflow: BookingWorkflow = Depends(get_booking_workflow),
) -> AcceptResponse:
    try:
        result = await asyncio.to_thread(workflow.accept_request, request_id, current_user_id)
        return AcceptResponse(
            request=RequestResponse.model_validate(result.request),
            session=SessionResponse.model_validate(result.session),
            declined_request_ids=[r.id for r in result.declined],
            offer_closed=result.offer_closed,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{request_id}/decline",
    response_model=RequestResponse,
    responses={
        403: {"description": "Not the request's tutor"},
        404: {"description": "Request not found"},
        409: {"description": "Request already resolved"},
    },
)
async def decline_request(
    request_id: str = Path(..., description="Request ULID", pattern=ULID_PATH_PATTERN),
    current_user_id: str = Depends(get_current_user_id),
    workflow: BookingWorkflow = Depends(get_booking_workflow),
) -> RequestResponse:
    try:
        request = await asyncio.to_thread(workflow.decline_request, request_id, current_user_id)
        return RequestResponse.model_validate(request)
    except DomainException as e:
        handle_domain_exception(e)
