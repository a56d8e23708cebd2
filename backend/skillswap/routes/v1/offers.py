# backend/skillswap/routes/v1/offers.py
"""
Offer routes - API v1

Versioned offer endpoints under /api/v1/offers.
All business logic delegated to OfferService and BookingWorkflow.

Endpoints:
    GET / - List open offers from other tutors
    POST / - Publish an offer with its slots
    GET /mine - The acting tutor's offers with pending counts
    GET /{offer_id} - Offer details with per-slot accepted counts
    POST /{offer_id}/requests - Request a slot (existing or proposed)
    POST /{offer_id}/cancel - Withdraw an offer
"""

import asyncio
import logging
from typing import List, NoReturn

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status

from ...api.dependencies import (
    get_booking_workflow,
    get_current_user_id,
    get_offer_service,
)
from ...core.exceptions import DomainException
from ...schemas.offer import OfferCancelResponse, OfferCreate, OfferFilter, OfferResponse
from ...schemas.session_request import RequestCreate, RequestResponse
from ...services.booking_workflow import BookingWorkflow
from ...services.offer_service import OfferService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["offers-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("", response_model=List[OfferResponse])
async def list_open_offers(
    filters: OfferFilter = Depends(),
    current_user_id: str = Depends(get_current_user_id),
    offer_service: OfferService = Depends(get_offer_service),
) -> List[OfferResponse]:
    """List open offers, newest first, excluding the caller's own."""
    try:
        return await asyncio.to_thread(
            offer_service.list_open_offers,
            viewer_id=current_user_id,
            tutor_id=filters.tutor_id,
            skill_id=filters.skill_id,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
async def create_offer(
    payload: OfferCreate = Body(...),
    current_user_id: str = Depends(get_current_user_id),
    workflow: BookingWorkflow = Depends(get_booking_workflow),
) -> OfferResponse:
    try:
        offer = await asyncio.to_thread(workflow.create_offer, current_user_id, payload)
        return await asyncio.to_thread(workflow.offer_service.get_offer, offer.id)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/mine", response_model=List[OfferResponse])
async def list_my_offers(
    status_filter: str = Query("open", alias="status", pattern="^(open|closed|all)$"),
    current_user_id: str = Depends(get_current_user_id),
    offer_service: OfferService = Depends(get_offer_service),
) -> List[OfferResponse]:
    """The caller's offers with pending request counts."""
    try:
        return await asyncio.to_thread(offer_service.list_my_offers, current_user_id, status_filter)
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/{offer_id}",
    response_model=OfferResponse,
    responses={404: {"description": "Offer not found"}},
)
async def get_offer(
    offer_id: str = Path(..., description="Offer ULID", pattern=ULID_PATH_PATTERN),
    current_user_id: str = Depends(get_current_user_id),
    offer_service: OfferService = Depends(get_offer_service),
) -> OfferResponse:
    try:
        return await asyncio.to_thread(offer_service.get_offer, offer_id)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{offer_id}/requests",
    response_model=RequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Offer or slot not found"},
        409: {"description": "Student already holds an active request"},
    },
)
async def create_request(
    offer_id: str = Path(..., description="Offer ULID", pattern=ULID_PATH_PATTERN),
    payload: RequestCreate = Body(...),
    current_user_id: str = Depends(get_current_user_id),
    workflow: BookingWorkflow = Depends(get_booking_workflow),
) -> RequestResponse:
    """Request an existing slot or propose a time of your own."""
    try:
        request = await asyncio.to_thread(
            workflow.create_request, offer_id, current_user_id, payload.slot
        )
        return RequestResponse.model_validate(request)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{offer_id}/cancel",
    response_model=OfferCancelResponse,
    responses={
        403: {"description": "Not the offer's tutor"},
        409: {"description": "Offer already closed"},
    },
)
async def cancel_offer(
    offer_id: str = Path(..., description="Offer ULID", pattern=ULID_PATH_PATTERN),
    current_user_id: str = Depends(get_current_user_id),
    workflow: BookingWorkflow = Depends(get_booking_workflow),
) -> OfferCancelResponse:
    try:
        result = await asyncio.to_thread(workflow.cancel_offer, offer_id, current_user_id)
        offer = await asyncio.to_thread(workflow.offer_service.get_offer, result.offer.id)
        return OfferCancelResponse(
            offer=offer, cancelled_request_ids=[r.id for r in result.cancelled]
        )
    except DomainException as e:
        handle_domain_exception(e)
