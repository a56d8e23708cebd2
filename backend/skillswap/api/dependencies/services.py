# backend/skillswap/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_workflow import BookingWorkflow
from ...services.notification_service import NotificationService
from ...services.offer_service import OfferService
from ...services.session_request_service import SessionRequestService
from ...services.session_service import SessionService
from ...services.user_directory import DatabaseUserDirectory
from .database import get_db

logger = logging.getLogger(__name__)


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    """Notification service writing to the in-app inbox."""
    return NotificationService(db)


def get_booking_workflow(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
) -> BookingWorkflow:
    """
    Get booking workflow instance with all dependencies.

    Args:
        db: Database session
        notification_service: Notification service for booking messages

    Returns:
        BookingWorkflow instance
    """
    return BookingWorkflow(
        db,
        user_directory=DatabaseUserDirectory(db),
        notification_service=notification_service,
    )


def get_offer_service(db: Session = Depends(get_db)) -> OfferService:
    return OfferService(db)


def get_session_request_service(db: Session = Depends(get_db)) -> SessionRequestService:
    return SessionRequestService(db)


def get_session_service(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
) -> SessionService:
    return SessionService(db, notification_service)
