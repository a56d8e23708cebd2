"""
Base schemas shared by request and response DTOs.
"""

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict

from ..core.timezone_utils import as_utc

# Aware UTC on the way out, whatever the storage layer handed back.
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class StandardizedModel(BaseModel):
    """Base model with standardized JSON encoding, readable from ORM rows."""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True, from_attributes=True)


class StrictRequestModel(BaseModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)
