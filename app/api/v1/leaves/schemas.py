from datetime import date, datetime
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, Field, field_validator, model_validator

from app.core.enums import LeaveStatus


def parse_calendar_date(value: Any) -> Any:
    """Accept only ``YYYY-MM-DD`` strings (or date objects); no times, no timestamps."""
    if isinstance(value, datetime):
        raise ValueError("expected a calendar date in YYYY-MM-DD format")
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value, "%Y-%m-%d").date()
        except ValueError:
            raise ValueError("expected a calendar date in YYYY-MM-DD format")
    raise ValueError("expected a calendar date in YYYY-MM-DD format")


# For query parameters, which would otherwise accept datetimes and timestamps.
CalendarDate = Annotated[date, BeforeValidator(parse_calendar_date)]


# ----- Leave Type -----
class LeaveTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    default_days: int = Field(..., ge=0)


class LeaveTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    default_days: Optional[int] = Field(None, ge=0)


class LeaveTypeResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    default_days: int
    created_at: datetime

    class Config:
        from_attributes = True


# ----- Leave Request -----
class LeaveRequestCreate(BaseModel):
    leave_type_id: int
    start_date: date
    end_date: date
    reason: str = Field(..., min_length=1, max_length=2000)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, value: Any) -> Any:
        return parse_calendar_date(value)

    @model_validator(mode="after")
    def validate_range(self) -> "LeaveRequestCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class LeaveRequestUpdate(BaseModel):
    """Either a decision (status, optional remarks) by an approver, or a reason edit by the owner."""

    status: Optional[LeaveStatus] = None
    reason: Optional[str] = Field(None, min_length=1, max_length=2000)
    remarks: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def validate_one_change(self) -> "LeaveRequestUpdate":
        if self.status is None and self.reason is None:
            raise ValueError("Provide a status or a reason")
        if self.status is not None and self.reason is not None:
            raise ValueError("Provide either a status or a reason, not both")
        return self


class LeaveRequestResponse(BaseModel):
    id: int
    user_id: int
    full_name: Optional[str] = None
    department: Optional[str] = None
    leave_type_id: int
    leave_type: Optional[str] = None
    start_date: date
    end_date: date
    total_days: int
    reason: str
    status: LeaveStatus
    decided_by: Optional[int] = None
    decided_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class DeleteResponse(BaseModel):
    success: bool = True
    message: str


# ----- Department conflicts -----
class ConflictingLeave(BaseModel):
    id: int
    user_id: int
    full_name: str
    department: str
    leave_type: Optional[str] = None
    start_date: date
    end_date: date
    status: LeaveStatus


class ConflictCheckResponse(BaseModel):
    has_conflict: bool
    department: str
    conflicts: List[ConflictingLeave] = Field(default_factory=list)


# ----- Leave Balance -----
class LeaveBalanceResponse(BaseModel):
    user_id: int
    leave_type_id: int
    leave_type: str
    default_days: int
    days_remaining: int


class LeaveBalanceUpdate(BaseModel):
    leave_type_id: int
    days: int = Field(..., ge=0)
