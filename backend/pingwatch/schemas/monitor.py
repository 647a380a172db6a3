"""Monitor schemas for the configuration front end."""
from datetime import datetime
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import settings


def _ascii_headers(value: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
    # HTTP header names and values are sent as ASCII
    for name, header_value in (value or {}).items():
        if not (name.isascii() and header_value.isascii()):
            raise ValueError(f"Header {name!r} must contain only ASCII characters")
    return value


class MonitorCreate(BaseModel):
    """Schema for registering a new monitor."""
    url: str = Field(..., min_length=1, pattern=r"^https?://")
    interval: int = Field(default=settings.default_interval_seconds, ge=settings.min_interval_seconds)
    keyword: Optional[str] = Field(None, min_length=1)
    headers: Optional[Dict[str, str]] = None

    @field_validator("headers")
    @classmethod
    def _check_headers(cls, value):
        return _ascii_headers(value) or None


class MonitorUpdate(BaseModel):
    """Schema for updating a monitor. Unset fields are left alone."""
    url: Optional[str] = Field(None, min_length=1, pattern=r"^https?://")
    interval: Optional[int] = Field(None, ge=settings.min_interval_seconds)
    keyword: Optional[str] = None  # "" removes the keyword
    headers: Optional[Dict[str, str]] = None  # {} removes all headers

    @field_validator("url", "interval")
    @classmethod
    def _not_null(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value

    @field_validator("headers")
    @classmethod
    def _check_headers(cls, value):
        return _ascii_headers(value)


class MonitorResponse(BaseModel):
    """A monitor with its accumulated stats."""
    id: int
    user_id: int
    url: str
    interval: int
    keyword: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    is_active: bool
    state: str
    success_count: int
    fail_count: int
    uptime_percent: Optional[float] = None
    last_ping_time: Optional[datetime] = None
    last_status_code: Optional[int] = None
    last_response_time: Optional[float] = None
    maintenance_until: Optional[datetime] = None
    ssl_expiry_date: Optional[datetime] = None


class EventLogResponse(BaseModel):
    """One retained probe outcome."""
    model_config = ConfigDict(from_attributes=True)

    status: str
    status_code: Optional[int] = None
    message: Optional[str] = None
    timestamp: datetime
