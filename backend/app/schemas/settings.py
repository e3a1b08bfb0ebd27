"""
Company settings schemas.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class CompanySettingsUpdate(BaseModel):
    company_name: Optional[str] = Field(None, max_length=200)
    company_timezone: Optional[str] = Field(None, max_length=64)

    @field_validator("company_timezone")
    @classmethod
    def validate_timezone(cls, value):
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {value}")
        return value


class CompanySettingsResponse(BaseModel):
    company_name: Optional[str] = None
    company_timezone: Optional[str] = None
    effective_timezone: str

    class Config:
        from_attributes = True


class MaintenanceSettingsUpdate(BaseModel):
    enable_inhouse_features: Optional[bool] = None
    default_reminder_days: Optional[int] = Field(None, ge=0, le=365)
    default_reminder_miles: Optional[int] = Field(None, ge=0)


class MaintenanceSettingsResponse(BaseModel):
    enable_inhouse_features: bool
    default_reminder_days: int
    default_reminder_miles: int

    class Config:
        from_attributes = True
