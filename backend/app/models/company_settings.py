"""
Company-level settings.

Both tables hold a single row per deployment.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class CompanySettings(Base):
    __tablename__ = "company_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_name = Column(String(200), nullable=True)
    # IANA zone name; "today" for maintenance buckets is computed here
    company_timezone = Column(String(64), nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class CompanyMaintenanceSettings(Base):
    __tablename__ = "company_maintenance_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    enable_inhouse_features = Column(Boolean, default=False, nullable=False)
    default_reminder_days = Column(Integer, default=7, nullable=False)
    default_reminder_miles = Column(Integer, default=500, nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
