"""
Decontamination Log Service.

Records the clean-up sign-off for a spill incident.
"""

import uuid
import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import MissingRequiredFieldsError, ExternalServiceError
from backend.app.models.decon_log import DeconLog
from backend.app.models.enums import PostInspectionStatus
from backend.app.models.spill_incident import SpillIncidentReport
from backend.app.schemas.decon_log import DeconLogCreate
from backend.app.services.edge_functions import EdgeFunctionClient
from backend.app.services.vehicle_service import VehicleService

logger = logging.getLogger(__name__)


class DeconService:

    @staticmethod
    async def create_log(
        db: AsyncSession,
        incident: SpillIncidentReport,
        data: DeconLogCreate,
        inspector: dict,
        edge: EdgeFunctionClient,
        now: datetime,
    ) -> DeconLog:
        """
        Stage a decon log for an incident.

        Raises:
            MissingRequiredFieldsError: If areas or signature are missing, or a
                failed inspection has no photo
            ResourceNotFoundError: If an explicit vehicle does not exist
        """
        missing = []
        if not [area for area in data.vehicle_areas if area.strip()]:
            missing.append("vehicle_areas")
        if not (data.inspector_signature or "").strip():
            missing.append("inspector_signature")
        if data.post_inspection_status == PostInspectionStatus.FAIL and not data.photos:
            missing.append("photos")
        if missing:
            raise MissingRequiredFieldsError(missing)

        vehicle_id = data.vehicle_id or incident.vehicle_id
        if data.vehicle_id:
            await VehicleService.get_vehicle(db, data.vehicle_id)

        weather_conditions, weather_details = data.weather_conditions, data.weather_details
        if not weather_conditions and data.latitude is not None and data.longitude is not None:
            try:
                weather = await edge.get_current_weather(data.latitude, data.longitude)
                weather_conditions = weather.description
                weather_details = weather_details or weather.summary
            except ExternalServiceError as exc:
                logger.warning("Decon log for incident %s saved without weather: %s", incident.id, exc.message)

        log = DeconLog(
            incident_id=incident.id,
            vehicle_id=vehicle_id,
            vehicle_areas=[area.strip() for area in data.vehicle_areas if area.strip()],
            location_type=data.location_type,
            weather_conditions=weather_conditions,
            weather_details=weather_details,
            ppe_items=data.ppe_items,
            ppe_compliance_status=data.ppe_compliance_status,
            decon_methods=data.decon_methods,
            post_inspection_status=data.post_inspection_status,
            inspector_signature=data.inspector_signature.strip(),
            inspector_clerk_id=inspector.get("user_id"),
            inspector_role=inspector.get("role"),
            verification_timestamp=now,
            follow_up_required=data.follow_up_required,
            photos=data.photos,
            notes=data.notes or None,
            performed_by_clerk=inspector.get("user_id") or "dispatch",
        )
        db.add(log)
        await db.flush()
        return log

    @staticmethod
    async def get_log(db: AsyncSession, incident_id: uuid.UUID, log_id: uuid.UUID) -> Optional[DeconLog]:
        result = await db.execute(
            select(DeconLog).where(DeconLog.id == log_id, DeconLog.incident_id == incident_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_for_incident(db: AsyncSession, incident_id: uuid.UUID) -> List[DeconLog]:
        result = await db.execute(
            select(DeconLog).where(DeconLog.incident_id == incident_id)
            .order_by(DeconLog.verification_timestamp.desc())
        )
        return result.scalars().all()
