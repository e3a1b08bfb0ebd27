"""
Spill Incident Service.

Creates incident reports from the office form and the driver quick log,
attaches photos and produces the summary and export data.
"""

import csv
import io
import uuid
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import MissingRequiredFieldsError, ExternalServiceError
from backend.app.models.enums import IncidentSeverity, IncidentStatus
from backend.app.models.spill_incident import SpillIncidentReport, IncidentPhoto, IncidentWitness
from backend.app.schemas.spill_incident import (
    IncidentCreate,
    DriverIncidentCreate,
    IncidentSummaryResponse,
    AUTHORITIES_NOTIFIED_ACTION,
)
from backend.app.services.storage import StorageClient
from backend.app.services.vehicle_service import VehicleService

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "id", "incident_date", "license_plate", "spill_type", "severity", "status",
    "location_description", "cause_description", "immediate_action_taken",
    "volume_estimate", "volume_unit", "responsible_party", "weather_conditions",
    "cleanup_actions", "authorities_notified", "regulatory_notification_required",
    "regulatory_notification_sent", "witness_count", "photo_count", "driver_id",
]


def _require_incident_fields(data) -> None:
    missing = [
        name for name in ("vehicle_id", "spill_type", "location_description", "cause_description")
        if not (str(getattr(data, name)).strip() if getattr(data, name) is not None else "")
    ]
    if missing:
        raise MissingRequiredFieldsError(missing)


class IncidentService:

    @staticmethod
    async def get_incident(db: AsyncSession, incident_id: uuid.UUID) -> Optional[SpillIncidentReport]:
        result = await db.execute(
            select(SpillIncidentReport).where(SpillIncidentReport.id == incident_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def create_incident(db: AsyncSession, data: IncidentCreate, reporter_id: str, now: datetime) -> SpillIncidentReport:
        """
        Stage an incident from the office form with its witnesses and photo URLs.

        authorities_notified follows the "Authorities notified" cleanup action.

        Raises:
            MissingRequiredFieldsError: If vehicle, spill type, location or cause is missing
            ResourceNotFoundError: If the vehicle does not exist
        """
        _require_incident_fields(data)
        await VehicleService.get_vehicle(db, data.vehicle_id)

        incident = SpillIncidentReport(
            vehicle_id=data.vehicle_id,
            spill_type=data.spill_type.strip(),
            location_description=data.location_description.strip(),
            cause_description=data.cause_description.strip(),
            immediate_action_taken=data.immediate_action_taken or None,
            incident_date=data.incident_date or now,
            severity=data.severity,
            status=IncidentStatus.OPEN,
            responsible_party=data.responsible_party,
            volume_estimate=data.volume_estimate,
            volume_unit=data.volume_unit,
            weather_conditions=data.weather_conditions or None,
            cleanup_actions=list(data.cleanup_actions),
            witnesses_present=len(data.witnesses) > 0,
            regulatory_notification_required=data.regulatory_notification_required,
            regulatory_notification_sent=False,
            authorities_notified=AUTHORITIES_NOTIFIED_ACTION in data.cleanup_actions,
            driver_id=reporter_id,
        )
        incident.witnesses = [
            IncidentWitness(name=w.name, contact_info=w.contact_info) for w in data.witnesses
        ]
        incident.photos = [
            IncidentPhoto(photo_url=url, photo_type="general") for url in data.photo_urls
        ]

        db.add(incident)
        await db.flush()
        return incident

    @staticmethod
    async def create_driver_log(db: AsyncSession, data: DriverIncidentCreate, driver_id: str, now: datetime) -> SpillIncidentReport:
        """
        Stage a driver quick-log incident.

        Severity, status and responsible party are filled in for office
        review: minor, pending_review and unknown.
        """
        _require_incident_fields(data)
        await VehicleService.get_vehicle(db, data.vehicle_id)

        incident = SpillIncidentReport(
            vehicle_id=data.vehicle_id,
            spill_type=data.spill_type.strip(),
            location_description=data.location_description.strip(),
            cause_description=data.cause_description.strip(),
            immediate_action_taken=data.immediate_action_taken or None,
            incident_date=data.incident_date or now,
            severity=IncidentSeverity.MINOR,
            status=IncidentStatus.PENDING_REVIEW,
            responsible_party="unknown",
            driver_id=driver_id,
            witnesses_present=False,
            regulatory_notification_required=False,
            regulatory_notification_sent=False,
            authorities_notified=False,
            cleanup_actions=[],
        )
        db.add(incident)
        await db.flush()
        return incident

    @staticmethod
    async def upload_photos(
        db: AsyncSession,
        incident: SpillIncidentReport,
        files: List[Tuple[str, bytes, str]],
        storage: StorageClient,
    ) -> Tuple[List[IncidentPhoto], List[str]]:
        """
        Upload photo files and stage a photo row for each one stored.

        A failed upload is logged and skipped; it never fails the incident.

        Args:
            files: (filename, content, content_type) tuples

        Returns:
            (staged photo rows, names of files that failed)
        """
        uploaded, failed = [], []
        for filename, content, content_type in files:
            extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else "jpg"
            path = f"{incident.id}/{int(datetime.now(timezone.utc).timestamp() * 1000)}-{uuid.uuid4().hex[:8]}.{extension}"
            try:
                url = await storage.upload(settings.incident_photos_bucket, path, content, content_type)
            except ExternalServiceError as exc:
                logger.error("Error uploading photo %s for incident %s: %s", filename, incident.id, exc.message)
                failed.append(filename)
                continue

            photo = IncidentPhoto(incident_id=incident.id, photo_url=url, photo_type="incident_photo")
            db.add(photo)
            uploaded.append(photo)

        await db.flush()
        return uploaded, failed

    @staticmethod
    async def list_incidents(
        db: AsyncSession,
        driver_id: Optional[str] = None,
        status: Optional[IncidentStatus] = None,
        severity: Optional[IncidentSeverity] = None,
        vehicle_id: Optional[uuid.UUID] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        page_size: Optional[int] = 50,
    ) -> Tuple[List[SpillIncidentReport], int]:
        """Incidents newest first; driver_id scopes the list to one reporter."""
        filters = []
        if driver_id:
            filters.append(SpillIncidentReport.driver_id == driver_id)
        if status:
            filters.append(SpillIncidentReport.status == status)
        if severity:
            filters.append(SpillIncidentReport.severity == severity)
        if vehicle_id:
            filters.append(SpillIncidentReport.vehicle_id == vehicle_id)
        if date_from:
            filters.append(SpillIncidentReport.incident_date >= date_from)
        if date_to:
            filters.append(SpillIncidentReport.incident_date <= date_to)

        total = (await db.execute(select(func.count(SpillIncidentReport.id)).where(*filters))).scalar() or 0

        query = select(SpillIncidentReport).where(*filters).order_by(SpillIncidentReport.incident_date.desc())
        if page_size:
            query = query.offset((page - 1) * page_size).limit(page_size)
        return (await db.execute(query)).scalars().all(), total

    @staticmethod
    async def summary(db: AsyncSession) -> IncidentSummaryResponse:
        status_rows = await db.execute(
            select(SpillIncidentReport.status, func.count(SpillIncidentReport.id)).group_by(SpillIncidentReport.status)
        )
        by_status = {s.value: 0 for s in IncidentStatus}
        for status, count in status_rows:
            by_status[IncidentStatus(status).value] = count

        severity_rows = await db.execute(
            select(SpillIncidentReport.severity, func.count(SpillIncidentReport.id)).group_by(SpillIncidentReport.severity)
        )
        by_severity = {s.value: 0 for s in IncidentSeverity}
        for severity, count in severity_rows:
            by_severity[IncidentSeverity(severity).value] = count

        regulatory_pending = (await db.execute(
            select(func.count(SpillIncidentReport.id)).where(
                SpillIncidentReport.regulatory_notification_required == True,
                SpillIncidentReport.regulatory_notification_sent == False,
            )
        )).scalar() or 0

        return IncidentSummaryResponse(
            total=sum(by_status.values()),
            by_status=by_status,
            by_severity=by_severity,
            regulatory_pending=regulatory_pending,
        )

    @staticmethod
    def export_rows(incidents: List[SpillIncidentReport]) -> List[Dict]:
        """Flatten incidents for export (export_incident_data)."""
        rows = []
        for incident in incidents:
            rows.append({
                "id": str(incident.id),
                "incident_date": incident.incident_date.isoformat(),
                "license_plate": incident.vehicle.license_plate if incident.vehicle else "",
                "spill_type": incident.spill_type,
                "severity": incident.severity.value,
                "status": incident.status.value,
                "location_description": incident.location_description,
                "cause_description": incident.cause_description,
                "immediate_action_taken": incident.immediate_action_taken or "",
                "volume_estimate": incident.volume_estimate,
                "volume_unit": incident.volume_unit or "",
                "responsible_party": incident.responsible_party,
                "weather_conditions": incident.weather_conditions or "",
                "cleanup_actions": "; ".join(incident.cleanup_actions or []),
                "authorities_notified": incident.authorities_notified,
                "regulatory_notification_required": incident.regulatory_notification_required,
                "regulatory_notification_sent": incident.regulatory_notification_sent,
                "witness_count": len(incident.witnesses),
                "photo_count": len(incident.photos),
                "driver_id": incident.driver_id,
            })
        return rows

    @staticmethod
    def export_csv(incidents: List[SpillIncidentReport]) -> str:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
        writer.writeheader()
        for row in IncidentService.export_rows(incidents):
            writer.writerow({k: "" if v is None else v for k, v in row.items()})
        return buffer.getvalue()

    @staticmethod
    def notification_payload(incident: SpillIncidentReport) -> Dict:
        return {
            "incident_id": str(incident.id),
            "vehicle_id": str(incident.vehicle_id),
            "spill_type": incident.spill_type,
            "severity": incident.severity.value,
            "status": incident.status.value,
            "driver_id": incident.driver_id,
            "incident_date": incident.incident_date.isoformat(),
            "regulatory_notification_required": incident.regulatory_notification_required,
        }
