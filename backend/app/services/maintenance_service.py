"""
Maintenance Service.

Record creation (one-off and recurring), list filtering, the dashboard KPIs
and the overdue/upcoming lists. Endpoints own commits, audit entries and
cache invalidation; this module only reads and stages rows.
"""

import csv
import io
import uuid
from datetime import date, timedelta
from typing import Optional, List, Tuple
from sqlalchemy import select, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import MissingRequiredFieldsError, ResourceNotFoundError, InvalidStateError
from backend.app.domain.maintenance.interval_resolver import IntervalResolver
from backend.app.domain.maintenance.status_buckets import bucket_clause
from backend.app.models.enums import MaintenanceStatus, StatusBucket
from backend.app.models.maintenance import MaintenanceRecord, MaintenanceTaskType, MaintenanceVendor
from backend.app.models.vehicle import Vehicle
from backend.app.schemas.maintenance import (
    MaintenanceRecordCreate,
    MaintenanceRecordUpdate,
    RecurringServiceCreate,
    MaintenanceCompleteRequest,
    MaintenanceKPIs,
    MaintenanceRecordResponse,
    VehicleMaintenanceOverview,
)
from backend.app.services.vehicle_service import VehicleService

DEFAULT_DESCRIPTION = "General Maintenance"

# Statuses that still need work; cancelled records drop out of the dashboards
OPEN_STATUSES = (MaintenanceStatus.SCHEDULED, MaintenanceStatus.IN_PROGRESS)

EXPORT_COLUMNS = [
    "scheduled_date", "completed_date", "vehicle", "license_plate", "description",
    "maintenance_type", "task_type", "vendor", "status", "priority",
    "cost", "parts_cost", "labor_cost", "total_cost", "mileage_at_service", "notes",
]


def _effective_cost_expr():
    """SQL twin of MaintenanceRecord.effective_cost."""
    return func.coalesce(
        func.nullif(MaintenanceRecord.total_cost, 0),
        func.nullif(MaintenanceRecord.cost, 0),
        func.coalesce(MaintenanceRecord.parts_cost, 0) + func.coalesce(MaintenanceRecord.labor_cost, 0),
    )


class MaintenanceService:

    @staticmethod
    async def get_record(db: AsyncSession, record_id: uuid.UUID) -> Optional[MaintenanceRecord]:
        # populate_existing reloads relationships on rows staged earlier in this session
        result = await db.execute(
            select(MaintenanceRecord).where(MaintenanceRecord.id == record_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _ensure_vendor(db: AsyncSession, vendor_id) -> Optional[uuid.UUID]:
        """Validate a vendor reference; None and "internal" mean in-house work."""
        if vendor_id in (None, "", "internal"):
            return None
        try:
            vendor_uuid = vendor_id if isinstance(vendor_id, uuid.UUID) else uuid.UUID(str(vendor_id))
        except ValueError:
            raise ResourceNotFoundError("Vendor", str(vendor_id))
        if await db.get(MaintenanceVendor, vendor_uuid) is None:
            raise ResourceNotFoundError("Vendor", str(vendor_uuid))
        return vendor_uuid

    @staticmethod
    async def create_record(db: AsyncSession, data: MaintenanceRecordCreate) -> MaintenanceRecord:
        """
        Stage a one-off maintenance record.

        Raises:
            MissingRequiredFieldsError: If vehicle, scheduled date or cost is missing
            ResourceNotFoundError: If the vehicle or vendor does not exist
        """
        missing = [
            name for name, value in (
                ("vehicle_id", data.vehicle_id),
                ("scheduled_date", data.scheduled_date),
                ("cost", data.cost),
            )
            if value is None
        ]
        if missing:
            raise MissingRequiredFieldsError(missing)

        await VehicleService.get_vehicle(db, data.vehicle_id)
        vendor_id = await MaintenanceService._ensure_vendor(db, data.vendor_id)

        description = data.description or data.maintenance_type or DEFAULT_DESCRIPTION
        record = MaintenanceRecord(
            vehicle_id=data.vehicle_id,
            task_type_id=data.task_type_id,
            vendor_id=vendor_id,
            description=description,
            maintenance_type=data.maintenance_type or description,
            scheduled_date=data.scheduled_date,
            status=data.status,
            priority=data.priority,
            cost=data.cost,
            parts_cost=data.parts_cost,
            labor_cost=data.labor_cost,
            mileage_at_service=data.mileage_at_service,
            notes=data.notes,
        )
        if data.status == MaintenanceStatus.COMPLETED:
            record.completed_date = data.scheduled_date

        db.add(record)
        await db.flush()
        return record

    @staticmethod
    async def create_recurring(db: AsyncSession, data: RecurringServiceCreate) -> MaintenanceRecord:
        """
        Stage a recurring service, computing its next due point.

        The task type is matched by name (case-insensitive) when a name is
        given, otherwise taken from task_type_id. Mileage intervals count
        from vehicle_miles, or the vehicle's odometer when not supplied.

        Raises:
            MissingRequiredFieldsError: If a required field is missing or the interval is not positive
            ResourceNotFoundError: If the vehicle or vendor does not exist
        """
        missing = [
            name for name, value in (
                ("vehicle_id", data.vehicle_id),
                ("start_date", data.start_date),
                ("estimated_cost", data.estimated_cost),
                ("interval_type", data.interval_type),
                ("interval_value", data.interval_value),
            )
            if value is None
        ]
        if missing:
            raise MissingRequiredFieldsError(missing)

        vehicle = await VehicleService.get_vehicle(db, data.vehicle_id)
        vendor_id = await MaintenanceService._ensure_vendor(db, data.vendor_id)

        current_mileage = data.vehicle_miles if data.vehicle_miles is not None else vehicle.current_mileage
        next_service = IntervalResolver.resolve_next_service(
            data.start_date, data.interval_type, data.interval_value, current_mileage
        )

        task_type = None
        if data.task_type_name:
            result = await db.execute(
                select(MaintenanceTaskType).where(
                    func.lower(MaintenanceTaskType.name) == data.task_type_name.strip().lower()
                )
            )
            task_type = result.scalars().first()
        elif data.task_type_id:
            task_type = await db.get(MaintenanceTaskType, data.task_type_id)

        task_name = data.task_type_name or (task_type.name if task_type else None)
        record = MaintenanceRecord(
            vehicle_id=vehicle.id,
            task_type_id=task_type.id if task_type else None,
            vendor_id=vendor_id,
            description=data.description or task_name or DEFAULT_DESCRIPTION,
            maintenance_type=task_name or data.description or DEFAULT_DESCRIPTION,
            scheduled_date=data.start_date,
            status=MaintenanceStatus.SCHEDULED,
            priority=data.priority,
            cost=data.estimated_cost,
            mileage_at_service=current_mileage if data.vehicle_miles is not None else None,
            notes=data.notes,
            notification_trigger_type=IntervalResolver.trigger_type_for(data.interval_type),
            next_service_date=next_service["next_service_date"],
            next_service_mileage=next_service["next_service_mileage"],
        )
        db.add(record)
        await db.flush()
        return record

    @staticmethod
    async def apply_update(
        db: AsyncSession,
        record: MaintenanceRecord,
        data: MaintenanceRecordUpdate,
        today: date,
    ) -> List[str]:
        """
        Apply a partial update to a record.

        Raises:
            ResourceNotFoundError: If a new vehicle, task type or vendor does not exist

        Returns:
            Names of the fields that were sent
        """
        update_data = data.model_dump(exclude_unset=True)

        if "vehicle_id" in update_data:
            await VehicleService.get_vehicle(db, update_data["vehicle_id"])
        if update_data.get("task_type_id") is not None:
            if await db.get(MaintenanceTaskType, update_data["task_type_id"]) is None:
                raise ResourceNotFoundError("Task type", str(update_data["task_type_id"]))
        if "vendor_id" in update_data:
            update_data["vendor_id"] = await MaintenanceService._ensure_vendor(db, update_data["vendor_id"])

        for field, value in update_data.items():
            setattr(record, field, value)

        if update_data.get("status") == MaintenanceStatus.COMPLETED and record.completed_date is None:
            record.completed_date = today

        return list(update_data.keys())

    @staticmethod
    def complete(record: MaintenanceRecord, data: MaintenanceCompleteRequest, today: date) -> None:
        if record.status == MaintenanceStatus.COMPLETED:
            raise InvalidStateError("Maintenance record is already completed", {"record_id": str(record.id)})

        record.status = MaintenanceStatus.COMPLETED
        record.completed_date = data.completed_date or today
        if data.total_cost is not None:
            record.total_cost = data.total_cost
        if data.mileage_at_service is not None:
            record.mileage_at_service = data.mileage_at_service
        if data.notes:
            record.notes = data.notes

    @staticmethod
    def reopen(record: MaintenanceRecord) -> None:
        if record.status != MaintenanceStatus.COMPLETED:
            raise InvalidStateError("Only completed records can be reopened", {"record_id": str(record.id)})

        record.status = MaintenanceStatus.SCHEDULED
        record.completed_date = None

    @staticmethod
    def _list_filters(
        status: Optional[MaintenanceStatus],
        bucket: Optional[StatusBucket],
        vehicle_id: Optional[uuid.UUID],
        search: Optional[str],
        today: date,
    ) -> list:
        filters = []
        if status:
            filters.append(MaintenanceRecord.status == status)
        if bucket:
            filters.append(bucket_clause(bucket, today))
        if vehicle_id:
            filters.append(MaintenanceRecord.vehicle_id == vehicle_id)
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(or_(
                MaintenanceRecord.description.ilike(pattern),
                MaintenanceRecord.maintenance_type.ilike(pattern),
                Vehicle.license_plate.ilike(pattern),
            ))
        return filters

    @staticmethod
    async def list_records(
        db: AsyncSession,
        today: date,
        status: Optional[MaintenanceStatus] = None,
        bucket: Optional[StatusBucket] = None,
        vehicle_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[MaintenanceRecord], int]:
        """
        Filtered maintenance records, newest scheduled date first.

        Returns:
            (records for the page, total matching)
        """
        filters = MaintenanceService._list_filters(status, bucket, vehicle_id, search, today)

        count_query = select(func.count(MaintenanceRecord.id)).outerjoin(
            Vehicle, Vehicle.id == MaintenanceRecord.vehicle_id
        ).where(*filters)
        total = (await db.execute(count_query)).scalar() or 0

        query = select(MaintenanceRecord).outerjoin(
            Vehicle, Vehicle.id == MaintenanceRecord.vehicle_id
        ).where(*filters).order_by(
            MaintenanceRecord.scheduled_date.desc(), MaintenanceRecord.created_at.desc()
        )
        if page_size:
            query = query.offset((page - 1) * page_size).limit(page_size)

        records = (await db.execute(query)).scalars().all()
        return records, total

    @staticmethod
    async def get_kpis(db: AsyncSession, today: date) -> MaintenanceKPIs:
        """Dashboard counters relative to the company's today."""
        week_end = today + timedelta(days=settings.upcoming_window_days)

        async def count(*conditions) -> int:
            result = await db.execute(select(func.count(MaintenanceRecord.id)).where(*conditions))
            return result.scalar() or 0

        # 1. Past due: open work scheduled before today
        past_due = await count(
            MaintenanceRecord.scheduled_date < today,
            MaintenanceRecord.status.in_(OPEN_STATUSES),
        )

        # 2. Due this week (today included)
        due_this_week = await count(
            MaintenanceRecord.scheduled_date >= today,
            MaintenanceRecord.scheduled_date <= week_end,
            MaintenanceRecord.status.in_(OPEN_STATUSES),
        )

        # 3. Due today
        due_today = await count(
            MaintenanceRecord.scheduled_date == today,
            MaintenanceRecord.status.in_(OPEN_STATUSES),
        )

        # 4. In progress
        in_progress = await count(MaintenanceRecord.status == MaintenanceStatus.IN_PROGRESS)

        # 5. Year-to-date spend on completed work
        ytd_spend = await MaintenanceService.ytd_spend(db, today)

        return MaintenanceKPIs(
            past_due=past_due,
            due_this_week=due_this_week,
            due_today=due_today,
            in_progress=in_progress,
            ytd_spend=ytd_spend,
        )

    @staticmethod
    async def ytd_spend(db: AsyncSession, today: date, vehicle_id: Optional[uuid.UUID] = None) -> float:
        service_date = func.coalesce(MaintenanceRecord.completed_date, MaintenanceRecord.scheduled_date)
        conditions = [
            MaintenanceRecord.status == MaintenanceStatus.COMPLETED,
            service_date >= date(today.year, 1, 1),
            service_date <= today,
        ]
        if vehicle_id:
            conditions.append(MaintenanceRecord.vehicle_id == vehicle_id)

        result = await db.execute(select(func.sum(_effective_cost_expr())).where(*conditions))
        return round(float(result.scalar() or 0.0), 2)

    @staticmethod
    async def list_overdue(db: AsyncSession, today: date, limit: Optional[int] = None) -> List[MaintenanceRecord]:
        """Open records scheduled before today, oldest first."""
        query = select(MaintenanceRecord).where(
            MaintenanceRecord.scheduled_date < today,
            MaintenanceRecord.status.in_(OPEN_STATUSES),
        ).order_by(MaintenanceRecord.scheduled_date.asc()).limit(limit or settings.overdue_list_limit)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def list_upcoming(db: AsyncSession, today: date, limit: Optional[int] = None) -> List[MaintenanceRecord]:
        """Scheduled records due within the upcoming window, soonest first."""
        week_end = today + timedelta(days=settings.upcoming_window_days)
        query = select(MaintenanceRecord).where(
            and_(MaintenanceRecord.scheduled_date >= today, MaintenanceRecord.scheduled_date <= week_end),
            MaintenanceRecord.status == MaintenanceStatus.SCHEDULED,
        ).order_by(MaintenanceRecord.scheduled_date.asc()).limit(limit or settings.upcoming_list_limit)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def vehicle_overview(db: AsyncSession, vehicle_id: uuid.UUID, today: date) -> VehicleMaintenanceOverview:
        """
        Maintenance summary for one vehicle.

        Raises:
            ResourceNotFoundError: If the vehicle does not exist
        """
        await VehicleService.get_vehicle(db, vehicle_id)
        week_end = today + timedelta(days=settings.upcoming_window_days)

        result = await db.execute(
            select(MaintenanceRecord).where(MaintenanceRecord.vehicle_id == vehicle_id)
            .order_by(MaintenanceRecord.scheduled_date.asc())
        )
        records = result.scalars().all()

        open_records = [r for r in records if r.status in OPEN_STATUSES]
        past_due = [r for r in open_records if r.scheduled_date < today]
        due_this_week = [r for r in open_records if today <= r.scheduled_date <= week_end]
        due_today = [r for r in open_records if r.scheduled_date == today]
        completed = sorted(
            (r for r in records if r.status == MaintenanceStatus.COMPLETED),
            key=lambda r: r.completed_date or r.scheduled_date,
            reverse=True,
        )

        return VehicleMaintenanceOverview(
            vehicle_id=vehicle_id,
            past_due_count=len(past_due),
            due_this_week_count=len(due_this_week),
            due_today_count=len(due_today),
            in_progress_count=sum(1 for r in records if r.status == MaintenanceStatus.IN_PROGRESS),
            ytd_cost=await MaintenanceService.ytd_spend(db, today, vehicle_id),
            past_due=[MaintenanceRecordResponse.from_record(r) for r in past_due],
            due_this_week=[MaintenanceRecordResponse.from_record(r) for r in due_this_week],
            recent_completed=[MaintenanceRecordResponse.from_record(r) for r in completed[:5]],
        )

    @staticmethod
    def export_csv(records: List[MaintenanceRecord]) -> str:
        """Render records as CSV with a header row."""
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
        writer.writeheader()
        for record in records:
            writer.writerow({
                "scheduled_date": record.scheduled_date.isoformat(),
                "completed_date": record.completed_date.isoformat() if record.completed_date else "",
                "vehicle": record.vehicle.display_name if record.vehicle else "",
                "license_plate": record.vehicle.license_plate if record.vehicle else "",
                "description": record.description,
                "maintenance_type": record.maintenance_type or "",
                "task_type": record.task_type.name if record.task_type else "",
                "vendor": record.vendor.name if record.vendor else "",
                "status": record.status.value,
                "priority": record.priority.value,
                "cost": record.cost if record.cost is not None else "",
                "parts_cost": record.parts_cost if record.parts_cost is not None else "",
                "labor_cost": record.labor_cost if record.labor_cost is not None else "",
                "total_cost": record.total_cost if record.total_cost is not None else "",
                "mileage_at_service": record.mileage_at_service if record.mileage_at_service is not None else "",
                "notes": record.notes or "",
            })
        return buffer.getvalue()
