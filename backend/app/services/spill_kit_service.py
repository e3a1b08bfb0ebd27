"""
Spill Kit Service.

Template resolution, inspection scoring, restock requests and the
expiration report.

Kit status after an inspection:
1. failed    a critical item is missing
2. partial   any item is missing or expired
3. warning   any item is low
4. compliant otherwise
"""

import uuid
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import MissingRequiredFieldsError, ResourceNotFoundError
from backend.app.models.enums import (
    ItemConditionStatus,
    KitCompletionStatus,
    ExpirationStatus,
    RestockStatus,
)
from backend.app.models.spill_kit import (
    SpillKitTemplate,
    VehicleSpillKitCheck,
    SpillKitRestockRequest,
)
from backend.app.schemas.spill_kit import (
    ItemCondition,
    SpillKitCheckCreate,
    RestockRequestUpdate,
    ExpirationEntry,
    ExpirationReport,
)
from backend.app.services.vehicle_service import VehicleService

logger = logging.getLogger(__name__)

DEFAULT_VEHICLE_TYPE = "truck"


def evaluate_kit(
    template: SpillKitTemplate,
    item_conditions: Dict[str, ItemCondition],
) -> Tuple[KitCompletionStatus, List[dict], Dict[str, dict]]:
    """
    Score an inspection against its template.

    Template items without a submitted condition count as present.
    Conditions for ids that are not on the template are dropped.

    Returns:
        (completion status, missing items as {name, quantity}, stored conditions by item id)
    """
    stored = {}
    missing_items = []
    critical_missing = False
    statuses = set()

    for item in template.items:
        item_id = str(item.id)
        condition = item_conditions.get(item_id) or ItemCondition()
        statuses.add(condition.status)

        if condition.status == ItemConditionStatus.MISSING:
            missing_items.append({"name": item.item_name, "quantity": item.required_quantity})
            if item.critical_item:
                critical_missing = True

        stored[item_id] = {
            "status": condition.status.value,
            "actual_quantity": condition.actual_quantity,
            "expiration_date": condition.expiration_date.isoformat() if condition.expiration_date else None,
            "notes": condition.notes,
            "item_name": item.item_name,
            "item_category": item.category,
        }

    ignored = set(item_conditions) - set(stored)
    if ignored:
        logger.info("Ignoring conditions for items not on template %s: %s", template.id, sorted(ignored))

    if critical_missing:
        status = KitCompletionStatus.FAILED
    elif statuses & {ItemConditionStatus.MISSING, ItemConditionStatus.EXPIRED}:
        status = KitCompletionStatus.PARTIAL
    elif ItemConditionStatus.LOW in statuses:
        status = KitCompletionStatus.WARNING
    else:
        status = KitCompletionStatus.COMPLIANT

    return status, missing_items, stored


def expiration_status(expiration_date: date, today: date) -> Tuple[int, ExpirationStatus]:
    days = (expiration_date - today).days
    if days < 0:
        return days, ExpirationStatus.EXPIRED
    if days <= settings.expiration_warning_days:
        return days, ExpirationStatus.EXPIRING_SOON
    return days, ExpirationStatus.OK


class SpillKitService:

    @staticmethod
    async def list_templates(db: AsyncSession, active_only: bool = True) -> List[SpillKitTemplate]:
        query = select(SpillKitTemplate).order_by(SpillKitTemplate.is_default.desc(), SpillKitTemplate.name)
        if active_only:
            query = query.where(SpillKitTemplate.is_active == True)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def get_template(db: AsyncSession, template_id: uuid.UUID) -> SpillKitTemplate:
        template = await db.get(SpillKitTemplate, template_id)
        if template is None:
            raise ResourceNotFoundError("Spill kit template", str(template_id))
        return template

    @staticmethod
    async def template_for_vehicle_type(db: AsyncSession, vehicle_type: Optional[str]) -> Optional[SpillKitTemplate]:
        """
        Active template covering a vehicle type, else the default template.

        Vehicle types are compared case-insensitively.
        """
        vehicle_type = (vehicle_type or DEFAULT_VEHICLE_TYPE).strip().lower()
        templates = await SpillKitService.list_templates(db)

        for template in templates:
            if vehicle_type in {t.lower() for t in (template.vehicle_types or [])}:
                return template

        for template in templates:
            if template.is_default:
                return template
        return None

    @staticmethod
    async def template_for_vehicle(db: AsyncSession, vehicle_id: uuid.UUID) -> Optional[SpillKitTemplate]:
        vehicle = await VehicleService.get_vehicle(db, vehicle_id)
        return await SpillKitService.template_for_vehicle_type(db, vehicle.vehicle_type)

    @staticmethod
    async def record_check(
        db: AsyncSession,
        data: SpillKitCheckCreate,
        checked_by: Optional[str],
        now: datetime,
        today: date,
    ) -> Tuple[VehicleSpillKitCheck, Optional[SpillKitRestockRequest]]:
        """
        Stage an inspection and, when items are missing and requested, a restock request.

        Raises:
            MissingRequiredFieldsError: If no vehicle is given or no template applies
            ResourceNotFoundError: If the vehicle or template does not exist
        """
        if data.vehicle_id is None:
            raise MissingRequiredFieldsError(["vehicle_id"])

        if data.template_id:
            await VehicleService.get_vehicle(db, data.vehicle_id)
            template = await SpillKitService.get_template(db, data.template_id)
        else:
            template = await SpillKitService.template_for_vehicle(db, data.vehicle_id)
        if template is None:
            raise MissingRequiredFieldsError(["template_id"])

        status, missing_items, stored = evaluate_kit(template, data.item_conditions)

        check = VehicleSpillKitCheck(
            vehicle_id=data.vehicle_id,
            template_id=template.id,
            has_kit=status != KitCompletionStatus.FAILED,
            item_conditions=stored,
            missing_items=missing_items,
            photos=data.photos,
            notes=data.notes,
            weather_conditions=data.weather_conditions,
            inspection_duration_minutes=data.inspection_duration_minutes,
            completion_status=status,
            next_check_due=today + timedelta(days=settings.spill_kit_check_interval_days),
            checked_at=now,
            checked_by_clerk=checked_by,
        )
        db.add(check)
        await db.flush()

        restock = None
        if data.generate_restock_request and missing_items:
            restock = await SpillKitService.generate_restock_request(
                db, data.vehicle_id, missing_items, template.id, check.id
            )
        return check, restock

    @staticmethod
    async def generate_restock_request(
        db: AsyncSession,
        vehicle_id: uuid.UUID,
        missing_items: List[dict],
        template_id: Optional[uuid.UUID] = None,
        check_id: Optional[uuid.UUID] = None,
    ) -> SpillKitRestockRequest:
        request = SpillKitRestockRequest(
            vehicle_id=vehicle_id,
            template_id=template_id,
            check_id=check_id,
            missing_items=missing_items,
            status=RestockStatus.PENDING,
        )
        db.add(request)
        await db.flush()
        logger.info("Restock request %s raised for vehicle %s (%d items)", request.id, vehicle_id, len(missing_items))
        return request

    @staticmethod
    async def get_check(db: AsyncSession, check_id: uuid.UUID) -> Optional[VehicleSpillKitCheck]:
        result = await db.execute(
            select(VehicleSpillKitCheck).where(
                VehicleSpillKitCheck.id == check_id,
                VehicleSpillKitCheck.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_checks(
        db: AsyncSession,
        vehicle_id: Optional[uuid.UUID] = None,
        completion_status: Optional[KitCompletionStatus] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[VehicleSpillKitCheck], int]:
        filters = [VehicleSpillKitCheck.deleted_at.is_(None)]
        if vehicle_id:
            filters.append(VehicleSpillKitCheck.vehicle_id == vehicle_id)
        if completion_status:
            filters.append(VehicleSpillKitCheck.completion_status == completion_status)

        total = (await db.execute(select(func.count(VehicleSpillKitCheck.id)).where(*filters))).scalar() or 0
        query = select(VehicleSpillKitCheck).where(*filters).order_by(
            VehicleSpillKitCheck.checked_at.desc()
        ).offset((page - 1) * page_size).limit(page_size)
        return (await db.execute(query)).scalars().all(), total

    @staticmethod
    async def expiration_report(db: AsyncSession, today: date) -> ExpirationReport:
        """
        Latest recorded expiration date per vehicle and item.

        Later checks supersede earlier ones for the same vehicle and item.
        """
        result = await db.execute(
            select(VehicleSpillKitCheck).where(VehicleSpillKitCheck.deleted_at.is_(None))
            .order_by(VehicleSpillKitCheck.checked_at.asc())
        )

        latest: Dict[Tuple[str, str], ExpirationEntry] = {}
        for check in result.scalars().all():
            for item_id, condition in (check.item_conditions or {}).items():
                raw_date = condition.get("expiration_date")
                if not raw_date:
                    continue
                expiration_date = date.fromisoformat(raw_date)
                days, status = expiration_status(expiration_date, today)
                latest[(str(check.vehicle_id), item_id)] = ExpirationEntry(
                    vehicle_id=check.vehicle_id,
                    license_plate=check.vehicle.license_plate if check.vehicle else None,
                    item_id=item_id,
                    item_name=condition.get("item_name") or item_id,
                    item_category=condition.get("item_category"),
                    expiration_date=expiration_date,
                    days_until_expiration=days,
                    status=status,
                    checked_at=check.checked_at,
                )

        entries = sorted(latest.values(), key=lambda e: e.expiration_date)
        return ExpirationReport(
            items=entries,
            expired_count=sum(1 for e in entries if e.status == ExpirationStatus.EXPIRED),
            expiring_soon_count=sum(1 for e in entries if e.status == ExpirationStatus.EXPIRING_SOON),
        )

    @staticmethod
    async def list_restock_requests(
        db: AsyncSession,
        status: Optional[RestockStatus] = None,
        vehicle_id: Optional[uuid.UUID] = None,
    ) -> List[SpillKitRestockRequest]:
        query = select(SpillKitRestockRequest).order_by(SpillKitRestockRequest.created_at.desc())
        if status:
            query = query.where(SpillKitRestockRequest.status == status)
        if vehicle_id:
            query = query.where(SpillKitRestockRequest.vehicle_id == vehicle_id)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def get_restock_request(db: AsyncSession, request_id: uuid.UUID) -> Optional[SpillKitRestockRequest]:
        result = await db.execute(
            select(SpillKitRestockRequest).where(SpillKitRestockRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def apply_restock_update(request: SpillKitRestockRequest, data: RestockRequestUpdate, now: datetime) -> List[str]:
        """
        Apply an update to a restock request.

        Assigning a pending request moves it to in_progress; completing it
        stamps completed_at.

        Returns:
            Names of the fields that changed
        """
        update_data = data.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(request, field, value)

        if update_data.get("assigned_to") and "status" not in update_data and request.status == RestockStatus.PENDING:
            request.status = RestockStatus.IN_PROGRESS
            update_data["status"] = RestockStatus.IN_PROGRESS

        if request.status == RestockStatus.COMPLETED:
            if request.completed_at is None:
                request.completed_at = now
        else:
            request.completed_at = None

        return list(update_data.keys())
