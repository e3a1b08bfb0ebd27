"""
Recurring Service Interval Resolver.

Turns a recurring-service definition (start date, interval type and value)
into the next due point for a maintenance record:
1. Mileage intervals -> next_service_mileage (no date)
2. Day/week/month intervals -> next_service_date (no mileage)

Months are a flat 30 days; the calendar month is not consulted.
"""

from datetime import date, timedelta
from typing import Optional, Union
from backend.app.core.exceptions import MissingRequiredFieldsError
from backend.app.models.enums import IntervalType, NotificationTriggerType

INTERVAL_DAYS = {
    IntervalType.DAYS: 1,
    IntervalType.WEEKS: 7,
    IntervalType.MONTHS: 30,
}


class IntervalResolver:

    @staticmethod
    def resolve_next_service(
        start_date: Optional[date],
        interval_type: Optional[Union[IntervalType, str]],
        interval_value: Optional[int],
        current_mileage: Optional[int] = None,
    ) -> dict:
        """
        Compute the next service point.

        Args:
            start_date: First service date
            interval_type: days, weeks, months or miles
            interval_value: Number of interval units, must be positive
            current_mileage: Odometer reading used for mileage intervals (None counts as 0)

        Returns:
            {"next_service_date": date | None, "next_service_mileage": int | None}

        Raises:
            MissingRequiredFieldsError: If an input is missing or the value is not positive
        """
        missing = []
        if start_date is None:
            missing.append("start_date")
        if not interval_type:
            missing.append("interval_type")
        if not interval_value or interval_value <= 0:
            missing.append("interval_value")
        if missing:
            raise MissingRequiredFieldsError(missing)

        interval_type = IntervalType(interval_type)

        if interval_type == IntervalType.MILES:
            return {
                "next_service_date": None,
                "next_service_mileage": (current_mileage or 0) + interval_value,
            }

        return {
            "next_service_date": start_date + timedelta(days=interval_value * INTERVAL_DAYS[interval_type]),
            "next_service_mileage": None,
        }

    @staticmethod
    def trigger_type_for(interval_type: Union[IntervalType, str]) -> NotificationTriggerType:
        if IntervalType(interval_type) == IntervalType.MILES:
            return NotificationTriggerType.MILEAGE_BASED
        return NotificationTriggerType.DATE_BASED
