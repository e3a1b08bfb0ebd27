"""
Unit tests for the recurring service interval resolver.
"""

import pytest
from datetime import date
from backend.app.core.exceptions import MissingRequiredFieldsError
from backend.app.domain.maintenance.interval_resolver import IntervalResolver
from backend.app.models.enums import IntervalType, NotificationTriggerType


@pytest.mark.parametrize("interval_type,value,expected", [
    (IntervalType.DAYS, 10, date(2024, 3, 11)),
    (IntervalType.WEEKS, 2, date(2024, 3, 15)),
    (IntervalType.MONTHS, 3, date(2024, 5, 30)),
])
def test_date_intervals(interval_type, value, expected):
    result = IntervalResolver.resolve_next_service(date(2024, 3, 1), interval_type, value)

    assert result["next_service_date"] == expected
    assert result["next_service_mileage"] is None


def test_month_is_thirty_days_not_calendar_month():
    """Jan 31 + 1 month lands on Mar 1 in a leap year, not Feb 29."""
    result = IntervalResolver.resolve_next_service(date(2024, 1, 31), "months", 1)
    assert result["next_service_date"] == date(2024, 3, 1)


def test_mileage_interval_adds_to_odometer():
    result = IntervalResolver.resolve_next_service(date(2024, 3, 1), IntervalType.MILES, 5000, 48200)

    assert result["next_service_mileage"] == 53200
    assert result["next_service_date"] is None


def test_mileage_interval_without_odometer_counts_from_zero():
    result = IntervalResolver.resolve_next_service(date(2024, 3, 1), "miles", 3000)
    assert result["next_service_mileage"] == 3000


def test_missing_inputs_are_listed():
    with pytest.raises(MissingRequiredFieldsError) as exc_info:
        IntervalResolver.resolve_next_service(None, None, None)

    assert exc_info.value.details["missing_fields"] == ["start_date", "interval_type", "interval_value"]


@pytest.mark.parametrize("value", [0, -3])
def test_non_positive_interval_is_rejected(value):
    with pytest.raises(MissingRequiredFieldsError) as exc_info:
        IntervalResolver.resolve_next_service(date(2024, 3, 1), IntervalType.DAYS, value)

    assert exc_info.value.details["missing_fields"] == ["interval_value"]


def test_trigger_type():
    assert IntervalResolver.trigger_type_for("miles") == NotificationTriggerType.MILEAGE_BASED
    assert IntervalResolver.trigger_type_for(IntervalType.WEEKS) == NotificationTriggerType.DATE_BASED
