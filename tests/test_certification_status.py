"""
Tests: certification status evaluation.

Pure functions, no database. Every case pins ``now`` so results do not
depend on the day the suite runs.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from iris.services.certification_status import (
    EXPIRING_WINDOW_DAYS,
    CertificationStatus,
    days_until,
    evaluate_status,
)

TODAY = date(2025, 3, 15)


class TestEvaluateStatus:
    def test_no_end_date_is_never_completed(self):
        result = evaluate_status(None, TODAY)
        assert result.status == CertificationStatus.NEVER
        assert result.label == "Never completed"
        assert result.days_until_expiry is None

    def test_yesterday_is_expired(self):
        result = evaluate_status(TODAY - timedelta(days=1), TODAY)
        assert result.status == CertificationStatus.EXPIRED
        assert result.label == "Expired"
        assert result.days_until_expiry == -1

    def test_today_is_expiring(self):
        assert evaluate_status(TODAY, TODAY).status == CertificationStatus.EXPIRING

    def test_window_upper_bound_is_expiring(self):
        result = evaluate_status(TODAY + timedelta(days=EXPIRING_WINDOW_DAYS), TODAY)
        assert result.status == CertificationStatus.EXPIRING
        assert result.days_until_expiry == 30

    def test_one_day_past_window_is_valid(self):
        result = evaluate_status(TODAY + timedelta(days=31), TODAY)
        assert result.status == CertificationStatus.VALID
        assert result.label == "Valid"

    def test_far_future_is_valid(self):
        assert evaluate_status(date(2030, 1, 1), TODAY).status == CertificationStatus.VALID

    def test_long_expired(self):
        assert evaluate_status(date(2019, 6, 1), TODAY).status == CertificationStatus.EXPIRED

    def test_datetime_reference_uses_calendar_date(self):
        late_evening = datetime(2025, 3, 15, 23, 59, tzinfo=timezone.utc)
        result = evaluate_status(date(2025, 4, 15), late_evening)
        assert result.days_until_expiry == 31
        assert result.status == CertificationStatus.VALID

    def test_datetime_end_date_accepted(self):
        end = datetime(2025, 3, 20, 8, 30)
        assert evaluate_status(end, TODAY).status == CertificationStatus.EXPIRING

    def test_to_dict_uses_wire_values(self):
        payload = evaluate_status(TODAY + timedelta(days=5), TODAY).to_dict()
        assert payload == {"status": "expiring", "label": "Expiring", "days_until_expiry": 5}

    def test_defaults_to_today(self):
        assert evaluate_status(date.today()).status == CertificationStatus.EXPIRING


@pytest.mark.parametrize(
    "offset, expected",
    [
        (-365, CertificationStatus.EXPIRED),
        (-1, CertificationStatus.EXPIRED),
        (0, CertificationStatus.EXPIRING),
        (15, CertificationStatus.EXPIRING),
        (30, CertificationStatus.EXPIRING),
        (31, CertificationStatus.VALID),
        (400, CertificationStatus.VALID),
    ],
)
def test_status_boundaries(offset, expected):
    assert evaluate_status(TODAY + timedelta(days=offset), TODAY).status == expected


def test_days_until_negative_once_past():
    assert days_until(date(2025, 3, 10), TODAY) == -5


def test_status_is_str_enum():
    assert CertificationStatus.EXPIRED == "expired"
