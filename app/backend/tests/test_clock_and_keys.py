from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from caseflow.core.clock import (
    business_today,
    is_month_locked,
    last_day_of_previous_month,
    month_bounds,
)
from caseflow.core.config import LoggingSlabSetting, Settings
from caseflow.core.keys import generate_key, normalize_email


def test_generate_key_trims_and_lowercases_each_part() -> None:
    assert generate_key("  Acme ", "INTAKE", "North Site") == "acme|intake|north site"
    assert generate_key("Acme") == "acme"
    assert generate_key("Acme", None, "x") == "acme||x"


def test_normalize_email() -> None:
    assert normalize_email("  Jane.Doe@Example.COM ") == "jane.doe@example.com"
    assert normalize_email(None) == ""


def test_business_day_uses_fixed_offset() -> None:
    # 03:00 UTC is still the previous evening at UTC-5.
    assert business_today(datetime(2026, 3, 10, 3, 0, tzinfo=timezone.utc)) == date(2026, 3, 9)
    assert business_today(datetime(2026, 3, 10, 5, 0, tzinfo=timezone.utc)) == date(2026, 3, 10)


def test_month_lock_flips_after_last_second_of_business_month() -> None:
    entry = date(2026, 3, 15)

    assert is_month_locked(entry, datetime(2026, 4, 1, 4, 59, 59, tzinfo=timezone.utc)) is False
    assert is_month_locked(entry, datetime(2026, 4, 1, 5, 0, 0, tzinfo=timezone.utc)) is True
    assert is_month_locked(date(2026, 4, 1), datetime(2026, 4, 1, 5, 0, 0, tzinfo=timezone.utc)) is False


def test_month_helpers() -> None:
    assert month_bounds(2, 2028) == (date(2028, 2, 1), date(2028, 2, 29))
    assert last_day_of_previous_month(date(2026, 3, 10)) == date(2026, 2, 28)
    assert last_day_of_previous_month(date(2026, 1, 1)) == date(2025, 12, 31)


def test_settings_reject_overlapping_slabs() -> None:
    with pytest.raises(ValidationError):
        Settings(
            logging_slabs=[
                LoggingSlabSetting(min=Decimal("0"), max=Decimal("14"), rate=Decimal("0.50")),
                LoggingSlabSetting(min=Decimal("13"), max=None, rate=Decimal("0.55")),
            ]
        )


def test_settings_require_open_top_slab() -> None:
    with pytest.raises(ValidationError):
        Settings(logging_slabs=[LoggingSlabSetting(min=Decimal("0"), max=Decimal("13"), rate=Decimal("0.50"))])
