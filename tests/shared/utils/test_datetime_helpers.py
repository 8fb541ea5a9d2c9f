# -*- coding: utf-8 -*-
"""
backend/tests/shared/utils/test_datetime_helpers.py

Autor: Clarity
Fecha: 2026-09-16
"""

from datetime import datetime, timedelta, timezone

from app.shared.utils.datetime_helpers import add_months, ensure_utc, to_iso, utcnow


def test_utcnow_is_aware():
    assert utcnow().tzinfo == timezone.utc


def test_ensure_utc_handles_naive_and_offsets():
    naive = datetime(2026, 3, 10, 12, 0)
    assert ensure_utc(naive) == datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

    plus_two = datetime(2026, 3, 10, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert ensure_utc(plus_two).hour == 12
    assert ensure_utc(None) is None


def test_add_months_clamps_day():
    start = datetime(2026, 1, 31, tzinfo=timezone.utc)
    assert add_months(start, 1) == datetime(2026, 2, 28, tzinfo=timezone.utc)
    assert add_months(start, 13) == datetime(2027, 2, 28, tzinfo=timezone.utc)


def test_add_twelve_months_keeps_date():
    start = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
    assert add_months(start, 12) == datetime(2027, 3, 10, 12, 0, tzinfo=timezone.utc)


def test_to_iso_uses_z_suffix():
    assert to_iso(datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)) == "2026-03-10T12:00:00Z"
    assert to_iso(None) is None
