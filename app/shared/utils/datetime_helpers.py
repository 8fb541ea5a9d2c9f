# -*- coding: utf-8 -*-
"""
backend/app/shared/utils/datetime_helpers.py

Utilidades para manejo consistente de timestamps UTC.

SQLite devuelve datetimes naive aun con DateTime(timezone=True); todo
lo que sale de la base pasa por ensure_utc antes de compararse.

Autor: Clarity
Fecha: 2026-09-03
"""

from __future__ import annotations

import calendar
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """
    Retorna el timestamp UTC actual (timezone-aware).

    Examples:
        >>> now = utcnow()
        >>> now.tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Asegura que un datetime sea UTC timezone-aware.

    Examples:
        >>> dt_naive = datetime(2026, 10, 26, 14, 30, 0)
        >>> ensure_utc(dt_naive).tzinfo == timezone.utc
        True
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    if dt.tzinfo != timezone.utc:
        return dt.astimezone(timezone.utc)
    return dt


def add_months(dt: datetime, months: int) -> datetime:
    """
    Suma meses de calendario recortando el día al último válido del mes.

    Examples:
        >>> add_months(datetime(2026, 1, 31, tzinfo=timezone.utc), 1).day
        28
        >>> add_months(datetime(2026, 3, 15, tzinfo=timezone.utc), 12).year
        2027
    """
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    """ISO 8601 con sufijo Z, o None."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


__all__ = ["utcnow", "ensure_utc", "add_months", "to_iso"]
