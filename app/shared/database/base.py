# -*- coding: utf-8 -*-
"""
backend/app/shared/database/base.py

Base declarativa y convención de nombres para modelos ORM.

Este módulo proporciona:
- Base: clase base declarativa de SQLAlchemy
- NAMING_CONVENTION: convención de nombres para constraints
- BigIntPK: BIGINT autoincremental (INTEGER en SQLite para rowid)
- str_enum: helper genérico para mapear enums Python a columnas VARCHAR

Autor: Clarity
Fecha: 2026-09-03
"""

from __future__ import annotations

from enum import Enum
from typing import Type

from sqlalchemy import BigInteger, Integer, MetaData
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import DeclarativeBase

# ===== NAMING CONVENTION =====
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# SQLite solo autoincrementa columnas INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


# ===== BASE DECLARATIVA =====
class Base(DeclarativeBase):
    """
    Base declarativa para todos los modelos ORM de Clarity.
    Incluye convención de nombres para constraints.
    """
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


# ===== HELPER GENÉRICO PARA ENUMS =====
def str_enum(enum_cls: Type[Enum], name: str | None = None, length: int = 32) -> SQLEnum:
    """
    Devuelve un tipo Enum de SQLAlchemy almacenado como VARCHAR + CHECK.

    Uso típico:

        from app.shared.database.base import Base, str_enum
        from .enums import RetryStatus

        class PaymentRetry(Base):
            status: Mapped[RetryStatus] = mapped_column(
                str_enum(RetryStatus, name="payment_retry_status"),
                nullable=False,
            )

    - native_enum=False: no depende de tipos ENUM de PostgreSQL, de modo que
      el mismo esquema corre en SQLite para pruebas.
    - Persiste `.value` (no el nombre del miembro).
    """
    enum_name = name or enum_cls.__name__.lower()

    def _values(_: object) -> list[str]:
        return [e.value for e in enum_cls]  # type: ignore[arg-type]

    return SQLEnum(
        enum_cls,
        name=enum_name,
        native_enum=False,
        create_constraint=True,
        length=length,
        values_callable=_values,
        validate_strings=True,
    )


__all__ = ["Base", "BigIntPK", "NAMING_CONVENTION", "str_enum"]

# Fin del archivo backend/app/shared/database/base.py
