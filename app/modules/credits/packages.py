# -*- coding: utf-8 -*-
"""
backend/app/modules/credits/packages.py

Catálogo de paquetes de créditos (source of truth).

Los paquetes se definen aquí y son la única fuente de verdad
para precios y cantidades de créditos del checkout.

Autor: Clarity
Fecha: 2026-09-06
"""

from __future__ import annotations

import os
import json
import logging
from typing import List, Optional
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class CreditPackage(BaseModel):
    """Paquete de créditos disponible para compra."""
    id: str
    name: str
    credits: int = Field(gt=0)
    price_pence: int = Field(ge=0)
    currency: str = "gbp"
    popular: bool = False
    active: bool = True


# Paquetes por defecto
DEFAULT_PACKAGES: List[dict] = [
    {
        "id": "pkg_starter",
        "name": "Starter",
        "credits": 10,
        "price_pence": 500,  # £5.00
        "popular": False,
    },
    {
        "id": "pkg_standard",
        "name": "Standard",
        "credits": 50,
        "price_pence": 2000,  # £20.00
        "popular": True,
    },
    {
        "id": "pkg_pro",
        "name": "Pro",
        "credits": 120,
        "price_pence": 4500,  # £45.00
        "popular": False,
    },
]


def _validate_unique_ids(packages: List[dict]) -> List[dict]:
    """
    Deduplica por id (se conserva la primera aparición) y avisa en log.
    """
    seen_ids: set[str] = set()
    unique_packages: List[dict] = []

    for pkg in packages:
        pkg_id = pkg.get("id")
        if pkg_id in seen_ids:
            logger.warning("credit_package_duplicate_id id=%s", pkg_id)
            continue
        seen_ids.add(pkg_id)
        unique_packages.append(pkg)

    return unique_packages


def _load_raw_packages() -> List[dict]:
    packages_json = os.getenv("CREDIT_PACKAGES_JSON")
    if not packages_json:
        return DEFAULT_PACKAGES

    try:
        packages_data = json.loads(packages_json)
    except json.JSONDecodeError as e:
        logger.warning("credit_packages_json_invalid error=%s (using defaults)", e)
        return DEFAULT_PACKAGES

    if not isinstance(packages_data, list):
        logger.warning("credit_packages_json_not_array (using defaults)")
        return DEFAULT_PACKAGES
    return packages_data


def get_credit_packages(include_inactive: bool = False) -> List[CreditPackage]:
    """
    Lista de paquetes de créditos.

    Primero intenta CREDIT_PACKAGES_JSON; si no existe o no parsea,
    usa los paquetes por defecto.
    """
    packages_data = _validate_unique_ids(_load_raw_packages())

    try:
        packages = [CreditPackage(**pkg) for pkg in packages_data]
    except ValidationError as e:
        logger.warning("credit_packages_invalid error=%s (using defaults)", e)
        packages = [CreditPackage(**pkg) for pkg in DEFAULT_PACKAGES]

    if include_inactive:
        return packages
    return [p for p in packages if p.active]


def get_package_by_id(package_id: str) -> Optional[CreditPackage]:
    """Paquete activo por id, o None."""
    for pkg in get_credit_packages():
        if pkg.id == package_id:
            return pkg
    return None


__all__ = [
    "CreditPackage",
    "get_credit_packages",
    "get_package_by_id",
    "DEFAULT_PACKAGES",
]
