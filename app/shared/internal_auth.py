# -*- coding: utf-8 -*-
"""
backend/app/shared/internal_auth.py

Autenticación de servicio interno para endpoints operativos (cron, sweep
de reintentos de pago).

Módulo separado de auth.dependencies (JWT de usuario) para mantener
la separación de responsabilidades.

Uso:
    from app.shared.internal_auth import InternalServiceAuth

Autor: Clarity
Fecha: 2026-09-06
"""

from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from app.shared.config import get_settings

logger = logging.getLogger(__name__)


async def require_internal_service_token(
    authorization: Annotated[str | None, Header()] = None,
) -> bool:
    """
    Valida `Authorization: Bearer <token>` contra APP_SERVICE_TOKEN.

    Raises:
        HTTPException 401: Sin header o con formato inválido.
        HTTPException 403: Token incorrecto.
        HTTPException 500: Token no configurado en el backend.
    """
    configured = get_settings().internal_service_token
    expected_token = configured.get_secret_value() if configured is not None else ""

    if not expected_token:
        logger.error("internal_service_token_not_configured: APP_SERVICE_TOKEN must be set")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal service token not configured",
        )

    if not authorization:
        logger.warning("internal_auth_missing_header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    scheme, _, provided_token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not provided_token.strip():
        logger.warning("internal_auth_invalid_format")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization format. Use: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Comparación en tiempo constante
    if not secrets.compare_digest(provided_token.strip(), expected_token):
        logger.warning("internal_auth_invalid_token")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid service token",
        )

    return True


# Type alias para uso en endpoints
InternalServiceAuth = Annotated[bool, Depends(require_internal_service_token)]


__all__ = [
    "require_internal_service_token",
    "InternalServiceAuth",
]
