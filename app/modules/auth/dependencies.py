# -*- coding: utf-8 -*-
"""
backend/app/modules/auth/dependencies.py

Dependencias de autenticación JWT para FastAPI.

Provee:
- get_current_user_id: Dependencia FastAPI con oauth2_scheme

NOTA: La autenticación de servicio interno (InternalServiceAuth) está en
app.shared.internal_auth para mantener separación de responsabilidades.

Autor: Clarity
Fecha: 2026-09-06
"""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, status

from .security import oauth2_scheme, decode_access_token, TokenDecodeError

logger = logging.getLogger(__name__)


async def get_current_user_id(
    token: str = Depends(oauth2_scheme),
) -> str:
    """
    Extrae y valida el JWT del header Authorization: Bearer <token>.

    Raises:
        HTTPException 401: Si el token es inválido o expirado.

    Returns:
        str: El user_id (claim 'sub').
    """
    try:
        payload = decode_access_token(token)
    except TokenDecodeError as e:
        logger.debug("auth_invalid_token reason=%s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "invalid_token",
                "message": str(e),
            },
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    return str(payload["sub"])


__all__ = ["get_current_user_id"]
