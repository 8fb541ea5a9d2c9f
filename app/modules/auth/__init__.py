# -*- coding: utf-8 -*-
"""
backend/app/modules/auth/__init__.py

Verificación de identidad para los endpoints de Clarity. La autenticación
(login, registro) es un colaborador externo; aquí solo se valida el JWT.
"""

from .dependencies import get_current_user_id
from .security import create_access_token, decode_access_token, TokenDecodeError

__all__ = [
    "get_current_user_id",
    "create_access_token",
    "decode_access_token",
    "TokenDecodeError",
]
