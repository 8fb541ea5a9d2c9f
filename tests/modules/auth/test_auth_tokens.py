# -*- coding: utf-8 -*-
"""
backend/tests/modules/auth/test_auth_tokens.py

Tests de JWT (python-jose) y de la dependencia get_current_user_id.

Autor: Clarity
Fecha: 2026-09-14
"""

from datetime import timedelta

import pytest
from fastapi import HTTPException

from app.modules.auth.dependencies import get_current_user_id
from app.modules.auth.security import (
    TokenDecodeError,
    create_access_token,
    decode_access_token,
)


class TestAccessTokens:

    def test_roundtrip_keeps_subject_and_extra_claims(self):
        token = create_access_token("user-42", role="member")

        payload = decode_access_token(token)

        assert payload["sub"] == "user-42"
        assert payload["role"] == "member"

    def test_expired_token_is_rejected(self):
        token = create_access_token("user-42", expires_delta=timedelta(seconds=-10))
        with pytest.raises(TokenDecodeError):
            decode_access_token(token)

    def test_blank_subject_is_rejected(self):
        token = create_access_token("   ")
        with pytest.raises(TokenDecodeError):
            decode_access_token(token)


class TestGetCurrentUserId:

    @pytest.mark.asyncio
    async def test_returns_subject(self):
        assert await get_current_user_id(create_access_token("user-7")) == "user-7"

    @pytest.mark.asyncio
    async def test_invalid_token_is_401(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user_id("garbage")

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["error"] == "invalid_token"
