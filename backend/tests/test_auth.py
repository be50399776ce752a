import pytest
from fastapi import HTTPException

from conftest import make_token
from voiceinterview.auth import resolve_claims_from_token_async, verify_token_claims_async
from voiceinterview.errors import AuthenticationFailure


@pytest.mark.asyncio
async def test_signed_token_yields_claims():
    claims = await verify_token_claims_async(make_token("u1", email="u1@example.com"))
    assert claims["sub"] == "u1"
    assert claims["email"] == "u1@example.com"


@pytest.mark.asyncio
async def test_bad_signature_raises_authentication_failure():
    with pytest.raises(AuthenticationFailure) as excinfo:
        await verify_token_claims_async("not-a-jwt")
    assert excinfo.value.code == "unauthorized"


@pytest.mark.asyncio
async def test_token_without_subject_is_rejected():
    with pytest.raises(AuthenticationFailure):
        await verify_token_claims_async(make_token(""))


@pytest.mark.asyncio
async def test_http_resolver_maps_failure_to_401():
    with pytest.raises(HTTPException) as excinfo:
        await resolve_claims_from_token_async("not-a-jwt")
    assert excinfo.value.status_code == 401
