from fastapi import HTTPException, Request
from jose import JWTError, jwt
import os
import logging
import httpx

from voiceinterview.errors import AuthenticationFailure

logger = logging.getLogger("voiceinterview.auth")

AUTH_JWT_SECRET = os.getenv("AUTH_JWT_SECRET")
AUTH_JWT_ALGORITHMS = [item.strip() for item in str(os.getenv("AUTH_JWT_ALGORITHMS", "HS256")).split(",") if item.strip()]
AUTH_VERIFY_URL = os.getenv("AUTH_VERIFY_URL")
AUTH_API_KEY = os.getenv("AUTH_API_KEY")
ENVIRONMENT = os.getenv("ENV", "development").lower()
ALLOW_UNVERIFIED_JWT_DEV = str(os.getenv("ALLOW_UNVERIFIED_JWT_DEV", "false")).strip().lower() in {"1", "true", "yes", "on"}


async def _verify_remote_async(token: str) -> dict | None:
    """Ask the identity provider who owns ``token``. None when it cannot say."""
    if not AUTH_VERIFY_URL:
        return None

    headers = {"Authorization": f"Bearer {token}"}
    if AUTH_API_KEY:
        headers["apikey"] = AUTH_API_KEY
    try:
        async with httpx.AsyncClient(timeout=6.0) as client:
            response = await client.get(AUTH_VERIFY_URL, headers=headers)
    except httpx.HTTPError as exc:
        logger.warning("remote token verification unavailable: %s", exc)
        return None

    if response.status_code != 200:
        return None

    try:
        data = response.json()
    except ValueError:
        return None

    user_id = data.get("id") or data.get("sub") or data.get("uid")
    if not user_id:
        return None
    return {"sub": str(user_id), "email": data.get("email"), "name": data.get("name")}


async def verify_token_claims_async(token: str) -> dict:
    """Claims for a bearer token. Raises AuthenticationFailure when the token is not accepted."""
    payload = None
    if AUTH_JWT_SECRET:
        try:
            payload = jwt.decode(token, AUTH_JWT_SECRET, algorithms=AUTH_JWT_ALGORITHMS)
        except JWTError:
            raise AuthenticationFailure("Invalid token")
    else:
        payload = await _verify_remote_async(token)
        if not payload:
            if ENVIRONMENT == "production":
                raise HTTPException(500, "AUTH_JWT_SECRET is not configured")
            if not ALLOW_UNVERIFIED_JWT_DEV:
                raise AuthenticationFailure(
                    "Token verification unavailable in development; configure AUTH_JWT_SECRET or set ALLOW_UNVERIFIED_JWT_DEV=true",
                )
            try:
                payload = jwt.get_unverified_claims(token)
                logger.warning("ALLOW_UNVERIFIED_JWT_DEV enabled; using unverified token claims in non-production mode")
            except JWTError:
                raise AuthenticationFailure("Invalid token")

    if not (payload or {}).get("sub"):
        raise AuthenticationFailure("Invalid token")
    return payload


async def resolve_claims_from_token_async(token: str) -> dict:
    try:
        return await verify_token_claims_async(token)
    except AuthenticationFailure as exc:
        raise HTTPException(401, exc.message)


async def resolve_user_id_from_token_async(token: str) -> str:
    payload = await resolve_claims_from_token_async(token)
    return str(payload["sub"])


def bearer_token(request: Request) -> str:
    auth = request.headers.get("Authorization")
    if not auth:
        raise HTTPException(401, "Unauthorized")

    if not auth.startswith("Bearer "):
        raise HTTPException(401, "Unauthorized")

    return auth.replace("Bearer ", "", 1)


async def get_claims_async(request: Request) -> dict:
    return await resolve_claims_from_token_async(bearer_token(request))


async def get_user_id_async(request: Request) -> str:
    return await resolve_user_id_from_token_async(bearer_token(request))
