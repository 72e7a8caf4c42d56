import os
from typing import Callable, Optional

import firebase_admin
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials

from errors import UnauthorizedError, ValidationError
from logger import logger
from schemas import normalize_email

FIREBASE_CREDENTIALS = os.getenv("FIREBASE_CREDENTIALS")

security = HTTPBearer(auto_error=False)


def get_firebase_app():
    try:
        return firebase_admin.get_app()
    except ValueError:
        cred = credentials.Certificate(FIREBASE_CREDENTIALS) if FIREBASE_CREDENTIALS else None
        return firebase_admin.initialize_app(cred)


def verify_firebase_token(token: str) -> dict:
    """Verify a Firebase ID token and return its decoded claims."""
    return firebase_auth.verify_id_token(token, app=get_firebase_app())


def get_token_verifier() -> Callable[[str], dict]:
    return verify_firebase_token


def require_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
    verify: Callable[[str], dict] = Depends(get_token_verifier),
) -> dict:
    if creds is None:
        raise UnauthorizedError("Unauthorized: No token found")
    token = creds.credentials
    if not token:
        raise UnauthorizedError("Unauthorized: Invalid token")

    try:
        claims = verify(token)
    except Exception as e:
        logger.warning("Token verification failed: %s", e)
        raise UnauthorizedError("Unauthorized access", error=str(e))

    if not claims.get("email"):
        raise UnauthorizedError("Unauthorized: Token has no email claim")
    try:
        email = normalize_email(claims["email"])
    except ValidationError as e:
        raise UnauthorizedError("Unauthorized: Invalid email claim", error=e.error)
    return {**claims, "email": email}
