"""Jetons d'identité vendeur (en-tête x-auth-token)."""
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Header
from jose import JWTError, jwt

from localmarket.config import settings
from localmarket.errors import AuthenticationError


def create_access_token(seller_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Émet un jeton opaque lié à un vendeur (utilisé par le flux de connexion externe)."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload = {"sub": str(seller_id), "exp": expire}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> int:
    """
    Valide le jeton et retourne l'identifiant vendeur.

    Raises:
        AuthenticationError: jeton expiré, mal signé ou sans vendeur
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise AuthenticationError("Token is not valid.") from e

    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError) as e:
        raise AuthenticationError("Token is not bound to a seller.") from e


async def get_current_seller(x_auth_token: Optional[str] = Header(default=None)) -> int:
    """Dépendance FastAPI : identifiant du vendeur authentifié."""
    if not x_auth_token:
        raise AuthenticationError("No token, authorization denied.", code="MISSING_TOKEN")
    return decode_access_token(x_auth_token)
