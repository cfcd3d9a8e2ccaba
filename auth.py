from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt, JWTError
import logging
import os
import sys
from dotenv import load_dotenv
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from errors import Unauthorized

load_dotenv()
SECRET_KEY = os.getenv("SECRET_KEY", "change-this-in-production-minimum-32-chars!")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "43200"))
REQUIRE_AUTH = os.getenv("REQUIRE_AUTH", "false").lower() == "true"

logger = logging.getLogger(__name__)
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    """
    Creates a signed API token for link creators. Embeds: sub, exp, iat.
    """
    now = datetime.now(timezone.utc)
    to_encode = data.copy()
    to_encode.update({"exp": now + timedelta(minutes=expires_minutes), "iat": now})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Raises JWTError on failure."""
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])


def optional_bearer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """
    Returns the token subject, or None for anonymous callers.
    Anonymous callers are rejected only when REQUIRE_AUTH is set.
    """
    if credentials is None:
        if REQUIRE_AUTH:
            raise Unauthorized("Bearer token required")
        return None

    try:
        payload = decode_token(credentials.credentials)
    except JWTError:
        if REQUIRE_AUTH:
            raise Unauthorized("Invalid or expired token")
        logger.warning("Ignoring invalid bearer token on anonymous-capable endpoint")
        return None

    return payload.get("sub")


if __name__ == "__main__":
    subject = sys.argv[1] if len(sys.argv) > 1 else "cli"
    print(create_access_token({"sub": subject}))
