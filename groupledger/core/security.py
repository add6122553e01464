from datetime import datetime, timedelta, timezone

from jose import jwt

from groupledger.core.config import settings


def create_access_token(subject: str, email: str | None = None, role: str = "user") -> str:
    # Real tokens come from the identity provider; this mints compatible ones for local use and tests
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {"sub": subject, "exp": expire, "role": role}
    if email:
        to_encode["email"] = email
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
