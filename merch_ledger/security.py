import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from . import config
from .errors import InvalidToken, MalformedCredentialHash

ALGO = "HS256"

# Hashes are self-describing ($pbkdf2-sha256$<rounds>$<salt>$<checksum>), so
# stored values stay verifiable after the defaults change.
pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_secret(secret: str) -> str:
    return pwd.hash(secret)


def verify_secret(secret: str, credential_hash: str) -> bool:
    """Timing-safe check of secret against a stored hash.

    Returns False on mismatch and raises MalformedCredentialHash when the
    stored value cannot be parsed.
    """
    try:
        return pwd.verify(secret, credential_hash)
    except (ValueError, TypeError) as e:
        raise MalformedCredentialHash(f"Stored credential hash is unusable: {e}") from e


def issue_token(account_id: uuid.UUID) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(account_id),
        "iat": now,
        "exp": now + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(claims, config.JWT_SECRET, algorithm=ALGO)


def verify_token(token: str) -> uuid.UUID:
    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=[ALGO],
            options={"require_sub": True, "require_exp": True, "require_iat": True, "require_jti": True},
        )
    except JWTError as e:
        raise InvalidToken(f"Invalid token: {e}") from e
    try:
        return uuid.UUID(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidToken("Invalid token: bad sub claim") from e
