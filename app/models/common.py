import secrets
import string
from datetime import datetime, timezone

ID_ALPHABET = string.ascii_lowercase + string.digits
ID_LENGTH = 8


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))
