"""Short, human-typeable ticket codes such as ``IT-AB12CD``."""

import re
import secrets

# No 0/O, 1/I/L: codes are read aloud and typed from paper slips.
ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
SUFFIX_LENGTH = 6
DEFAULT_PREFIX = "IT"

_CODE_PATTERN = re.compile(r"^[A-Z]{2}-[A-Z0-9]{%d}$" % SUFFIX_LENGTH)


def generate_ticket_code(prefix: str = DEFAULT_PREFIX) -> str:
    """
    Return a fresh candidate code.

    31^6 (~887M) suffixes keep collisions rare, but uniqueness is only
    guaranteed by the store; callers must check and retry.
    """
    suffix = "".join(secrets.choice(ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix.upper()}-{suffix}"


def normalize_ticket_code(code: str) -> str:
    return (code or "").strip().upper()


def is_valid_ticket_code(code: str) -> bool:
    return bool(_CODE_PATTERN.match(normalize_ticket_code(code)))
