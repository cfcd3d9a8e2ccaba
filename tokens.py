# tokens.py

import secrets
import string

TOKEN_ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits
TOKEN_LENGTH = 12


def generate_token(length: int = TOKEN_LENGTH) -> str:
    """Random link id, ~71 bits of entropy at the default length."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))
