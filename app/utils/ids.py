import secrets
import string

_ALPHABET = string.ascii_lowercase + string.digits


def generate_id(prefix: str, length: int = 6) -> str:
    """Short prefixed id, e.g. apt-k3x9q2"""
    suffix = ''.join(secrets.choice(_ALPHABET) for _ in range(length))
    return f"{prefix}-{suffix}"
