# utils/codes.py
import secrets
import string

CODE_ALPHABET = string.ascii_uppercase + string.digits


def random_chunk(length: int = 4) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def redemption_code(prefix: str, groups: int = 3, group_length: int = 4) -> str:
    """``PREFIX-XXXX-XXXX-XXXX`` with X drawn uniformly from A-Z0-9."""
    return "-".join([prefix, *(random_chunk(group_length) for _ in range(groups))])
