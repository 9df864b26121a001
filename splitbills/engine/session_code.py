"""
Session code generator.

A session code is a short label people read off one phone and type into
another. It is not a key: nothing checks it for uniqueness.
"""

import random
from typing import Optional

# 32 symbols, no 0/O or 1/I
SESSION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
SESSION_CODE_LENGTH = 4


def generate_session_code(rng: Optional[random.Random] = None) -> str:
    """
    Draw a SESSION_CODE_LENGTH code uniformly from SESSION_CODE_ALPHABET.

    Pass a seeded random.Random to get a reproducible code.
    """
    rng = rng or random.SystemRandom()
    return "".join(
        rng.choice(SESSION_CODE_ALPHABET) for _ in range(SESSION_CODE_LENGTH)
    )


def is_valid_session_code(code: str) -> bool:
    """True when code has the right length and only alphabet symbols."""
    return len(code) == SESSION_CODE_LENGTH and all(
        ch in SESSION_CODE_ALPHABET for ch in code
    )
