"""OTP code generation."""

import random

OTP_MIN = 100000
OTP_MAX = 999999


def generate_otp() -> str:
    """Return a random 6-digit numeric code in ``100000``–``999999``."""
    return str(random.randint(OTP_MIN, OTP_MAX))
