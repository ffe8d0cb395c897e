"""Booking and payment reference generation utilities."""

import random
import string
import time
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

BASE36 = string.digits + string.ascii_uppercase


def to_base36(value: int) -> str:
    """Encode a non-negative integer in upper-case base 36."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36[rem])
    return "".join(reversed(digits))


def _candidate_booking_reference() -> str:
    timestamp = to_base36(int(time.time() * 1000))
    random_part = "".join(random.choices(BASE36, k=4))
    return f"SF{timestamp}{random_part}"


async def generate_booking_reference(db: AsyncSession) -> str:
    """Generate a unique booking reference like 'SFLZ2K8Q1XA3B7'.

    Args:
        db: Database session for uniqueness check

    Returns:
        str: "SF" + base36 millisecond timestamp + 4 random characters
    """
    from safari_ledger.models.booking import Booking

    while True:
        reference = _candidate_booking_reference()
        result = await db.execute(
            select(Booking.id).where(Booking.booking_reference == reference)
        )
        if result.scalar_one_or_none() is None:
            return reference


def generate_merchant_reference(booking_reference: str) -> str:
    """Gateway-facing payment reference.

    Returns:
        str: Reference like 'SFLZ2K8Q1XA3B7-20240115-K9M2'
    """
    date_part = datetime.now().strftime("%Y%m%d")
    random_part = "".join(random.choices(BASE36, k=4))
    return f"{booking_reference}-{date_part}-{random_part}"
