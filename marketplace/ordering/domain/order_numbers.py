import secrets
import string
import time
from typing import Optional

from django.conf import settings

BASE36_UPPER = string.digits + string.ascii_uppercase
SUFFIX_LENGTH = 5


def generate_order_number(prefix: Optional[str] = None, now_millis: Optional[int] = None) -> str:
    """
    Build a human-readable order reference, e.g. ``LM-1718040000000-7KQ2Z``.

    Buyers quote it in the memo of their mobile-money transfer so operators
    can match payments to orders. Uniqueness is enforced by the database index
    on ``Order.order_number``; callers regenerate on collision.
    """
    if prefix is None:
        prefix = getattr(settings, "MARKETPLACE", {}).get("ORDER_NUMBER_PREFIX", "LM")
    if now_millis is None:
        now_millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(BASE36_UPPER) for _ in range(SUFFIX_LENGTH))
    return f"{prefix}-{now_millis}-{suffix}"
