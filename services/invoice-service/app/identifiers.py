import random
import time
import uuid
from datetime import datetime
from typing import Optional

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _epoch_millis() -> int:
    return int(time.time() * 1000)


def generate_invoice_number(now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> str:
    """INV-{YYYY}{MM}-{last 6 digits of epoch millis}{2 random digits}"""
    now = now or datetime.now()
    rng = rng or random
    millis = str(int(now.timestamp() * 1000))[-6:]
    suffix = f"{rng.randint(0, 99):02d}"
    return f"INV-{now.year}{now.month:02d}-{millis}{suffix}"


def generate_line_item_id(rng: Optional[random.Random] = None) -> str:
    rng = rng or random
    suffix = "".join(rng.choice(_BASE36) for _ in range(9))
    return f"line_{_epoch_millis()}_{suffix}"


def generate_document_id() -> str:
    return uuid.uuid4().hex[:20]
