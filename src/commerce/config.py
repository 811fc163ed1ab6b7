"""Runtime settings for the fulfillment engine, read from the environment."""

import os
from dataclasses import dataclass
from enum import Enum


class BonusReversalMode(Enum):
    """How completion and cancellation derive the bonus amount to move.

    STORED reverses the exact amount recorded when the order was created.
    RECOMPUTE multiplies the order total by the percentage configured at the
    time of completion or cancellation.
    """

    STORED = "stored"
    RECOMPUTE = "recompute"


@dataclass(frozen=True)
class Settings:
    bonus_reversal: BonusReversalMode = BonusReversalMode.STORED
    lock_timeout: float = 10.0


def get_settings() -> Settings:
    """Build settings from ``COMMERCE_*`` environment variables."""
    mode = os.getenv("COMMERCE_BONUS_REVERSAL", BonusReversalMode.STORED.value).lower()
    try:
        bonus_reversal = BonusReversalMode(mode)
    except ValueError:
        raise ValueError(f"Unknown bonus reversal mode: {mode}") from None

    lock_timeout = float(os.getenv("COMMERCE_LOCK_TIMEOUT", "10"))
    if lock_timeout <= 0:
        raise ValueError("COMMERCE_LOCK_TIMEOUT must be positive")

    return Settings(bonus_reversal=bonus_reversal, lock_timeout=lock_timeout)
