"""
Cycle scheduling.

The timeline is cut into fixed-length cycles. The first half of every cycle
shows the silhouette, the second half reveals the creature, and the creature id
is a hash of the cycle's bucket index. Everything here is a pure function of
time and configuration: two requests at the same instant always agree.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
MS_PER_MINUTE = 60 * 1000

# Knuth's multiplicative constant (odd, close to 2^32 / golden ratio)
KNUTH_32 = 2654435761
MASK_32 = 0xFFFFFFFF


class ConfigurationError(ValueError):
    """Raised when the widget configuration cannot produce a schedule."""


@dataclass(frozen=True)
class CycleState:
    bucket_index: int
    reveal: bool
    item_id: int
    elapsed_in_cycle_ms: int
    cycle_length_ms: int

    @property
    def ms_until_phase_change(self):
        """Milliseconds until the silhouette is revealed or the next cycle starts."""
        half = self.cycle_length_ms // 2
        if self.reveal:
            return self.cycle_length_ms - self.elapsed_in_cycle_ms
        return half - self.elapsed_in_cycle_ms


def mix32(value: int) -> int:
    """Hash an integer into the unsigned 32-bit range.

    The multiply wraps modulo 2^32, so negative inputs and overflow are
    well-defined. Folding the high half into the low half keeps small moduli
    from only seeing the weakest low bits of the product.
    """
    h = (value * KNUTH_32) & MASK_32
    h ^= h >> 16
    return h


def item_id_for_bucket(bucket_index: int, pool_size: int) -> int:
    """Map a bucket index to an id in ``[1, pool_size]``."""
    if pool_size <= 0:
        raise ConfigurationError(f"pool size must be positive, got {pool_size}")
    return mix32(bucket_index) % pool_size + 1


def cycle_from_elapsed(elapsed_ms: int, cycle_minutes: int, pool_size: int) -> CycleState:
    """Derive the cycle state from milliseconds elapsed on the local timeline."""
    if cycle_minutes <= 0:
        raise ConfigurationError(f"cycle length must be positive, got {cycle_minutes}")
    cycle_length_ms = cycle_minutes * MS_PER_MINUTE
    bucket_index, within = divmod(elapsed_ms, cycle_length_ms)
    return CycleState(
        bucket_index=bucket_index,
        # Inclusive: the exact midpoint already belongs to the revealed half
        reveal=within * 2 >= cycle_length_ms,
        item_id=item_id_for_bucket(bucket_index, pool_size),
        elapsed_in_cycle_ms=within,
        cycle_length_ms=cycle_length_ms,
    )


def is_known_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return False
    return True


def resolve_timezone(name: str):
    """Return a tzinfo for ``name``, falling back to UTC when it is unknown."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        logger.warning(f"Unknown timezone {name!r}, using UTC")
        return timezone.utc


def local_elapsed_ms(now, tz_name: str) -> int:
    """Milliseconds since the epoch as read off a wall clock in ``tz_name``.

    ``now`` may be an aware datetime, a naive datetime (taken as UTC) or epoch
    seconds.
    """
    if isinstance(now, datetime):
        instant = now if now.tzinfo is not None else now.replace(tzinfo=timezone.utc)
    else:
        instant = EPOCH + timedelta(seconds=now)
    offset = instant.astimezone(resolve_timezone(tz_name)).utcoffset() or timedelta(0)
    return (instant - EPOCH + offset) // timedelta(milliseconds=1)


def compute_cycle(now_or_seed, config) -> CycleState:
    """Compute ``(item id, reveal phase)`` for an instant under ``config``.

    ``config`` needs ``pool_size``, ``timezone`` and ``cycle_minutes``.
    """
    if config.pool_size <= 0:
        raise ConfigurationError(f"pool size must be positive, got {config.pool_size}")
    elapsed_ms = local_elapsed_ms(now_or_seed, config.timezone)
    return cycle_from_elapsed(elapsed_ms, config.cycle_minutes, config.pool_size)
