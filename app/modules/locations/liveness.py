"""
Live / Latest / Historical classification.

Classification is time-relative and derived on every query; it is never
stored. The clock is always passed in.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from app.config.settings import settings
from app.core.clock import ensure_utc
from app.modules.locations.schemas import Liveness, LocationResponse

logger = logging.getLogger(__name__)


def _minute_index(value: datetime) -> int:
    return int(ensure_utc(value).timestamp() // 60)


def age_minutes(local_timestamp: datetime, now: datetime) -> int:
    """Whole-minute age; seconds are truncated on both sides so the result does not flicker."""
    return _minute_index(now) - _minute_index(local_timestamp)


def classify(
    local_timestamp: datetime,
    threshold_minutes: Optional[int],
    now: datetime,
    is_latest: bool = False,
) -> Liveness:
    threshold = threshold_minutes if threshold_minutes is not None else settings.default_location_time_threshold_minutes
    if age_minutes(local_timestamp, now) <= threshold:
        return Liveness.LIVE
    if is_latest:
        return Liveness.LATEST
    return Liveness.HISTORICAL


def pick_latest(records: Iterable[LocationResponse]) -> Optional[LocationResponse]:
    """Most recent record; equal timestamps resolve to the highest id."""
    latest = None
    for record in records:
        if latest is None or (ensure_utc(record.local_timestamp), record.id) > (ensure_utc(latest.local_timestamp), latest.id):
            latest = record
    return latest


def annotate(
    records: List[LocationResponse],
    thresholds: Dict[str, int],
    latest_ids: Dict[str, Optional[int]],
    now: datetime,
) -> List[LocationResponse]:
    """
    Annotate a result set. Only the subject's most recent record can be live
    or latest, so at most one record per subject carries either state.
    """
    annotated = []
    for record in records:
        threshold = thresholds.get(record.user_id, settings.default_location_time_threshold_minutes)
        is_latest = latest_ids.get(record.user_id) == record.id
        liveness = classify(record.local_timestamp, threshold, now, is_latest=True) if is_latest else Liveness.HISTORICAL
        annotated.append(record.model_copy(update={
            "liveness": liveness,
            "is_latest_location": is_latest,
            "location_time_threshold_minutes": threshold,
        }))
    return annotated


def next_recheck_delay(records: Iterable[LocationResponse], now: datetime) -> Optional[float]:
    """
    Seconds until the earliest live record stops being live, or None when no
    record is live. A record leaves the live window at the start of minute
    capture_minute + threshold + 1.
    """
    now_seconds = ensure_utc(now).timestamp()
    delays = []
    for record in records:
        if record.liveness != Liveness.LIVE:
            continue
        threshold = record.location_time_threshold_minutes
        if threshold is None:
            threshold = settings.default_location_time_threshold_minutes
        expires_at = (_minute_index(record.local_timestamp) + threshold + 1) * 60
        delays.append(max(0.0, expires_at - now_seconds))
    return min(delays) if delays else None


class LivenessRecheckTimer:
    """
    One-shot timer that fires when the earliest live record expires.

    Every reschedule() or cancel() bumps the generation, so a timer that was
    already sleeping when its record set was replaced never runs its callback.
    """

    def __init__(self, callback: Callable[[], Awaitable[None]]):
        self._callback = callback
        self._generation = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def reschedule(self, records: Iterable[LocationResponse], now: datetime) -> Optional[float]:
        self.cancel()
        delay = next_recheck_delay(records, now)
        if delay is None:
            return None
        self._task = asyncio.get_running_loop().create_task(self._fire(delay, self._generation))
        return delay

    def cancel(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _fire(self, delay: float, generation: int) -> None:
        await asyncio.sleep(delay)
        if generation != self._generation:
            return
        try:
            await self._callback()
        except Exception as e:
            logger.error(f"Liveness recheck callback failed: {e}")
