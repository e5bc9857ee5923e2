"""
Auto-save policy: decide whether freshly computed scores should be written again.

The client holds the last-saved state (time and scores) and sends it with the
request; the server keeps nothing. Two clients with stale state can both
decide to save, so duplicate writes are possible.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from backend_rivora.core.models import parse_horizon_time

AUTO_SAVE_INTERVAL = timedelta(hours=24)
SCORE_CHANGE_THRESHOLD = 0.01


@dataclass(frozen=True)
class AutoSaveDecision:
    save: bool
    reason: str


def should_auto_save(
    last_saved_at: datetime | str | None,
    last_scores: tuple[float, float] | None,
    current: tuple[float, float],
    now: datetime | None = None,
) -> AutoSaveDecision:
    """
    Save when nothing was saved before, or when at least 24h have passed and
    either score moved by more than 0.01.
    """
    saved_at = parse_horizon_time(last_saved_at)
    if saved_at is None or last_scores is None:
        return AutoSaveDecision(True, "never_saved")

    now = now or datetime.now(timezone.utc)
    if now - saved_at < AUTO_SAVE_INTERVAL:
        return AutoSaveDecision(False, "saved_recently")

    changed = any(abs(float(c) - float(p)) > SCORE_CHANGE_THRESHOLD for c, p in zip(current, last_scores))
    if not changed:
        return AutoSaveDecision(False, "scores_unchanged")
    return AutoSaveDecision(True, "scores_changed")
