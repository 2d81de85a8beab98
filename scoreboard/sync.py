from __future__ import annotations

import sqlite3
from typing import List, Optional, Sequence, Tuple

from .logging import get_logger
from .models import ScoreResult, SyncResult

logger = get_logger(__name__)


def stored_value(result: ScoreResult) -> Optional[float]:
    # Indeterminate clears the cache rather than storing 0
    return None if result.indeterminate else result.final_score


def sync_final_scores(conn: sqlite3.Connection, event_id: int, results: Sequence[ScoreResult]) -> SyncResult:
    """
    Write each computed final score to ``candidates.final_score`` when it changed.

    Must run inside the caller's transaction: the caller commits all updates
    together or rolls all of them back. Unchanged candidates are not written,
    so listeners on the live-update channel only hear about real changes.
    """
    ids = [r.candidate_id for r in results]
    stored = {}
    if ids:
        placeholders = ",".join(["?"] * len(ids))
        rows = conn.execute(
            f"SELECT id, final_score FROM candidates WHERE id IN ({placeholders})", ids
        ).fetchall()
        stored = {r["id"]: r["final_score"] for r in rows}

    updates: List[Tuple[Optional[float], int]] = []
    for result in results:
        new = stored_value(result)
        if stored.get(result.candidate_id) != new:
            updates.append((new, result.candidate_id))

    if updates:
        conn.executemany("UPDATE candidates SET final_score=? WHERE id=?", updates)

    logger.info(
        "Event %s: %d final score(s) updated, %d unchanged",
        event_id, len(updates), len(results) - len(updates),
    )
    return SyncResult(
        event_id=event_id,
        updated=[cid for _value, cid in updates],
        unchanged=len(results) - len(updates),
    )
