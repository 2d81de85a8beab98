"""
The three scoring operations plus the explicit recompute-and-store batch.

Each call reads a fresh snapshot inside one transaction and recomputes from
scratch; nothing is cached on the engine between calls.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from . import aggregation
from .errors import NotFound
from .leaderboard import build_leaderboard
from .logging import get_logger
from .models import Candidate, CategoryTotal, EventSnapshot, Leaderboard, LeaderboardEntry, ScoreResult, SyncResult
from .repository import ScoreRepository, read_candidate, read_category, read_score_entries, read_snapshot
from .sync import sync_final_scores

logger = get_logger(__name__)


class ScoringEngine:
    def __init__(self, repository: ScoreRepository):
        self.repository = repository

    def aggregate_category(self, candidate_id: int, category_id: int) -> CategoryTotal:
        with self.repository.transaction() as conn:
            candidate = read_candidate(conn, candidate_id)
            category = read_category(conn, category_id)
            if category.event_id != candidate.event_id:
                raise NotFound(
                    "category", category_id,
                    f"Category {category_id} is not part of candidate {candidate_id}'s event.",
                )
            entries = read_score_entries(conn, candidate_id, category_id)
        return aggregation.aggregate_category(candidate_id, category, entries)

    def compute_final_score(self, candidate_id: int, event_id: int) -> ScoreResult:
        """Final score of one candidate over the event's categories, or ``Indeterminate``."""
        with self.repository.transaction() as conn:
            read_candidate(conn, candidate_id)
            snapshot = read_snapshot(conn, event_id, allow_empty=True)
        if snapshot.candidate(candidate_id) is None:
            raise NotFound(
                "candidate", candidate_id, f"Candidate {candidate_id} is not part of event {event_id}."
            )
        return aggregation.final_scores(snapshot, [candidate_id])[0]

    def final_scores(self, event_id: int) -> List[ScoreResult]:
        return aggregation.final_scores(self._snapshot(event_id))

    def candidate_final_scores(self, event_id: int) -> List[Tuple[Candidate, ScoreResult]]:
        snapshot = self._snapshot(event_id)
        return list(zip(snapshot.candidates, aggregation.final_scores(snapshot)))

    def leaderboard(self, event_id: int, group_by: Optional[str] = None, top_n: Optional[int] = None) -> Leaderboard:
        snapshot = self._snapshot(event_id)
        results = aggregation.final_scores(snapshot)
        board = build_leaderboard(event_id, snapshot.candidates, results, group_by=group_by, top_n=top_n)
        if board.unranked:
            logger.info("Event %s: %d candidate(s) unranked", event_id, len(board.unranked))
        return board

    def build_leaderboard(
        self, event_id: int, group_by: Optional[str] = None, top_n: Optional[int] = None
    ) -> List[LeaderboardEntry]:
        return self.leaderboard(event_id, group_by=group_by, top_n=top_n).entries

    def recompute_final_scores(self, event_id: int) -> SyncResult:
        """
        Recompute every candidate of the event and store changed final scores.

        Read, compute and write share one write-locked transaction, so either
        every changed score lands or none does.
        """
        with self.repository.transaction(immediate=True) as conn:
            snapshot = read_snapshot(conn, event_id, allow_empty=True)
            results = aggregation.final_scores(snapshot)
            return sync_final_scores(conn, event_id, results)

    def _snapshot(self, event_id: int) -> EventSnapshot:
        with self.repository.transaction() as conn:
            return read_snapshot(conn, event_id, allow_empty=True)
