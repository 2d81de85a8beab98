"""
Category totals and final-score normalisation.

Raw marks are summed, never averaged, across judges and criteria: a category
judged by three people carries three times the points and three times the
maximum, so the judge count cancels out in the final ratio.

Each category's weighted score and weighted maximum are rounded to two
decimals *before* they are summed across categories, and the final ratio is
rounded again before anyone compares it. Both rounding points matter for
reproducing published results, so keep them where they are.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from .logging import get_logger
from .models import Category, CategoryTotal, EventSnapshot, FinalScore, Indeterminate, ScoreEntry, ScoreResult

logger = get_logger(__name__)

WEIGHTED_DECIMALS = 2
FINAL_SCORE_DECIMALS = 2


def round_half_away(value: float, decimals: int = WEIGHTED_DECIMALS) -> float:
    """Round to ``decimals`` places, halves away from zero (0.125 -> 0.13)."""
    scale = 10.0 ** decimals
    return float(np.sign(value) * np.floor(np.abs(value) * scale + 0.5) / scale)


# -----------------------
# Category aggregator
# -----------------------
def weigh(candidate_id: int, category: Category, total_score: int, total_max: int) -> CategoryTotal:
    total_score, total_max = int(total_score), int(total_max)
    return CategoryTotal(
        candidate_id=candidate_id,
        category_id=category.id,
        weight=category.weight,
        total_score=total_score,
        total_max=total_max,
        weighted_score=total_score * category.weight,
        weighted_max=total_max * category.weight,
    )


def aggregate_category(candidate_id: int, category: Category, entries: Iterable[ScoreEntry]) -> CategoryTotal:
    """
    Sum one candidate's marks in one category and apply the category weight.

    Entries for other candidates or categories are ignored. No matching
    entries gives zero on both sides, which drops the category from the
    candidate's ratio instead of penalising them.
    """
    total_score = 0
    total_max = 0
    for entry in entries:
        if entry.candidate_id == candidate_id and entry.category_id == category.id:
            total_score += entry.score
            total_max += entry.max

    total = weigh(candidate_id, category, total_score, total_max)
    logger.debug(
        "Candidate %s category %s: total %s/%s, weight %s, weighted %s/%s",
        candidate_id, category.id, total.total_score, total.total_max,
        category.weight, total.weighted_score, total.weighted_max,
    )
    return total


def category_totals(
    categories: List[Category],
    candidate_ids: List[int],
    entries: List[ScoreEntry],
) -> Dict[int, List[CategoryTotal]]:
    """
    Totals for every (candidate, category) pair of an event.

    Pairs without entries are filled with zeros, so every candidate gets one
    total per category in category order.
    """
    frame = pd.DataFrame(
        [(e.candidate_id, e.category_id, e.score, e.max) for e in entries],
        columns=["candidate_id", "category_id", "score", "max"],
    )
    index = pd.MultiIndex.from_product(
        [candidate_ids, [c.id for c in categories]], names=["candidate_id", "category_id"]
    )
    if frame.empty:
        sums = pd.DataFrame(0, index=index, columns=["score", "max"])
    else:
        sums = (
            frame.groupby(["candidate_id", "category_id"])[["score", "max"]]
            .sum()
            .reindex(index, fill_value=0)
        )

    out: Dict[int, List[CategoryTotal]] = {cid: [] for cid in candidate_ids}
    for candidate_id in candidate_ids:
        for category in categories:
            row = sums.loc[(candidate_id, category.id)]
            out[candidate_id].append(weigh(candidate_id, category, row["score"], row["max"]))
    return out


# -----------------------
# Final score normalizer
# -----------------------
def normalize(candidate_id: int, totals: List[CategoryTotal]) -> ScoreResult:
    """
    Combine a candidate's category totals into a 0-100 final score.

    Returns ``Indeterminate`` when the weighted maxima sum to zero (nothing
    scored, or every scored category weighs nothing).
    """
    weighted_score_sum = sum(round_half_away(t.weighted_score) for t in totals)
    weighted_max_sum = sum(round_half_away(t.weighted_max) for t in totals)

    if weighted_max_sum == 0:
        reason = _indeterminate_reason(totals)
        logger.debug("Candidate %s has no final score: %s", candidate_id, reason)
        return Indeterminate(candidate_id=candidate_id, reason=reason, categories=list(totals))

    final_score = round_half_away(weighted_score_sum * 100.0 / weighted_max_sum, FINAL_SCORE_DECIMALS)
    logger.debug(
        "Candidate %s: weighted %s/%s -> final %s",
        candidate_id, weighted_score_sum, weighted_max_sum, final_score,
    )
    return FinalScore(
        candidate_id=candidate_id,
        final_score=final_score,
        weighted_score_sum=round_half_away(weighted_score_sum),
        weighted_max_sum=round_half_away(weighted_max_sum),
        categories=list(totals),
    )


def _indeterminate_reason(totals: List[CategoryTotal]) -> str:
    if not totals:
        return "event has no categories"
    if all(t.total_max == 0 for t in totals):
        return "no scores recorded"
    return "scored categories carry no weight"


def final_scores(snapshot: EventSnapshot, candidate_ids: Optional[List[int]] = None) -> List[ScoreResult]:
    """Final score (or Indeterminate) for each candidate of the snapshot, in snapshot order."""
    if candidate_ids is None:
        candidate_ids = [c.id for c in snapshot.candidates]
    totals = category_totals(snapshot.categories, candidate_ids, snapshot.entries)
    return [normalize(cid, totals[cid]) for cid in candidate_ids]
