from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .errors import NotFound
from .models import (
    GENDER_LABELS,
    Candidate,
    Leaderboard,
    LeaderboardEntry,
    ScoreResult,
    UnrankedEntry,
)

GROUP_FIELDS = ("gender", "college")
OVERALL = "overall"


def group_of(candidate: Candidate, group_by: Optional[str]) -> Tuple[Any, str]:
    """Return (sort key, display label) of the candidate's leaderboard group."""
    if group_by is None:
        return "", OVERALL
    if group_by == "gender":
        return candidate.gender, GENDER_LABELS.get(candidate.gender, str(candidate.gender))
    if group_by == "college":
        return candidate.college, candidate.college or "unassigned"
    raise ValueError(f"Cannot group by '{group_by}', expected one of {', '.join(GROUP_FIELDS)}.")


def build_leaderboard(
    event_id: int,
    candidates: Sequence[Candidate],
    results: Sequence[ScoreResult],
    group_by: Optional[str] = None,
    top_n: Optional[int] = None,
) -> Leaderboard:
    """
    Rank final scores, optionally per group and truncated to the top N of each group.

    Within a group: higher final score wins; an exact tie goes to the lower
    candidate number (registration order), then the lower candidate id.
    Ranks are 1..N and never shared. Indeterminate results get no rank and
    are returned in ``unranked``.
    """
    if group_by is not None and group_by not in GROUP_FIELDS:
        raise ValueError(f"Cannot group by '{group_by}', expected one of {', '.join(GROUP_FIELDS)}.")
    if top_n is not None and top_n < 1:
        raise ValueError(f"top_n must be at least 1, got {top_n}.")

    by_id: Dict[int, Candidate] = {c.id: c for c in candidates}
    rows: List[Dict[str, Any]] = []
    unranked: List[Tuple[Any, UnrankedEntry]] = []

    for result in results:
        candidate = by_id.get(result.candidate_id)
        if candidate is None:
            raise NotFound("candidate", result.candidate_id)
        key, label = group_of(candidate, group_by)

        if result.indeterminate:
            unranked.append((key, UnrankedEntry(
                candidate_id=candidate.id,
                candidate_number=candidate.candidate_number,
                display_name=candidate.display_name,
                group=label,
                reason=result.reason,
            )))
            continue

        rows.append({
            "group_key": key,
            "group": label,
            "candidate_id": candidate.id,
            "candidate_number": candidate.candidate_number,
            "display_name": candidate.display_name,
            "gender": candidate.gender,
            "college": candidate.college,
            "final_score": result.final_score,
        })

    unranked.sort(key=lambda kv: (kv[0], kv[1].candidate_number, kv[1].candidate_id))
    unranked_entries = [u for _key, u in unranked]

    if not rows:
        return Leaderboard(event_id, group_by, top_n, entries=[], unranked=unranked_entries)

    ranked = pd.DataFrame(rows).sort_values(
        by=["group_key", "final_score", "candidate_number", "candidate_id"],
        ascending=[True, False, True, True],
        kind="mergesort",
    ).reset_index(drop=True)

    ranked["rank"] = ranked.groupby("group_key", sort=False).cumcount() + 1

    # top-N keeps sorted order within each group
    if top_n is not None:
        ranked = ranked.groupby("group_key", sort=False).head(top_n)

    entries = [
        LeaderboardEntry(
            rank=int(r.rank),
            group=str(r.group),
            candidate_id=int(r.candidate_id),
            candidate_number=int(r.candidate_number),
            display_name=str(r.display_name),
            gender=int(r.gender),
            college=str(r.college),
            final_score=float(r.final_score),
        )
        for r in ranked.itertuples(index=False)
    ]
    return Leaderboard(event_id, group_by, top_n, entries=entries, unranked=unranked_entries)
