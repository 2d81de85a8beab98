from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import List, Optional, Union

GENDER_LABELS = {1: "male", 2: "female"}


# -----------------------
# Store records (read snapshots)
# -----------------------
@dataclass(frozen=True)
class Event:
    id: int
    name: str
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Event":
        return cls(id=row["id"], name=row["name"], created_at=row["created_at"])


@dataclass(frozen=True)
class Category:
    id: int
    event_id: int
    name: str
    weight: float
    is_active: bool = False

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Category":
        return cls(
            id=row["id"],
            event_id=row["event_id"],
            name=row["name"],
            weight=float(row["weight"]),
            is_active=bool(row["is_active"]),
        )


@dataclass(frozen=True)
class Criterion:
    id: int
    category_id: int
    name: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Criterion":
        return cls(id=row["id"], category_id=row["category_id"], name=row["name"])


@dataclass(frozen=True)
class Candidate:
    id: int
    event_id: int
    first_name: str
    middle_name: str
    last_name: str
    gender: int
    candidate_number: int
    college: str = ""
    final_score: Optional[float] = None

    @property
    def display_name(self) -> str:
        # "Last, First Middle" like the score sheets
        given = " ".join(p for p in (self.first_name, self.middle_name) if p)
        return f"{self.last_name}, {given}" if given else self.last_name

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Candidate":
        return cls(
            id=row["id"],
            event_id=row["event_id"],
            first_name=row["first_name"],
            middle_name=row["middle_name"],
            last_name=row["last_name"],
            gender=row["gender"],
            candidate_number=row["candidate_number"],
            college=row["college"],
            final_score=row["final_score"],
        )


@dataclass(frozen=True)
class Judge:
    id: int
    event_id: int
    name: str
    last_submit_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Judge":
        return cls(
            id=row["id"],
            event_id=row["event_id"],
            name=row["name"],
            last_submit_at=row["last_submit_at"],
        )


@dataclass(frozen=True)
class Note:
    """Free-text remark a judge keeps about a candidate; not part of scoring."""

    id: int
    candidate_id: int
    judge_id: int
    note: str
    last_change: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Note":
        return cls(
            id=row["id"],
            candidate_id=row["candidate_id"],
            judge_id=row["judge_id"],
            note=row["note"],
            last_change=row["last_change"],
        )


@dataclass(frozen=True)
class ScoreEntry:
    """One judge's mark for one candidate in one category (optionally one criterion)."""

    id: int
    candidate_id: int
    category_id: int
    judge_id: int
    score: int
    max: int
    criterion_id: Optional[int] = None
    time_of_scoring: Optional[str] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ScoreEntry":
        return cls(
            id=row["id"],
            candidate_id=row["candidate_id"],
            category_id=row["category_id"],
            judge_id=row["judge_id"],
            score=row["score"],
            max=row["max"],
            criterion_id=row["criterion_id"],
            time_of_scoring=row["time_of_scoring"],
        )


@dataclass(frozen=True)
class EventSnapshot:
    """Everything one aggregation run needs, read inside a single transaction."""

    event: Event
    categories: List[Category]
    candidates: List[Candidate]
    entries: List[ScoreEntry]

    def candidate(self, candidate_id: int) -> Optional[Candidate]:
        return next((c for c in self.candidates if c.id == candidate_id), None)


# -----------------------
# Derived results
# -----------------------
@dataclass(frozen=True)
class CategoryTotal:
    candidate_id: int
    category_id: int
    weight: float
    total_score: int
    total_max: int
    weighted_score: float
    weighted_max: float


@dataclass(frozen=True)
class FinalScore:
    candidate_id: int
    final_score: float
    weighted_score_sum: float
    weighted_max_sum: float
    categories: List[CategoryTotal] = field(default_factory=list)

    indeterminate = False


@dataclass(frozen=True)
class Indeterminate:
    """
    A candidate with no scorable denominator.

    Distinct from a final score of zero: callers must list it as unranked
    rather than placing it last.
    """

    candidate_id: int
    reason: str
    categories: List[CategoryTotal] = field(default_factory=list)

    indeterminate = True


ScoreResult = Union[FinalScore, Indeterminate]


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    group: str
    candidate_id: int
    candidate_number: int
    display_name: str
    gender: int
    college: str
    final_score: float


@dataclass(frozen=True)
class UnrankedEntry:
    candidate_id: int
    candidate_number: int
    display_name: str
    group: str
    reason: str


@dataclass(frozen=True)
class Leaderboard:
    event_id: int
    group_by: Optional[str]
    top_n: Optional[int]
    entries: List[LeaderboardEntry]
    unranked: List[UnrankedEntry]

    def group(self, label: str) -> List[LeaderboardEntry]:
        return [e for e in self.entries if e.group == label]


@dataclass(frozen=True)
class SyncResult:
    event_id: int
    updated: List[int]
    unchanged: int
