"""
Data store access for events, categories, candidates, judges and raw score rows.

Reads return raw rows only; nothing here aggregates. The write helpers are the
data-entry plumbing that judges and organisers use to fill the store.
"""

from __future__ import annotations

import math
import sqlite3
from datetime import datetime
from typing import List, Optional

from .db import init_db, transaction
from .errors import EmptyEvent, InvalidScore, NotFound
from .logging import get_logger
from .models import (
    Candidate,
    Category,
    Criterion,
    Event,
    EventSnapshot,
    Judge,
    Note,
    ScoreEntry,
)

logger = get_logger(__name__)


def _now() -> str:
    return datetime.utcnow().isoformat(timespec="seconds")


def _fetch_one(conn: sqlite3.Connection, kind: str, ident: int, sql: str, params: tuple) -> sqlite3.Row:
    row = conn.execute(sql, params).fetchone()
    if row is None:
        raise NotFound(kind, ident)
    return row


# -----------------------
# Reads against an open connection
# -----------------------
def read_event(conn: sqlite3.Connection, event_id: int) -> Event:
    return Event.from_row(_fetch_one(conn, "event", event_id, "SELECT * FROM events WHERE id=?", (event_id,)))


def read_categories(conn: sqlite3.Connection, event_id: int) -> List[Category]:
    read_event(conn, event_id)
    rows = conn.execute("SELECT * FROM categories WHERE event_id=? ORDER BY id", (event_id,)).fetchall()
    if not rows:
        raise EmptyEvent(event_id)
    return [Category.from_row(r) for r in rows]


def read_candidates(conn: sqlite3.Connection, event_id: int) -> List[Candidate]:
    rows = conn.execute(
        "SELECT * FROM candidates WHERE event_id=? ORDER BY gender, candidate_number, id", (event_id,)
    ).fetchall()
    return [Candidate.from_row(r) for r in rows]


def read_event_entries(conn: sqlite3.Connection, event_id: int) -> List[ScoreEntry]:
    rows = conn.execute(
        """
        SELECT s.* FROM scores s
        JOIN categories cat ON cat.id = s.category_id
        WHERE cat.event_id = ?
        ORDER BY s.id
        """,
        (event_id,),
    ).fetchall()
    return [ScoreEntry.from_row(r) for r in rows]


def read_category(conn: sqlite3.Connection, category_id: int) -> Category:
    return Category.from_row(
        _fetch_one(conn, "category", category_id, "SELECT * FROM categories WHERE id=?", (category_id,))
    )


def read_score_entries(conn: sqlite3.Connection, candidate_id: int, category_id: int) -> List[ScoreEntry]:
    rows = conn.execute(
        "SELECT * FROM scores WHERE candidate_id=? AND category_id=? ORDER BY id",
        (candidate_id, category_id),
    ).fetchall()
    return [ScoreEntry.from_row(r) for r in rows]


def read_candidate(conn: sqlite3.Connection, candidate_id: int) -> Candidate:
    return Candidate.from_row(
        _fetch_one(conn, "candidate", candidate_id, "SELECT * FROM candidates WHERE id=?", (candidate_id,))
    )


def read_snapshot(conn: sqlite3.Connection, event_id: int, allow_empty: bool = False) -> EventSnapshot:
    """
    Everything one aggregation run reads, taken from the caller's transaction.

    With ``allow_empty`` an event without categories yields a snapshot with no
    categories instead of raising ``EmptyEvent``.
    """
    event = read_event(conn, event_id)
    try:
        categories = read_categories(conn, event_id)
    except EmptyEvent:
        if not allow_empty:
            raise
        categories = []
    return EventSnapshot(
        event=event,
        categories=categories,
        candidates=read_candidates(conn, event_id),
        entries=read_event_entries(conn, event_id),
    )


class ScoreRepository:
    """SQLite-backed store. Each public method runs in its own transaction."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    def init_schema(self) -> None:
        init_db(self.db_path)

    def transaction(self, immediate: bool = False):
        return transaction(self.db_path, immediate=immediate)

    # -----------------------
    # Engine reads
    # -----------------------
    def categories_for_event(self, event_id: int) -> List[Category]:
        with self.transaction() as conn:
            return read_categories(conn, event_id)

    def score_entries(self, candidate_id: int, category_id: int) -> List[ScoreEntry]:
        with self.transaction() as conn:
            return read_score_entries(conn, candidate_id, category_id)

    def load_snapshot(self, event_id: int) -> EventSnapshot:
        """
        Read categories, candidates and score rows of one event in one transaction.

        Raises ``NotFound`` for an unknown event and ``EmptyEvent`` when the
        event has no categories.
        """
        with self.transaction() as conn:
            return read_snapshot(conn, event_id)

    def get_event(self, event_id: int) -> Event:
        with self.transaction() as conn:
            return read_event(conn, event_id)

    def get_category(self, category_id: int) -> Category:
        with self.transaction() as conn:
            return read_category(conn, category_id)

    def get_candidate(self, candidate_id: int) -> Candidate:
        with self.transaction() as conn:
            return read_candidate(conn, candidate_id)

    # -----------------------
    # Listings
    # -----------------------
    def list_events(self) -> List[Event]:
        with self.transaction() as conn:
            rows = conn.execute("SELECT * FROM events ORDER BY id DESC").fetchall()
        return [Event.from_row(r) for r in rows]

    def list_categories(self, event_id: int) -> List[Category]:
        with self.transaction() as conn:
            read_event(conn, event_id)
            rows = conn.execute("SELECT * FROM categories WHERE event_id=? ORDER BY id", (event_id,)).fetchall()
        return [Category.from_row(r) for r in rows]

    def list_criteria(self, category_id: int) -> List[Criterion]:
        with self.transaction() as conn:
            _fetch_one(conn, "category", category_id, "SELECT id FROM categories WHERE id=?", (category_id,))
            rows = conn.execute("SELECT * FROM criteria WHERE category_id=? ORDER BY id", (category_id,)).fetchall()
        return [Criterion.from_row(r) for r in rows]

    def list_candidates(self, event_id: int) -> List[Candidate]:
        with self.transaction() as conn:
            read_event(conn, event_id)
            return read_candidates(conn, event_id)

    def list_colleges(self, event_id: int) -> List[str]:
        """Distinct colleges the event's candidates represent, alphabetically."""
        with self.transaction() as conn:
            read_event(conn, event_id)
            rows = conn.execute(
                "SELECT DISTINCT college FROM candidates WHERE event_id=? AND college != '' ORDER BY college",
                (event_id,),
            ).fetchall()
        return [r["college"] for r in rows]

    def list_notes(self, candidate_id: int, judge_id: Optional[int] = None) -> List[Note]:
        sql = "SELECT * FROM notes WHERE candidate_id=?"
        params: tuple = (candidate_id,)
        if judge_id is not None:
            sql += " AND judge_id=?"
            params += (judge_id,)
        with self.transaction() as conn:
            read_candidate(conn, candidate_id)
            rows = conn.execute(sql + " ORDER BY id", params).fetchall()
        return [Note.from_row(r) for r in rows]

    # -----------------------
    # Data entry
    # -----------------------
    def create_event(self, name: str) -> Event:
        with self.transaction(immediate=True) as conn:
            cur = conn.execute(
                "INSERT INTO events(name, created_at) VALUES(?,?)", (name.strip(), _now())
            )
            return read_event(conn, cur.lastrowid)

    def create_category(self, event_id: int, name: str, weight: float) -> Category:
        if not math.isfinite(weight) or weight < 0:
            raise ValueError(f"Category weight must be a finite non-negative number, got {weight}.")
        with self.transaction(immediate=True) as conn:
            read_event(conn, event_id)
            cur = conn.execute(
                "INSERT INTO categories(event_id, name, weight) VALUES(?,?,?)",
                (event_id, name.strip(), float(weight)),
            )
            row = conn.execute("SELECT * FROM categories WHERE id=?", (cur.lastrowid,)).fetchone()
        return Category.from_row(row)

    def activate_category(self, event_id: int, category_id: int) -> Category:
        """Mark one category of the event as the one being judged; clear the others."""
        with self.transaction(immediate=True) as conn:
            _fetch_one(
                conn, "category", category_id,
                "SELECT id FROM categories WHERE id=? AND event_id=?", (category_id, event_id),
            )
            conn.execute(
                "UPDATE categories SET is_active = CASE WHEN id=? THEN 1 ELSE 0 END WHERE event_id=?",
                (category_id, event_id),
            )
            row = conn.execute("SELECT * FROM categories WHERE id=?", (category_id,)).fetchone()
        return Category.from_row(row)

    def create_criterion(self, category_id: int, name: str) -> Criterion:
        with self.transaction(immediate=True) as conn:
            _fetch_one(conn, "category", category_id, "SELECT id FROM categories WHERE id=?", (category_id,))
            cur = conn.execute(
                "INSERT INTO criteria(category_id, name) VALUES(?,?)", (category_id, name.strip())
            )
            row = conn.execute("SELECT * FROM criteria WHERE id=?", (cur.lastrowid,)).fetchone()
        return Criterion.from_row(row)

    def create_candidate(
        self,
        event_id: int,
        first_name: str,
        last_name: str,
        gender: int,
        candidate_number: int,
        middle_name: str = "",
        college: str = "",
    ) -> Candidate:
        with self.transaction(immediate=True) as conn:
            read_event(conn, event_id)
            taken = conn.execute(
                "SELECT id FROM candidates WHERE event_id=? AND candidate_number=?", (event_id, candidate_number)
            ).fetchone()
            if taken:
                raise ValueError(f"Candidate number {candidate_number} is already taken.")
            cur = conn.execute(
                """
                INSERT INTO candidates(event_id, first_name, middle_name, last_name, gender, candidate_number, college)
                VALUES(?,?,?,?,?,?,?)
                """,
                (event_id, first_name.strip(), middle_name.strip(), last_name.strip(),
                 gender, candidate_number, college.strip()),
            )
            row = conn.execute("SELECT * FROM candidates WHERE id=?", (cur.lastrowid,)).fetchone()
        return Candidate.from_row(row)

    def create_judge(self, event_id: int, name: str) -> Judge:
        """Register a judge; joining again under the same name returns the existing row."""
        name = name.strip()
        with self.transaction(immediate=True) as conn:
            read_event(conn, event_id)
            existing = conn.execute(
                "SELECT * FROM judges WHERE event_id=? AND name=?", (event_id, name)
            ).fetchone()
            if existing:
                return Judge.from_row(existing)
            cur = conn.execute("INSERT INTO judges(event_id, name) VALUES(?,?)", (event_id, name))
            row = conn.execute("SELECT * FROM judges WHERE id=?", (cur.lastrowid,)).fetchone()
        return Judge.from_row(row)

    def submit_score(
        self,
        candidate_id: int,
        category_id: int,
        judge_id: int,
        score: int,
        max: int,
        criterion_id: Optional[int] = None,
    ) -> ScoreEntry:
        _check_score(score, max)
        with self.transaction(immediate=True) as conn:
            candidate = _fetch_one(
                conn, "candidate", candidate_id, "SELECT event_id FROM candidates WHERE id=?", (candidate_id,)
            )
            category = _fetch_one(
                conn, "category", category_id, "SELECT event_id FROM categories WHERE id=?", (category_id,)
            )
            judge = _fetch_one(conn, "judge", judge_id, "SELECT event_id FROM judges WHERE id=?", (judge_id,))
            if candidate["event_id"] != category["event_id"]:
                raise InvalidScore(f"Candidate {candidate_id} is not part of category {category_id}'s event.")
            if judge["event_id"] != category["event_id"]:
                raise InvalidScore(f"Judge {judge_id} is not judging category {category_id}'s event.")
            if criterion_id is not None:
                crit = _fetch_one(
                    conn, "criterion", criterion_id, "SELECT category_id FROM criteria WHERE id=?", (criterion_id,)
                )
                if crit["category_id"] != category_id:
                    raise InvalidScore(f"Criterion {criterion_id} does not belong to category {category_id}.")

            now = _now()
            cur = conn.execute(
                """
                INSERT INTO scores(candidate_id, category_id, criterion_id, judge_id, score, max, time_of_scoring)
                VALUES(?,?,?,?,?,?,?)
                """,
                (candidate_id, category_id, criterion_id, judge_id, score, max, now),
            )
            conn.execute("UPDATE judges SET last_submit_at=? WHERE id=?", (now, judge_id))
            row = conn.execute("SELECT * FROM scores WHERE id=?", (cur.lastrowid,)).fetchone()
        logger.info("Judge %s scored candidate %s in category %s: %s/%s", judge_id, candidate_id, category_id, score, max)
        return ScoreEntry.from_row(row)

    def update_score(self, score_id: int, score: int) -> ScoreEntry:
        """Re-score an existing entry; its max stays as submitted."""
        with self.transaction(immediate=True) as conn:
            row = _fetch_one(conn, "score", score_id, "SELECT * FROM scores WHERE id=?", (score_id,))
            _check_score(score, row["max"])
            conn.execute(
                "UPDATE scores SET score=?, time_of_scoring=? WHERE id=?", (score, _now(), score_id)
            )
            row = conn.execute("SELECT * FROM scores WHERE id=?", (score_id,)).fetchone()
        return ScoreEntry.from_row(row)

    def create_note(self, candidate_id: int, judge_id: int, note: str) -> Note:
        """Append a judge's note on a candidate; both must belong to the same event."""
        note = note.strip()
        if not note:
            raise ValueError("Note must not be empty.")
        with self.transaction(immediate=True) as conn:
            candidate = read_candidate(conn, candidate_id)
            judge = _fetch_one(conn, "judge", judge_id, "SELECT event_id FROM judges WHERE id=?", (judge_id,))
            if judge["event_id"] != candidate.event_id:
                raise ValueError(f"Judge {judge_id} is not judging candidate {candidate_id}'s event.")
            cur = conn.execute(
                "INSERT INTO notes(candidate_id, judge_id, note, last_change) VALUES(?,?,?,?)",
                (candidate_id, judge_id, note, _now()),
            )
            row = conn.execute("SELECT * FROM notes WHERE id=?", (cur.lastrowid,)).fetchone()
        return Note.from_row(row)


def _check_score(score: int, max: int) -> None:
    if max <= 0:
        raise InvalidScore(f"Max must be positive, got {max}.")
    if score < 0 or score > max:
        raise InvalidScore(f"Score out of range: {score} (allowed 0-{max}).")
