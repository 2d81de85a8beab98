import pytest

from scoreboard.engine import ScoringEngine
from scoreboard.models import Candidate, Category, ScoreEntry
from scoreboard.repository import ScoreRepository


@pytest.fixture
def repo(tmp_path):
    repository = ScoreRepository(str(tmp_path / "judging.sqlite"))
    repository.init_schema()
    return repository


@pytest.fixture
def engine(repo):
    return ScoringEngine(repo)


@pytest.fixture
def pageant(repo):
    """Event with two weighted categories, two judges and four candidates."""
    event = repo.create_event("Mr. and Ms. Campus")
    talent = repo.create_category(event.id, "Talent", 0.6)
    interview = repo.create_category(event.id, "Interview", 0.4)
    judges = [repo.create_judge(event.id, name) for name in ("Ana", "Ben")]
    candidates = [
        repo.create_candidate(event.id, "Carlo", "Reyes", gender=1, candidate_number=1),
        repo.create_candidate(event.id, "Dan", "Santos", gender=1, candidate_number=2),
        repo.create_candidate(event.id, "Ella", "Cruz", gender=2, candidate_number=11),
        repo.create_candidate(event.id, "Faye", "Lim", gender=2, candidate_number=12),
    ]
    return {
        "event": event,
        "talent": talent,
        "interview": interview,
        "judges": judges,
        "candidates": candidates,
    }


def make_category(id=1, weight=1.0, event_id=1):
    return Category(id=id, event_id=event_id, name=f"Category {id}", weight=weight)


def make_candidate(id, number, gender=1, event_id=1, college=""):
    return Candidate(
        id=id,
        event_id=event_id,
        first_name=f"D{id}",
        middle_name="",
        last_name=f"Candidate{id}",
        gender=gender,
        candidate_number=number,
        college=college,
    )


def make_entry(candidate_id, category_id, score, max=100, judge_id=1, id=0, criterion_id=None):
    return ScoreEntry(
        id=id,
        candidate_id=candidate_id,
        category_id=category_id,
        judge_id=judge_id,
        score=score,
        max=max,
        criterion_id=criterion_id,
    )
