import pytest

from scoreboard.errors import NotFound, StorageFailure
from scoreboard.models import FinalScore, Indeterminate


def score_all(repo, pageant, marks):
    """marks: {candidate index: (talent score, interview score)}, both judges give the same."""
    for idx, (talent, interview) in marks.items():
        candidate = pageant["candidates"][idx]
        for judge in pageant["judges"]:
            repo.submit_score(candidate.id, pageant["talent"].id, judge.id, talent, 100)
            repo.submit_score(candidate.id, pageant["interview"].id, judge.id, interview, 100)


def test_aggregate_category(repo, engine, pageant):
    carlo = pageant["candidates"][0]
    talent = pageant["talent"]
    repo.submit_score(carlo.id, talent.id, pageant["judges"][0].id, 90, 100)
    repo.submit_score(carlo.id, talent.id, pageant["judges"][1].id, 80, 100)

    total = engine.aggregate_category(carlo.id, talent.id)

    assert total.total_score == 170
    assert total.total_max == 200
    assert total.weighted_score == pytest.approx(102)
    assert total.weighted_max == pytest.approx(120)


def test_aggregate_category_unknown(engine, pageant):
    with pytest.raises(NotFound):
        engine.aggregate_category(999, pageant["talent"].id)
    with pytest.raises(NotFound):
        engine.aggregate_category(pageant["candidates"][0].id, 999)


def test_compute_final_score(repo, engine, pageant):
    score_all(repo, pageant, {0: (90, 70)})
    result = engine.compute_final_score(pageant["candidates"][0].id, pageant["event"].id)

    assert isinstance(result, FinalScore)
    assert result.final_score == 82.0


def test_compute_final_score_without_marks(engine, pageant):
    result = engine.compute_final_score(pageant["candidates"][1].id, pageant["event"].id)
    assert isinstance(result, Indeterminate)


def test_event_without_categories_is_no_data(repo, engine):
    event = repo.create_event("Empty")
    candidate = repo.create_candidate(event.id, "Gus", "Tan", gender=1, candidate_number=1)

    result = engine.compute_final_score(candidate.id, event.id)
    assert isinstance(result, Indeterminate)
    assert result.reason == "event has no categories"

    board = engine.leaderboard(event.id)
    assert board.entries == []
    assert [u.candidate_id for u in board.unranked] == [candidate.id]


def test_unknown_event_or_candidate(engine, pageant):
    with pytest.raises(NotFound):
        engine.compute_final_score(pageant["candidates"][0].id, 999)
    with pytest.raises(NotFound):
        engine.compute_final_score(999, pageant["event"].id)
    with pytest.raises(NotFound):
        engine.build_leaderboard(999)


def test_candidate_and_category_of_different_events(repo, engine, pageant):
    score_all(repo, pageant, {0: (90, 70)})
    carlo = pageant["candidates"][0]
    other = repo.create_event("Battle of the Bands")
    stage = repo.create_category(other.id, "Stage presence", 1.0)

    with pytest.raises(NotFound):
        engine.compute_final_score(carlo.id, other.id)
    with pytest.raises(NotFound):
        engine.aggregate_category(carlo.id, stage.id)

    assert engine.compute_final_score(carlo.id, pageant["event"].id).final_score == 82.0


def test_leaderboard_by_gender(repo, engine, pageant):
    score_all(repo, pageant, {0: (70, 70), 1: (90, 80), 2: (85, 85), 3: (85, 85)})

    board = engine.leaderboard(pageant["event"].id, group_by="gender")
    names = [(e.group, e.display_name, e.rank) for e in board.entries]

    assert names == [
        ("male", "Santos, Dan", 1),
        ("male", "Reyes, Carlo", 2),
        ("female", "Cruz, Ella", 1),
        ("female", "Lim, Faye", 2),
    ]
    assert board.unranked == []

    top = engine.build_leaderboard(pageant["event"].id, group_by="gender", top_n=1)
    assert [e.display_name for e in top] == ["Santos, Dan", "Cruz, Ella"]


def test_leaderboard_is_idempotent(repo, engine, pageant):
    score_all(repo, pageant, {0: (60, 90), 1: (90, 60), 2: (75, 75)})
    event_id = pageant["event"].id

    assert engine.leaderboard(event_id, group_by="gender") == engine.leaderboard(event_id, group_by="gender")
    unranked = engine.leaderboard(event_id).unranked
    assert [u.candidate_id for u in unranked] == [pageant["candidates"][3].id]


def test_rescoring_is_reflected(repo, engine, pageant):
    carlo = pageant["candidates"][0]
    entry = repo.submit_score(carlo.id, pageant["talent"].id, pageant["judges"][0].id, 50, 100)
    assert engine.compute_final_score(carlo.id, pageant["event"].id).final_score == 50.0

    repo.update_score(entry.id, 75)
    assert engine.compute_final_score(carlo.id, pageant["event"].id).final_score == 75.0


def test_recompute_writes_only_changes(repo, engine, pageant):
    score_all(repo, pageant, {0: (90, 70), 1: (50, 50)})
    event_id = pageant["event"].id
    carlo, dan, ella, faye = pageant["candidates"]

    first = engine.recompute_final_scores(event_id)
    assert sorted(first.updated) == sorted([carlo.id, dan.id])
    assert first.unchanged == 2
    assert repo.get_candidate(carlo.id).final_score == 82.0
    assert repo.get_candidate(ella.id).final_score is None

    second = engine.recompute_final_scores(event_id)
    assert second.updated == []
    assert second.unchanged == 4

    repo.submit_score(ella.id, pageant["talent"].id, pageant["judges"][0].id, 40, 100)
    third = engine.recompute_final_scores(event_id)
    assert third.updated == [ella.id]
    assert repo.get_candidate(ella.id).final_score == 40.0


def test_recompute_rolls_back_on_failure(repo, engine, pageant):
    score_all(repo, pageant, {0: (90, 70), 1: (50, 50)})
    carlo, dan = pageant["candidates"][:2]
    with repo.transaction() as conn:
        conn.execute(
            f"""
            CREATE TRIGGER reject_dan BEFORE UPDATE OF final_score ON candidates
            WHEN NEW.id = {dan.id}
            BEGIN SELECT RAISE(ABORT, 'write refused'); END
            """
        )

    with pytest.raises(StorageFailure):
        engine.recompute_final_scores(pageant["event"].id)

    assert repo.get_candidate(carlo.id).final_score is None
    assert repo.get_candidate(dan.id).final_score is None


def test_final_scores_listing(repo, engine, pageant):
    score_all(repo, pageant, {2: (100, 100)})
    rows = engine.candidate_final_scores(pageant["event"].id)

    assert len(rows) == 4
    by_name = {c.first_name: r for c, r in rows}
    assert by_name["Ella"].final_score == 100.0
    assert by_name["Carlo"].indeterminate
