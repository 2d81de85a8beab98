import pytest

from scoreboard.errors import EmptyEvent, InvalidScore, NotFound


def test_categories_for_event(repo, pageant):
    categories = repo.categories_for_event(pageant["event"].id)
    assert [(c.name, c.weight) for c in categories] == [("Talent", 0.6), ("Interview", 0.4)]


def test_categories_for_event_without_categories(repo):
    event = repo.create_event("Empty")
    with pytest.raises(EmptyEvent):
        repo.categories_for_event(event.id)
    with pytest.raises(NotFound):
        repo.categories_for_event(999)


def test_weights_need_not_sum_to_one(repo):
    event = repo.create_event("Loose weights")
    repo.create_category(event.id, "A", 2.5)
    repo.create_category(event.id, "B", 0)
    assert [c.weight for c in repo.categories_for_event(event.id)] == [2.5, 0.0]
    with pytest.raises(ValueError):
        repo.create_category(event.id, "C", -0.1)


@pytest.mark.parametrize("weight", [float("inf"), float("nan")])
def test_weight_must_be_finite(repo, weight):
    event = repo.create_event("Odd weights")
    with pytest.raises(ValueError):
        repo.create_category(event.id, "A", weight)
    assert repo.list_categories(event.id) == []


def test_score_entries_are_raw_rows(repo, pageant):
    carlo = pageant["candidates"][0]
    talent = pageant["talent"]
    criterion = repo.create_criterion(talent.id, "Stage presence")
    ana, ben = pageant["judges"]

    repo.submit_score(carlo.id, talent.id, ana.id, 9, 10, criterion_id=criterion.id)
    repo.submit_score(carlo.id, talent.id, ben.id, 7, 10, criterion_id=criterion.id)
    repo.submit_score(carlo.id, pageant["interview"].id, ben.id, 5, 10)

    entries = repo.score_entries(carlo.id, talent.id)
    assert [(e.judge_id, e.score, e.max, e.criterion_id) for e in entries] == [
        (ana.id, 9, 10, criterion.id),
        (ben.id, 7, 10, criterion.id),
    ]
    assert entries[0].time_of_scoring


@pytest.mark.parametrize("score,max", [(-1, 10), (11, 10), (0, 0)])
def test_submit_score_rejects_out_of_range(repo, pageant, score, max):
    with pytest.raises(InvalidScore):
        repo.submit_score(pageant["candidates"][0].id, pageant["talent"].id, pageant["judges"][0].id, score, max)


def test_submit_score_checks_references(repo, pageant):
    carlo = pageant["candidates"][0]
    talent = pageant["talent"]
    judge = pageant["judges"][0]

    with pytest.raises(NotFound):
        repo.submit_score(999, talent.id, judge.id, 1, 10)
    with pytest.raises(NotFound):
        repo.submit_score(carlo.id, talent.id, 999, 1, 10)
    with pytest.raises(NotFound):
        repo.submit_score(carlo.id, talent.id, judge.id, 1, 10, criterion_id=999)

    other = repo.create_criterion(pageant["interview"].id, "Poise")
    with pytest.raises(InvalidScore):
        repo.submit_score(carlo.id, talent.id, judge.id, 1, 10, criterion_id=other.id)

    elsewhere = repo.create_event("Other")
    outsider = repo.create_candidate(elsewhere.id, "Hal", "Go", gender=1, candidate_number=1)
    with pytest.raises(InvalidScore):
        repo.submit_score(outsider.id, talent.id, judge.id, 1, 10)

    assert repo.score_entries(carlo.id, talent.id) == []


def test_submit_score_stamps_judge(repo, pageant):
    judge = pageant["judges"][0]
    repo.submit_score(pageant["candidates"][0].id, pageant["talent"].id, judge.id, 5, 10)
    rejoined = repo.create_judge(pageant["event"].id, judge.name)

    assert rejoined.id == judge.id
    assert rejoined.last_submit_at is not None


def test_update_score(repo, pageant):
    entry = repo.submit_score(pageant["candidates"][0].id, pageant["talent"].id, pageant["judges"][0].id, 5, 10)

    updated = repo.update_score(entry.id, 8)
    assert updated.score == 8
    assert updated.max == 10

    with pytest.raises(InvalidScore):
        repo.update_score(entry.id, 11)
    with pytest.raises(NotFound):
        repo.update_score(999, 1)


def test_candidate_numbers_are_unique_per_event(repo, pageant):
    with pytest.raises(ValueError):
        repo.create_candidate(pageant["event"].id, "Ivy", "Ong", gender=2, candidate_number=11)


def test_activate_category(repo, pageant):
    event_id = pageant["event"].id
    repo.activate_category(event_id, pageant["talent"].id)
    repo.activate_category(event_id, pageant["interview"].id)

    active = [c.name for c in repo.list_categories(event_id) if c.is_active]
    assert active == ["Interview"]

    with pytest.raises(NotFound):
        repo.activate_category(999, pageant["talent"].id)


def test_snapshot(repo, pageant):
    repo.submit_score(pageant["candidates"][0].id, pageant["talent"].id, pageant["judges"][0].id, 5, 10)
    snapshot = repo.load_snapshot(pageant["event"].id)

    assert snapshot.event.name == "Mr. and Ms. Campus"
    assert len(snapshot.categories) == 2
    assert [c.candidate_number for c in snapshot.candidates] == [1, 2, 11, 12]
    assert len(snapshot.entries) == 1


def test_notes(repo, pageant):
    carlo, dan = pageant["candidates"][:2]
    ana, ben = pageant["judges"]

    first = repo.create_note(carlo.id, ana.id, "  Strong opening.  ")
    repo.create_note(carlo.id, ben.id, "Missed a cue.")
    repo.create_note(carlo.id, ana.id, "Recovered well.")

    assert first.note == "Strong opening."
    assert first.last_change
    assert [n.note for n in repo.list_notes(carlo.id)] == ["Strong opening.", "Missed a cue.", "Recovered well."]
    assert [n.note for n in repo.list_notes(carlo.id, judge_id=ana.id)] == ["Strong opening.", "Recovered well."]
    assert repo.list_notes(dan.id) == []


def test_notes_check_references(repo, pageant):
    carlo = pageant["candidates"][0]
    ana = pageant["judges"][0]
    other = repo.create_event("Other")
    stranger = repo.create_judge(other.id, "Zed")

    with pytest.raises(NotFound):
        repo.create_note(999, ana.id, "x")
    with pytest.raises(NotFound):
        repo.create_note(carlo.id, 999, "x")
    with pytest.raises(ValueError):
        repo.create_note(carlo.id, stranger.id, "x")
    with pytest.raises(ValueError):
        repo.create_note(carlo.id, ana.id, "   ")
    with pytest.raises(NotFound):
        repo.list_notes(999)


def test_list_colleges(repo):
    event = repo.create_event("Intercollege")
    for number, college in enumerate(["Engineering", "Arts", "", "Engineering"], start=1):
        repo.create_candidate(event.id, f"C{number}", "Tan", gender=1, candidate_number=number, college=college)

    assert repo.list_colleges(event.id) == ["Arts", "Engineering"]
    with pytest.raises(NotFound):
        repo.list_colleges(999)
