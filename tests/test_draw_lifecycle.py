import pytest
from sqlalchemy import update
from sqlmodel import select

from suite_draw.models import Draw, DrawStatus, DrawSuite, Suite
from suite_draw.services.draw_lifecycle import (
    MSG_LOTTERY_INCOMPLETE,
    DrawLifecycle,
    DrawNotFoundError,
    InvalidTransitionError,
    default_rng,
)
from suite_draw.services.lottery_starter import MSG_UPDATE_FAILED


@pytest.fixture
def lifecycle(session, rng):
    return DrawLifecycle(session, rng=rng)


def test_full_forward_walk(session, build, lifecycle):
    draw = build.draw(status=DrawStatus.draft)
    morse = build.building()
    build.suite(morse, "1", 2, draws=[draw])
    spare = build.suite(morse, "2", 4, draws=[draw])
    build.locked_group(draw, 2)

    assert lifecycle.open(draw.id).ok
    assert lifecycle.start_lottery(draw.id).ok
    assert lifecycle.assign_suites(draw.id).complete
    assert lifecycle.start_selection(draw.id).ok
    result = lifecycle.close(draw.id)

    assert result.ok
    assert result.draw.status == DrawStatus.closed
    assert result.draw.lock_version == 4
    # Unoccupied suites are released when the draw closes
    links = session.exec(select(DrawSuite).where(DrawSuite.draw_id == draw.id)).all()
    assert spare.id not in {link.suite_id for link in links}
    assert len(links) == 1


@pytest.mark.parametrize(
    "status,action",
    [
        (DrawStatus.pre_lottery, "open"),
        (DrawStatus.draft, "start_lottery"),
        (DrawStatus.pre_lottery, "start_selection"),
        (DrawStatus.lottery, "close"),
        (DrawStatus.closed, "close"),
        (DrawStatus.pre_lottery, "assign_suites"),
        (DrawStatus.lottery, "reconcile_sizes"),
    ],
)
def test_wrong_phase_raises_and_writes_nothing(session, build, lifecycle, status, action):
    draw = build.draw(status=status)

    with pytest.raises(InvalidTransitionError) as exc_info:
        getattr(lifecycle, action)(draw.id)

    assert "INVALID_TRANSITION" in str(exc_info.value)
    assert exc_info.value.current == status.value
    reloaded = session.get(Draw, draw.id)
    assert reloaded.status == status
    assert reloaded.lock_version == 0


def test_unknown_draw(lifecycle):
    with pytest.raises(DrawNotFoundError):
        lifecycle.open(999)


def test_start_selection_requires_every_group_placed(session, build, lifecycle):
    draw = build.draw(status=DrawStatus.lottery)
    build.locked_group(draw, 2, lottery_number=1)

    result = lifecycle.start_selection(draw.id)

    assert result.status == "error"
    assert result.messages == [MSG_LOTTERY_INCOMPLETE]
    assert session.get(Draw, draw.id).status == DrawStatus.lottery


def test_start_selection_accepts_skipped_groups(build, lifecycle):
    draw = build.draw(status=DrawStatus.lottery)
    build.locked_group(draw, 2, lottery_number=1, skipped=True)

    assert lifecycle.start_selection(draw.id).ok


def test_concurrent_transition_loses(session, build, lifecycle):
    draw = build.draw(status=DrawStatus.draft)
    session.refresh(draw)
    session.execute(
        update(Draw)
        .where(Draw.id == draw.id)
        .values(lock_version=Draw.lock_version + 1)
        .execution_options(synchronize_session=False)
    )

    result = lifecycle.open(draw.id)

    assert result.messages == [MSG_UPDATE_FAILED]
    assert session.get(Draw, draw.id).status == DrawStatus.draft


def test_closed_draw_no_longer_contests_released_suites(session, build, lifecycle):
    closing = build.draw(name="Closing", status=DrawStatus.suite_selection)
    waiting = build.draw(name="Waiting")
    shared = build.suite(build.building(), "1", 2, draws=[closing, waiting])
    build.locked_group(waiting, 2)

    lifecycle.close(closing.id)

    assert lifecycle.check_readiness(waiting.id).ready
    assert session.get(DrawSuite, (closing.id, shared.id)) is None


def test_add_and_remove_suites(session, build, lifecycle):
    draw = build.draw()
    morse = build.building()
    a = build.suite(morse, "1", 2)
    b = build.suite(morse, "2", 2)

    assert lifecycle.add_suites(draw.id, [a.id, b.id, a.id]) == [a.id, b.id]
    assert lifecycle.add_suites(draw.id, [a.id]) == []

    group = build.locked_group(draw, 2)
    b.group_id = group.id
    session.add(b)
    session.commit()

    # Occupied suites stay linked
    assert lifecycle.remove_suites(draw.id, [a.id, b.id]) == [a.id]


def test_remove_suites_refused_after_lottery_starts(build, lifecycle):
    draw = build.draw(status=DrawStatus.lottery)
    suite = build.suite(build.building(), "1", 2, draws=[draw])

    with pytest.raises(InvalidTransitionError):
        lifecycle.remove_suites(draw.id, [suite.id])


def test_add_suites_refused_from_selection_on(build, lifecycle):
    draw = build.draw(status=DrawStatus.suite_selection)
    suite = build.suite(build.building(), "1", 2)

    with pytest.raises(InvalidTransitionError):
        lifecycle.add_suites(draw.id, [suite.id])


def test_toggle_size_lock(session, build, lifecycle):
    draw = build.draw()
    morse = build.building()
    build.suite(morse, "1", 2, draws=[draw])
    build.suite(morse, "2", 4, draws=[draw])

    assert lifecycle.toggle_size_lock(draw.id, 4).locked_sizes == [4]
    assert lifecycle.toggle_size_lock(draw.id, 2).locked_sizes == [2, 4]
    assert lifecycle.toggle_size_lock(draw.id, 4).locked_sizes == [2]
    assert session.get(Draw, draw.id).locked_sizes == [2]


def test_toggle_size_lock_refused_when_closed(build, lifecycle):
    draw = build.draw(status=DrawStatus.closed)

    with pytest.raises(InvalidTransitionError):
        lifecycle.toggle_size_lock(draw.id, 2)


def test_destroy_keeps_suites(session, build, lifecycle):
    draw = build.draw()
    suite = build.suite(build.building(), "1", 2, draws=[draw])
    draw_id = draw.id

    lifecycle.destroy(draw_id)

    assert session.get(Draw, draw_id) is None
    assert session.get(Suite, suite.id) is not None


def test_default_rng_honours_seed(monkeypatch):
    monkeypatch.setenv("LOTTERY_SEED", "42")
    assert default_rng().random() == default_rng().random()
