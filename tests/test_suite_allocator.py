"""
Suite allocation: lottery numbering, exclusive binding and lottery-order matching.
"""
import random

import pytest
from sqlmodel import select

from suite_draw.models import DrawStatus, Group, GroupStatus, Suite
from suite_draw.services.draw_lifecycle import DrawLifecycle
from suite_draw.services.suite_allocator import (
    MSG_MISSING_LOTTERY_NUMBERS,
    MSG_NOT_IN_LOTTERY,
    SuiteBindingError,
    assign_lottery_numbers,
    assign_suites,
    bind_suite,
    lottery_complete,
    select_suite,
    skip_group,
)


def test_two_group_scenario_allocates_completely(session, build, rng):
    draw = build.draw()
    morse = build.building()
    small = build.suite(morse, "101", 2, draws=[draw])
    large = build.suite(morse, "102", 4, draws=[draw])
    pair = build.locked_group(draw, 2)
    quad = build.locked_group(draw, 4)

    lifecycle = DrawLifecycle(session, rng=rng)
    assert lifecycle.start_lottery(draw.id).ok
    result = lifecycle.assign_suites(draw.id)

    assert result.errors == []
    assert result.unassigned_group_ids == []
    assert result.complete
    assert result.suite_for_group() == {pair.id: small.id, quad.id: large.id}


def test_lottery_order_decides_who_gets_the_suite(session, build):
    draw = build.draw(status=DrawStatus.lottery)
    morse = build.building()
    only = build.suite(morse, "1", 2, draws=[draw])
    late = build.locked_group(draw, 2, lottery_number=2)
    early = build.locked_group(draw, 2, lottery_number=1)

    result = assign_suites(session, draw)

    assert result.assignments == [{"group_id": early.id, "suite_id": only.id}]
    assert result.unassigned_group_ids == [late.id]
    assert result.errors == []
    assert not result.complete


def test_assignment_is_injective_on_suites(session, build):
    draw = build.draw(status=DrawStatus.lottery)
    morse = build.building()
    for number in range(3):
        build.suite(morse, str(number), 2, draws=[draw])
    for number in range(5):
        build.locked_group(draw, 2, lottery_number=number + 1)

    result = assign_suites(session, draw)

    suite_ids = [a["suite_id"] for a in result.assignments]
    assert len(suite_ids) == len(set(suite_ids)) == 3
    assert len(result.unassigned_group_ids) == 2
    occupied = session.exec(select(Suite).where(Suite.group_id.is_not(None))).all()
    assert len(occupied) == 3


def test_picks_suites_in_building_and_number_order(session, build):
    draw = build.draw(status=DrawStatus.lottery)
    welch = build.building("Welch")
    bingham = build.building("Bingham")
    build.suite(welch, "1", 2, draws=[draw])
    second = build.suite(bingham, "20", 2, draws=[draw])
    first = build.suite(bingham, "10", 2, draws=[draw])
    a = build.locked_group(draw, 2, lottery_number=1)
    b = build.locked_group(draw, 2, lottery_number=2)

    result = assign_suites(session, draw)
    assert result.suite_for_group() == {a.id: first.id, b.id: second.id}


def test_skipped_and_housed_groups_are_left_alone(session, build):
    draw = build.draw(status=DrawStatus.lottery)
    morse = build.building()
    build.suite(morse, "1", 2, draws=[draw])
    build.locked_group(draw, 2, lottery_number=1, skipped=True)
    waiting = build.locked_group(draw, 2, lottery_number=2)

    first = assign_suites(session, draw)
    second = assign_suites(session, draw)

    assert [a["group_id"] for a in first.assignments] == [waiting.id]
    assert second.assignments == []
    assert second.unassigned_group_ids == []
    assert lottery_complete(session, draw)


def test_preconditions_reported_as_errors(session, build):
    draw = build.draw(status=DrawStatus.pre_lottery)
    build.suite(build.building(), "1", 2, draws=[draw])
    build.locked_group(draw, 2)

    assert assign_suites(session, draw).errors == [MSG_NOT_IN_LOTTERY]

    draw.status = DrawStatus.lottery
    session.add(draw)
    session.commit()
    result = assign_suites(session, draw)
    assert result.errors == [MSG_MISSING_LOTTERY_NUMBERS]
    assert session.exec(select(Suite).where(Suite.group_id.is_not(None))).all() == []


def test_bind_suite_rejects_second_group(session, build):
    draw = build.draw()
    suite = build.suite(build.building(), "1", 2, draws=[draw])
    first = build.locked_group(draw, 2)
    second = build.locked_group(draw, 2)

    bind_suite(session, first, suite)
    session.commit()

    with pytest.raises(SuiteBindingError):
        bind_suite(session, second, suite)
    assert session.get(Suite, suite.id).group_id == first.id


def test_bind_suite_rejects_group_already_housed(session, build):
    draw = build.draw()
    morse = build.building()
    one = build.suite(morse, "1", 2, draws=[draw])
    two = build.suite(morse, "2", 2, draws=[draw])
    group = build.locked_group(draw, 2)

    bind_suite(session, group, one)
    session.commit()

    with pytest.raises(SuiteBindingError):
        bind_suite(session, group, two)


def test_clip_groups_get_consecutive_numbers(session, build):
    draw = build.draw()
    groups = [build.locked_group(draw, 1) for _ in range(5)]
    build.clip(draw, [groups[1], groups[3]])

    numbers = assign_lottery_numbers(session, draw, random.Random(3))

    assert sorted(numbers.values()) == [1, 2, 3, 4, 5]
    assert abs(numbers[groups[1].id] - numbers[groups[3].id]) == 1
    assert numbers[groups[1].id] < numbers[groups[3].id]


def test_renumbering_does_not_collide(session, build):
    draw = build.draw()
    groups = [build.locked_group(draw, 1) for _ in range(4)]

    assign_lottery_numbers(session, draw, random.Random(1))
    session.commit()
    numbers = assign_lottery_numbers(session, draw, random.Random(2))
    session.commit()

    assert sorted(numbers.values()) == [1, 2, 3, 4]
    assert sorted(g.lottery_number for g in session.exec(select(Group)).all()) == [1, 2, 3, 4]
    assert set(numbers) == {g.id for g in groups}


def test_same_seed_same_allocation(build, session):
    halls = iter(range(100))

    def run(seed):
        draw = build.draw(name=f"Seed {seed}")
        building = build.building(f"Hall {next(halls)}")
        # Two single rooms for four single groups; the lottery decides who gets them
        for number, size in enumerate([1, 1, 2, 2]):
            build.suite(building, str(number), size, draws=[draw])
        groups = [build.locked_group(draw, 1) for _ in range(4)]
        assert DrawLifecycle(session, rng=random.Random(seed)).start_lottery(draw.id).ok
        result = DrawLifecycle(session).assign_suites(draw.id)
        assert len(result.unassigned_group_ids) == 2
        index = {g.id: i for i, g in enumerate(groups)}
        return sorted(index[a["group_id"]] for a in result.assignments)

    assert run(11) == run(11)


def test_skip_group_requires_lottery_phase(session, build):
    draw = build.draw(status=DrawStatus.pre_lottery)
    group = build.locked_group(draw, 2)

    with pytest.raises(SuiteBindingError):
        skip_group(session, draw, group)

    draw.status = DrawStatus.lottery
    session.add(draw)
    session.commit()
    assert skip_group(session, draw, group).skipped is True


def test_select_suite_during_selection(session, build):
    draw = build.draw(status=DrawStatus.suite_selection)
    morse = build.building()
    suite = build.suite(morse, "1", 2, draws=[draw])
    unlinked = build.suite(morse, "2", 2)
    group = build.locked_group(draw, 2)

    with pytest.raises(SuiteBindingError):
        select_suite(session, group, unlinked)

    select_suite(session, group, suite)
    assert session.get(Suite, suite.id).group_id == group.id


def test_select_suite_rules(session, build):
    draw = build.draw(status=DrawStatus.lottery, locked_sizes=[4])
    morse = build.building()
    pair_suite = build.suite(morse, "1", 2, draws=[draw])
    quad_suite = build.suite(morse, "2", 4, draws=[draw])
    pair = build.locked_group(draw, 2)
    quad = build.locked_group(draw, 4)

    with pytest.raises(SuiteBindingError, match="suite selection"):
        select_suite(session, pair, pair_suite)
    with pytest.raises(SuiteBindingError, match="beds"):
        select_suite(session, pair, quad_suite)

    draw.status = DrawStatus.suite_selection
    session.add(draw)
    session.commit()
    with pytest.raises(SuiteBindingError, match="locked"):
        select_suite(session, quad, quad_suite)


def test_drawless_group_selects_any_free_suite(session, build):
    suite = build.suite(build.building(), "1", 3)
    group = build.group(None, build.students(None, 3), status=GroupStatus.locked)

    select_suite(session, group, suite)
    assert session.get(Suite, suite.id).group_id == group.id

    open_group = build.group(None, build.students(None, 1), size=1, status=GroupStatus.full)
    with pytest.raises(SuiteBindingError, match="locked groups"):
        select_suite(session, open_group, build.suite(build.building("Welch"), "1", 1))
