from itertools import combinations

import pytest

from examduty.algorithms.greedy import AllocationParams
from examduty.exceptions import EngineFault, ValidationError
from examduty.models import (
    AssignedBy, ConflictType, DesignatedTask, ForcedTask, Named, ScheduleRow, Severity, SpecialTasks,
    SupervisionMode, Teacher, Unfilled, WorkloadEntry,
)
from examduty.scheduling.assign_invigilators import generate_assignments, plan_invigilation, sessions_by_day
from examduty.scheduling.conflicts import detect_conflicts
from examduty.sessions import group_sessions
from examduty.timeutils import overlaps


def _seats(sessions):
    return sum(sum(s.requirements().values()) for s in sessions)


def test_single_teacher_single_seat(make_session):
    out = generate_assignments([Teacher("T")], [make_session()], SpecialTasks(), {}, {})
    assert len(out) == 1
    a = out[0]
    assert a.teacher == Named("T")
    assert a.location == "A1"
    assert a.assigned_by is AssignedBy.AUTO
    assert a.supervision is SupervisionMode.SOLO
    assert (a.date, a.start_time, a.end_time) == ("2024-01-01", "09:00", "11:00")


def test_exclusion_steers_teacher_to_other_location(make_session):
    s = make_session(slots=(("A1", 1), ("A2", 1)))
    exclusions = {"T1": {f"{s.id}_A1"}}
    out = generate_assignments([Teacher("T1"), Teacher("T2")], [s], SpecialTasks(), exclusions, {})
    placed = {a.location: a.teacher_name for a in out}
    assert placed == {"A1": "T2", "A2": "T1"}


def test_no_eligible_teacher_yields_unfilled(make_session):
    s = make_session()
    exclusions = {"T": {f"{s.id}_all"}}
    out = generate_assignments([Teacher("T")], [s], SpecialTasks(), exclusions, {})
    assert len(out) == 1
    assert out[0].teacher == Unfilled(location="A1")
    assert out[0].assigned_by is AssignedBy.AUTO

    conflicts = detect_conflicts(out, [Teacher("T")], exclusions)
    high_alloc = [c for c in conflicts if c.type is ConflictType.ALLOCATION and c.severity is Severity.HIGH]
    assert len(high_alloc) == 1


def test_forced_and_designated_on_different_seats_both_kept(make_session):
    s = make_session(slots=(("A1", 1), ("A2", 1)))
    tasks = SpecialTasks(
        forced=[ForcedTask(session_id=s.id, location="A2", teacher="T")],
        designated=[DesignatedTask(teacher="T", date=s.date, slot_id=s.id, location="A1")],
    )
    out = generate_assignments([Teacher("T"), Teacher("U")], [s], tasks, {}, {})
    by_origin = {(a.assigned_by, a.location): a.teacher_name for a in out}
    assert by_origin == {(AssignedBy.FORCED, "A2"): "T", (AssignedBy.DESIGNATED, "A1"): "T"}
    # the overrides double-book T; that is reported, not arbitrated
    conflicts = detect_conflicts(out, [Teacher("T"), Teacher("U")], {})
    assert any(c.type is ConflictType.TIME for c in conflicts)


def test_designated_skipped_when_seat_is_forced(make_session):
    s = make_session()
    tasks = SpecialTasks(
        forced=[ForcedTask(session_id=s.id, location="A1", teacher="T")],
        designated=[DesignatedTask(teacher="U", date=s.date, slot_id=s.id, location="A1")],
    )
    out = generate_assignments([Teacher("T"), Teacher("U")], [s], tasks, {}, {})
    assert len(out) == 1
    assert out[0].teacher_name == "T"
    assert out[0].assigned_by is AssignedBy.FORCED


def test_forced_kept_verbatim_despite_exclusion(make_session):
    s = make_session()
    exclusions = {"T": {f"{s.id}_all"}}
    tasks = SpecialTasks(forced=[ForcedTask(session_id=s.id, location="A1", teacher="T")])
    out = generate_assignments([Teacher("T"), Teacher("U")], [s], tasks, exclusions, {})
    assert [(a.teacher_name, a.assigned_by) for a in out] == [("T", AssignedBy.FORCED)]
    conflicts = detect_conflicts(out, [Teacher("T"), Teacher("U")], exclusions)
    assert any(c.type is ConflictType.RULE and c.severity is Severity.HIGH for c in conflicts)


def test_designated_fills_part_of_a_larger_seat(make_session):
    s = make_session(slots=(("A1", 2),))
    tasks = SpecialTasks(designated=[DesignatedTask(teacher="T2", date=s.date, slot_id=s.id, location="A1")])
    out = generate_assignments([Teacher("T1"), Teacher("T2")], [s], tasks, {}, {})
    assert sorted((a.teacher_name, a.assigned_by.value) for a in out) == [("T1", "auto"), ("T2", "designated")]


def test_historical_workload_prefers_lighter_teacher(make_session):
    history = {"T1": WorkloadEntry(count=5, duration=600)}
    out = generate_assignments([Teacher("T1"), Teacher("T2")], [make_session()], SpecialTasks(), {}, history)
    assert out[0].teacher_name == "T2"
    assert history["T1"] == WorkloadEntry(count=5, duration=600)


def test_exact_tie_prefers_fewer_duties_that_day(make_session):
    history = {"T2": WorkloadEntry(count=1, duration=60)}
    s1 = make_session(start="09:00", end="10:00")
    s2 = make_session(start="10:00", end="11:00")
    out = generate_assignments([Teacher("T1"), Teacher("T2")], [s1, s2], SpecialTasks(), {}, history)
    # after s1 both carry 60 minutes; T1 already worked today
    assert [a.teacher_name for a in out] == ["T1", "T2"]


def test_tie_tolerance_band(make_session):
    history = {"T2": WorkloadEntry(count=1, duration=80)}
    s1 = make_session(start="09:00", end="10:00")
    s2 = make_session(start="10:00", end="11:00")
    teachers = [Teacher("T1"), Teacher("T2")]
    exact = generate_assignments(teachers, [s1, s2], SpecialTasks(), {}, history)
    assert [a.teacher_name for a in exact] == ["T1", "T1"]
    banded = generate_assignments(teachers, [s1, s2], SpecialTasks(), {}, history,
                                  params=AllocationParams(tie_tolerance=30))
    assert [a.teacher_name for a in banded] == ["T1", "T2"]


def test_days_processed_in_date_order(make_session):
    later = make_session(date="2024-01-03")
    earlier = make_session(date="2024-01-02")
    out = generate_assignments([Teacher("T1"), Teacher("T2")], [later, earlier], SpecialTasks(), {}, {})
    assert [(a.date, a.teacher_name) for a in out] == [("2024-01-02", "T1"), ("2024-01-03", "T2")]


def test_sessions_by_day_orders_dates_and_times(make_session):
    sessions = [
        make_session(date="2024-01-02", start="08:00", end="09:00"),
        make_session(date="2024-01-01", start="14:00", end="15:00"),
        make_session(date="2024-01-01", start="09:00", end="10:00"),
    ]
    days = sessions_by_day(sessions)
    assert [d for d, _ in days] == ["2024-01-01", "2024-01-02"]
    assert [s.start_time for s in days[0][1]] == ["09:00", "14:00"]


def test_joint_supervision_covers_adjacent_room(make_session):
    s = make_session(slots=(("A1", 1), ("A2", 1), ("A3", 1)))
    out = generate_assignments([Teacher("T1"), Teacher("T2")], [s], SpecialTasks(), {}, {})
    assert len(out) == 3
    assert not any(a.is_unfilled for a in out)
    joint = sorted((a.location, a.teacher_name) for a in out if a.is_joint)
    assert joint == [("A1", "T1"), ("A3", "T1")]
    assert detect_conflicts(out, [Teacher("T1"), Teacher("T2")], {}) == []


def test_joint_supervision_can_be_disabled(make_session):
    s = make_session(slots=(("A1", 1), ("A2", 1), ("A3", 1)))
    out = generate_assignments([Teacher("T1"), Teacher("T2")], [s], SpecialTasks(), {}, {},
                               params=AllocationParams(joint_supervision=False))
    assert [a.location for a in out if a.is_unfilled] == ["A3"]


def test_joint_supervision_needs_an_adjacent_room(make_session):
    s = make_session(slots=(("A1", 1), ("B7", 1)))
    out = generate_assignments([Teacher("T1")], [s], SpecialTasks(), {}, {})
    assert [a.teacher for a in out] == [Named("T1"), Unfilled("B7")]


def test_joint_partner_must_not_be_excluded_from_room(make_session):
    s = make_session(slots=(("A1", 1), ("A2", 1)))
    exclusions = {"T1": {f"{s.id}_A2"}}
    out = generate_assignments([Teacher("T1")], [s], SpecialTasks(), exclusions, {})
    assert [a.teacher for a in out] == [Named("T1"), Unfilled("A2")]


def test_custom_adjacency_policy(make_session):
    s = make_session(slots=(("Hall", 1), ("Annex", 1)))
    params = AllocationParams(adjacency=lambda a, b: {a, b} == {"Hall", "Annex"})
    out = generate_assignments([Teacher("T1")], [s], SpecialTasks(), {}, {}, params=params)
    assert all(a.is_joint and a.teacher_name == "T1" for a in out)


def test_every_seat_accounted_for_and_no_double_booking(make_session):
    teachers = [Teacher(f"T{i}") for i in range(4)]
    sessions = [
        make_session(date="2024-01-01", start="09:00", end="11:00", slots=(("A1", 2), ("A2", 1), ("B1", 1))),
        make_session(date="2024-01-01", start="10:00", end="12:00", slots=(("C1", 2),)),
        make_session(date="2024-01-01", start="14:00", end="16:00", slots=(("A1", 1), ("A2", 2))),
        make_session(date="2024-01-02", start="09:00", end="11:00", slots=(("A1", 3), ("B9", 2))),
    ]
    s0 = sessions[0]
    exclusions = {"T0": {f"{s0.id}_all"}, "T3": {f"{sessions[3].id}_B9"}}
    tasks = SpecialTasks(forced=[ForcedTask(s0.id, "B1", "T1")])
    out = generate_assignments(teachers, sessions, tasks, exclusions, {})

    assert len(out) == _seats(sessions)
    assert len({a.id for a in out}) == len(out)
    assert any(a.is_unfilled for a in out)

    solo = [a for a in out if not a.is_unfilled and not a.is_joint]
    for a, b in combinations(solo, 2):
        if a.teacher_name == b.teacher_name and a.date == b.date:
            assert not overlaps(a.start_time, a.end_time, b.start_time, b.end_time)

    for a in out:
        if a.teacher_name == "T0":
            assert a.session_id != s0.id


def test_duplicate_location_rows_are_staffed_as_one_summed_seat():
    rows = [
        ScheduleRow("2024-01-01", "09:00", "11:00", "A1", 1),
        ScheduleRow("2024-01-01", "09:00", "11:00", "A1", 2),
    ]
    sessions = group_sessions(rows)
    out = generate_assignments([Teacher("T1"), Teacher("T2")], sessions)
    assert len(out) == _seats(sessions) == 3
    assert all(a.location == "A1" for a in out)
    assert sorted(a.teacher.label for a in out) == ["!!understaffed-A1", "T1", "T2"]
    conflicts = detect_conflicts(out, [Teacher("T1"), Teacher("T2")], {}, sessions=sessions)
    assert not any(c.type is ConflictType.TIME for c in conflicts)


def test_progress_is_monotonic(make_session):
    seen = []
    sessions = [make_session(date=d) for d in ("2024-01-01", "2024-01-02", "2024-01-03")]
    generate_assignments([Teacher("T1")], sessions, progress=lambda pct, msg: seen.append(pct))
    assert seen[0] == 0 and seen[-1] == 100
    assert seen == sorted(seen)
    assert len(seen) >= 7


def test_runs_are_independent(make_session):
    teachers = [Teacher("T1"), Teacher("T2")]
    sessions = [make_session(slots=(("A1", 1), ("A2", 1))), make_session(date="2024-01-02")]
    first = generate_assignments(teachers, sessions)
    second = generate_assignments(teachers, sessions)
    assert first == second


def test_malformed_time_fails_whole_run(make_session):
    with pytest.raises(EngineFault):
        generate_assignments([Teacher("T1")], [make_session(start="9h")])


def test_plan_validates_before_allocating(make_session):
    with pytest.raises(ValidationError):
        plan_invigilation([], [make_session()])


def test_plan_returns_assignments_conflicts_and_warnings(make_session):
    s = make_session(slots=(("A1", 1), ("B7", 1)))
    result = plan_invigilation([Teacher("T1")], [s], SpecialTasks(), {"Ghost": set()}, {})
    assert len(result.assignments) == 2
    assert any(i.level == "warning" for i in result.issues)
    kinds = {(c.type, c.severity) for c in result.conflicts}
    assert (ConflictType.ALLOCATION, Severity.HIGH) in kinds
    assert (ConflictType.ALLOCATION, Severity.MEDIUM) in kinds
