import logging
from collections import Counter, defaultdict
from itertools import combinations
from typing import DefaultDict, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from ..models import Assignment, Conflict, ConflictType, Session, Severity, Teacher
from ..timeutils import duration_minutes, overlaps, session_sort_key
from .availability import is_excluded

logger = logging.getLogger(__name__)


def _by_teacher(assignments: Iterable[Assignment]) -> Dict[str, List[Assignment]]:
    schedules: DefaultDict[str, List[Assignment]] = defaultdict(list)
    for a in assignments:
        if a.teacher_name is not None:
            schedules[a.teacher_name].append(a)
    for items in schedules.values():
        items.sort(key=lambda a: session_sort_key(a.date, a.start_time) + (a.location,))
    return dict(schedules)


def teacher_durations(assignments: Iterable[Assignment]) -> Dict[str, float]:
    """Minutes supervised per teacher; a joint pair at one window counts once."""
    totals: DefaultDict[str, float] = defaultdict(float)
    joint_seen: Set[Tuple[str, Tuple[str, str, str]]] = set()
    for a in assignments:
        name = a.teacher_name
        if name is None:
            continue
        if a.is_joint:
            if (name, a.window) in joint_seen:
                continue
            joint_seen.add((name, a.window))
        totals[name] += duration_minutes(a.start_time, a.end_time)
    return dict(totals)


def _time_conflicts(schedules: Mapping[str, List[Assignment]]) -> List[Conflict]:
    found: List[Conflict] = []
    for teacher, items in schedules.items():
        # a pair covers exactly two rooms; a third joint seat is a clash
        joint_at = Counter(a.window for a in items if a.is_joint)
        for a, b in combinations(items, 2):
            if a.date != b.date:
                continue
            if a.is_joint and b.is_joint and a.window == b.window and joint_at[a.window] == 2:
                continue
            if not overlaps(a.start_time, a.end_time, b.start_time, b.end_time):
                continue
            if a.window == b.window:
                desc = (f"{teacher} is placed in several locations on {a.date} "
                        f"{a.start_time}-{a.end_time}: {a.location} and {b.location}")
            else:
                desc = (f"{teacher} has overlapping duties on {a.date}: "
                        f"{a.start_time}-{a.end_time} ({a.location}) and "
                        f"{b.start_time}-{b.end_time} ({b.location})")
            found.append(Conflict(ConflictType.TIME, desc, Severity.HIGH))
    return found


def _understaffed(assignments: Sequence[Assignment], sessions: Optional[Sequence[Session]]) -> int:
    if sessions is None:
        return len({(a.window, a.location) for a in assignments if a.is_unfilled})
    filled: DefaultDict[Tuple[Tuple[str, str, str], str], int] = defaultdict(int)
    for a in assignments:
        if not a.is_unfilled:
            filled[(a.window, a.location)] += 1
    short = 0
    for s in sessions:
        for location, required in s.requirements().items():
            if filled[(s.key, location)] < required:
                short += 1
    return short


def detect_conflicts(assignments: Sequence[Assignment], teachers: Sequence[Teacher],
                     exclusions: Mapping[str, Set[str]], sessions: Optional[Sequence[Session]] = None,
                     overload_factor: float = 1.5) -> List[Conflict]:
    """Audit a finished assignment list. Pure; does not re-run allocation.

    Pass ``sessions`` to measure understaffing against the seat requirements;
    without them only seats recorded as unfilled are counted.
    """
    conflicts: List[Conflict] = []

    for a in assignments:
        if a.is_unfilled:
            conflicts.append(Conflict(
                ConflictType.ALLOCATION,
                f"{a.teacher.label} (location: {a.location}, time: {a.date} {a.start_time})",
                Severity.HIGH,
            ))

    schedules = _by_teacher(assignments)
    conflicts.extend(_time_conflicts(schedules))

    for teacher, items in schedules.items():
        for a in items:
            if is_excluded(teacher, a.session_id, a.location, exclusions):
                conflicts.append(Conflict(
                    ConflictType.RULE,
                    f"{teacher} is placed in an excluded slot: {a.date} "
                    f"{a.start_time}-{a.end_time} ({a.location})",
                    Severity.HIGH,
                ))

    durations = teacher_durations(assignments)
    if teachers:
        avg = sum(durations.get(t.name, 0.0) for t in teachers) / len(teachers)
        if avg > 0:
            for t in teachers:
                d = durations.get(t.name, 0.0)
                if d > avg * overload_factor:
                    pct = round((d - avg) / avg * 100)
                    conflicts.append(Conflict(
                        ConflictType.ALLOCATION,
                        f"{t.name} carries a heavy load ({pct}% above average)",
                        Severity.LOW,
                    ))

    short = _understaffed(assignments, sessions)
    if short:
        conflicts.append(Conflict(
            ConflictType.ALLOCATION,
            f"{short} slot(s) are not fully staffed; check whether there are enough teachers",
            Severity.MEDIUM,
        ))

    logger.debug("audit found %d conflict(s) in %d assignment(s)", len(conflicts), len(assignments))
    return conflicts
