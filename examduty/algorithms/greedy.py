import logging
from collections import defaultdict
from dataclasses import replace
from typing import Callable, DefaultDict, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from ..models import (
    AssignedBy, Assignment, Named, Session, SupervisionMode, Teacher, TeacherRef, Unfilled,
)
from ..scheduling.availability import has_time_conflict, is_eligible, is_excluded
from ..scheduling.workload import JOINT_WEIGHT, WorkloadTracker
from .adjacency import AdjacencyPolicy, numbered_adjacency

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]


class AllocationParams:
    def __init__(self, tie_tolerance=0.0, joint_supervision=True, joint_weight=JOINT_WEIGHT,
                 adjacency: Optional[AdjacencyPolicy] = None):
        if tie_tolerance < 0:
            raise ValueError("tie_tolerance must be >= 0")
        if joint_weight < 1.0:
            raise ValueError("joint_weight covers two seats and must be >= 1.0")
        # minutes of workload within which two teachers count as tied
        self.tie_tolerance = tie_tolerance
        self.joint_supervision = joint_supervision
        self.joint_weight = joint_weight
        self.adjacency = adjacency if adjacency is not None else numbered_adjacency(2)


class Progress:
    """Forwards coarse milestones to an optional callback, never going backwards."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.last = -1

    def __call__(self, percent: float, message: str) -> None:
        pct = max(self.last, min(100, int(percent)))
        self.last = pct
        logger.debug("progress %d%%: %s", pct, message)
        if self.callback is not None:
            self.callback(pct, message)


class AssignmentBook:
    """Per-run assignment list with lookups by teacher-day, window and seat."""

    def __init__(self):
        self.assignments: List[Assignment] = []
        self._by_teacher_day: DefaultDict[Tuple[str, str], List[int]] = defaultdict(list)
        self._by_window: DefaultDict[Tuple[str, str, str], List[int]] = defaultdict(list)

    def add(self, session: Session, location: str, teacher: TeacherRef, assigned_by: AssignedBy,
            supervision: SupervisionMode = SupervisionMode.SOLO) -> Assignment:
        a = Assignment(
            id=f"assignment_{len(self.assignments)}",
            date=session.date,
            start_time=session.start_time,
            end_time=session.end_time,
            location=location,
            teacher=teacher,
            assigned_by=assigned_by,
            supervision=supervision,
        )
        idx = len(self.assignments)
        self.assignments.append(a)
        if a.teacher_name is not None:
            self._by_teacher_day[(a.teacher_name, a.date)].append(idx)
        self._by_window[a.window].append(idx)
        return a

    def mark_joint(self, idx: int) -> Assignment:
        a = replace(self.assignments[idx], supervision=SupervisionMode.JOINT)
        self.assignments[idx] = a
        return a

    def on(self, name: str, day: str) -> List[Assignment]:
        return [self.assignments[i] for i in self._by_teacher_day.get((name, day), [])]

    def in_window(self, session: Session) -> List[Tuple[int, Assignment]]:
        return [(i, self.assignments[i]) for i in self._by_window.get(session.key, [])]

    def filled(self, session: Session, location: str) -> int:
        return sum(1 for _, a in self.in_window(session) if a.location == location)

    def forced_at(self, session: Session, location: str) -> bool:
        return any(a.location == location and a.assigned_by is AssignedBy.FORCED
                   for _, a in self.in_window(session))


def rank_candidates(candidates: Sequence[Teacher], tracker: WorkloadTracker, day: str,
                    tolerance: float, order: Mapping[str, int]) -> List[Teacher]:
    """Lightest workload first.

    Teachers within ``tolerance`` minutes of the lightest form a tied band,
    ordered by fewest assignments on ``day``; everyone else follows by workload.
    """
    if not candidates:
        return []
    low = min(tracker.duration(t.name) for t in candidates)
    band = [t for t in candidates if tracker.duration(t.name) - low <= tolerance]
    rest = [t for t in candidates if tracker.duration(t.name) - low > tolerance]
    band.sort(key=lambda t: (tracker.count_on(t.name, day), tracker.duration(t.name), order[t.name]))
    rest.sort(key=lambda t: (tracker.duration(t.name), tracker.count_on(t.name, day), order[t.name]))
    return band + rest


def _eligible(teachers: Sequence[Teacher], session: Session, location: str,
              book: AssignmentBook, exclusions: Mapping[str, Set[str]]) -> List[Teacher]:
    return [t for t in teachers
            if is_eligible(t, session, location, book.on(t.name, session.date), exclusions)]


def _joint_partner(session: Session, location: str, book: AssignmentBook,
                   exclusions: Mapping[str, Set[str]], tracker: WorkloadTracker,
                   params: AllocationParams, order: Mapping[str, int]) -> Optional[int]:
    """Index of a solo auto assignment next door whose teacher could also cover ``location``."""
    options: List[Tuple[int, Assignment]] = []
    for idx, a in book.in_window(session):
        name = a.teacher_name
        if name is None or a.is_joint or a.assigned_by is not AssignedBy.AUTO:
            continue
        if a.location == location or not params.adjacency(a.location, location):
            continue
        if is_excluded(name, session.id, location, exclusions):
            continue
        others = [b for b in book.on(name, session.date) if b.id != a.id]
        if has_time_conflict(name, session, others):
            continue
        options.append((idx, a))
    if not options:
        return None
    options.sort(key=lambda p: (tracker.duration(p[1].teacher_name),
                                tracker.count_on(p[1].teacher_name, session.date),
                                order.get(p[1].teacher_name, len(order))))
    return options[0][0]


def fill_session(session: Session, teachers: Sequence[Teacher], book: AssignmentBook,
                 tracker: WorkloadTracker, exclusions: Mapping[str, Set[str]],
                 params: AllocationParams, order: Mapping[str, int]) -> None:
    shortfall: Dict[str, int] = {}
    for location, required in session.requirements().items():
        need = required - book.filled(session, location)
        for _ in range(max(0, need)):
            ranked = rank_candidates(_eligible(teachers, session, location, book, exclusions),
                                     tracker, session.date, params.tie_tolerance, order)
            if not ranked:
                shortfall[location] = shortfall.get(location, 0) + 1
                continue
            chosen = ranked[0]
            book.add(session, location, Named(chosen.name), AssignedBy.AUTO)
            tracker.record(chosen.name, session)
            logger.debug("%s %s -> %s", session.id, location, chosen.name)

    for location, missing in shortfall.items():
        for _ in range(missing):
            idx = None
            if params.joint_supervision:
                idx = _joint_partner(session, location, book, exclusions, tracker, params, order)
            if idx is not None:
                partner = book.mark_joint(idx)
                name = partner.teacher_name
                book.add(session, location, Named(name), AssignedBy.AUTO, SupervisionMode.JOINT)
                # the partner seat was already charged in full
                tracker.record(name, session, weight=params.joint_weight - 1.0, count=0)
                logger.info("%s: %s covers %s jointly with %s", session.id, name, location, partner.location)
                continue
            book.add(session, location, Unfilled(location=location), AssignedBy.AUTO)
            logger.warning("%s: no invigilator available for %s", session.id, location)


def fill_day_first(days: Sequence[Tuple[str, Sequence[Session]]], teachers: Sequence[Teacher],
                   book: AssignmentBook, tracker: WorkloadTracker, exclusions: Mapping[str, Set[str]],
                   params: AllocationParams, progress: Progress,
                   start_pct: float = 50, end_pct: float = 90) -> None:
    """Greedy fill, completing each day's sessions before the next day starts."""
    order = {t.name: i for i, t in enumerate(teachers)}
    n = len(days)
    for day_idx, (day, sessions) in enumerate(days):
        progress(start_pct + (day_idx / n) * (end_pct - start_pct),
                 f"Allocating day {day_idx + 1}/{n} ({day})")
        for session in sessions:
            fill_session(session, teachers, book, tracker, exclusions, params, order)
