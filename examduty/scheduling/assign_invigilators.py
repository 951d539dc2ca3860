import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import DefaultDict, List, Mapping, Optional, Sequence, Set, Tuple

from ..algorithms.greedy import (
    AllocationParams, AssignmentBook, Progress, ProgressCallback, fill_day_first,
)
from ..exceptions import EngineFault, ExamDutyError
from ..models import (
    AssignedBy, Assignment, Conflict, Named, Session, SpecialTasks, Teacher,
    ValidationIssue, WorkloadEntry,
)
from ..timeutils import parse_date, time_to_minutes
from .conflicts import detect_conflicts
from .validation import ensure_valid
from .workload import WorkloadTracker

logger = logging.getLogger(__name__)


def sessions_by_day(sessions: Sequence[Session]) -> List[Tuple[str, List[Session]]]:
    """Dates ascending, each date's sessions by start time."""
    buckets: DefaultDict[str, List[Session]] = defaultdict(list)
    for s in sessions:
        buckets[s.date].append(s)
    days = sorted(buckets, key=parse_date)
    return [(d, sorted(buckets[d], key=lambda s: time_to_minutes(s.start_time))) for d in days]


def _forced_pass(days, special_tasks: SpecialTasks, book: AssignmentBook, tracker: WorkloadTracker) -> None:
    for _, sessions in days:
        for session in sessions:
            for task in special_tasks.forced:
                if task.session_id != session.id:
                    continue
                book.add(session, task.location, Named(task.teacher), AssignedBy.FORCED)
                tracker.record(task.teacher, session)
                logger.debug("forced %s -> %s/%s", task.teacher, session.id, task.location)


def _designated_pass(days, special_tasks: SpecialTasks, book: AssignmentBook, tracker: WorkloadTracker) -> None:
    for _, sessions in days:
        for session in sessions:
            for task in special_tasks.designated:
                if task.slot_id != session.id:
                    continue
                if book.forced_at(session, task.location):
                    logger.info("designated %s at %s/%s skipped: seat already forced",
                                task.teacher, session.id, task.location)
                    continue
                book.add(session, task.location, Named(task.teacher), AssignedBy.DESIGNATED)
                tracker.record(task.teacher, session)


def generate_assignments(teachers: Sequence[Teacher], sessions: Sequence[Session],
                         special_tasks: Optional[SpecialTasks] = None,
                         exclusions: Optional[Mapping[str, Set[str]]] = None,
                         historical_stats: Optional[Mapping[str, WorkloadEntry]] = None,
                         params: Optional[AllocationParams] = None,
                         progress: Optional[ProgressCallback] = None) -> List[Assignment]:
    """Allocate invigilators to every required seat.

    Forced tasks go in first and verbatim, then designated tasks whose seat is
    not forced, then a day-first greedy fill. Seats nobody can take come back
    as ``Unfilled`` assignments rather than errors. Inputs are not modified;
    all run state lives in this call.
    """
    special_tasks = special_tasks or SpecialTasks()
    exclusions = exclusions or {}
    params = params or AllocationParams()
    report = Progress(progress)

    try:
        report(0, "Starting allocation")
        tracker = WorkloadTracker(historical_stats, teachers)
        book = AssignmentBook()
        days = sessions_by_day(sessions)
        report(10, "Checking teacher availability")

        _forced_pass(days, special_tasks, book, tracker)
        report(20, "Applied forced assignments")

        _designated_pass(days, special_tasks, book, tracker)
        report(30, "Applied designated assignments")

        if days:
            fill_day_first(days, list(teachers), book, tracker, exclusions, params, report)

        report(90, "Checking result")
        unfilled = sum(1 for a in book.assignments if a.is_unfilled)
        logger.info("allocated %d seat(s) over %d day(s); %d unfilled",
                    len(book.assignments), len(days), unfilled)
        report(100, "Allocation complete")
        return book.assignments
    except ExamDutyError:
        raise
    except Exception as e:
        raise EngineFault(f"Allocation failed: {e}") from e


@dataclass
class PlanResult:
    assignments: List[Assignment] = field(default_factory=list)
    conflicts: List[Conflict] = field(default_factory=list)
    issues: List[ValidationIssue] = field(default_factory=list)


def plan_invigilation(teachers: Sequence[Teacher], sessions: Sequence[Session],
                      special_tasks: Optional[SpecialTasks] = None,
                      exclusions: Optional[Mapping[str, Set[str]]] = None,
                      historical_stats: Optional[Mapping[str, WorkloadEntry]] = None,
                      params: Optional[AllocationParams] = None,
                      progress: Optional[ProgressCallback] = None) -> PlanResult:
    """Validate, allocate and audit. Raises ValidationError before any allocation."""
    issues = ensure_valid(teachers, sessions, special_tasks, exclusions)
    for issue in issues:
        logger.warning(issue.message)
    assignments = generate_assignments(teachers, sessions, special_tasks, exclusions,
                                       historical_stats, params, progress)
    conflicts = detect_conflicts(assignments, teachers, exclusions or {}, sessions=sessions)
    return PlanResult(assignments=assignments, conflicts=conflicts, issues=issues)
