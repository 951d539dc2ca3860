from collections import Counter
from typing import Dict, List, Mapping, Optional, Sequence, Set

from ..exceptions import TimeFormatError, ValidationError
from ..models import Session, SpecialTasks, Teacher, ValidationIssue
from ..timeutils import parse_date, time_to_minutes


def _error(msg: str) -> ValidationIssue:
    return ValidationIssue(level="error", message=msg)


def _warning(msg: str) -> ValidationIssue:
    return ValidationIssue(level="warning", message=msg)


def _session_issues(s: Session, roster_size: int) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    try:
        parse_date(s.date)
        start, end = time_to_minutes(s.start_time), time_to_minutes(s.end_time)
        if end <= start:
            issues.append(_error(f"Session {s.id} ends before it starts or crosses midnight"))
    except TimeFormatError as e:
        issues.append(_error(f"Session {s.id}: {e.message}"))
    if not s.slots:
        issues.append(_error(f"Session {s.id} has no locations"))
    for slot in s.slots:
        if not str(slot.location).strip():
            issues.append(_error(f"Session {s.id} has a slot without a location"))
        if slot.required < 1:
            issues.append(_error(f"Session {s.id} location {slot.location} requires {slot.required} invigilators"))
    dupes = [loc for loc, n in Counter(slot.location for slot in s.slots).items() if n > 1]
    for loc in dupes:
        issues.append(_warning(f"Session {s.id} lists location {loc} more than once; requirements are summed"))
    total = sum(slot.required for slot in s.slots)
    if roster_size and total > roster_size:
        issues.append(_warning(
            f"Session {s.id} needs {total} invigilators but only {roster_size} teachers are available"))
    return issues


def validate_inputs(teachers: Sequence[Teacher], sessions: Sequence[Session],
                    special_tasks: Optional[SpecialTasks] = None,
                    exclusions: Optional[Mapping[str, Set[str]]] = None) -> List[ValidationIssue]:
    special_tasks = special_tasks or SpecialTasks()
    exclusions = exclusions or {}
    issues: List[ValidationIssue] = []

    if not teachers:
        issues.append(_error("No teachers provided"))
    if not sessions:
        issues.append(_error("No exam sessions provided"))

    names = Counter(t.name for t in teachers)
    for name, n in names.items():
        if not str(name).strip():
            issues.append(_error("Teacher with an empty name"))
        elif n > 1:
            issues.append(_error(f"Teacher {name} is listed {n} times"))

    by_id: Dict[str, Session] = {}
    for s in sessions:
        if s.id in by_id:
            issues.append(_error(f"Session {s.id} appears more than once"))
        by_id[s.id] = s
        issues.extend(_session_issues(s, len(names)))

    for task in special_tasks.forced:
        label = f"Forced task ({task.teacher} @ {task.session_id}/{task.location})"
        if not task.teacher or not task.location:
            issues.append(_error(f"{label} is missing a teacher or location"))
        session = by_id.get(task.session_id)
        if session is None:
            issues.append(_error(f"{label} refers to unknown session {task.session_id}"))
            continue
        if task.teacher and task.teacher not in names:
            issues.append(_warning(f"{label}: teacher is not on the roster"))
        if task.location not in session.requirements():
            issues.append(_warning(f"{label}: location is not part of the session"))

    for task in special_tasks.designated:
        label = f"Designated task ({task.teacher} @ {task.slot_id}/{task.location})"
        if not task.teacher or not task.location:
            issues.append(_error(f"{label} is missing a teacher or location"))
        session = by_id.get(task.slot_id)
        if session is None:
            issues.append(_error(f"{label} refers to unknown session {task.slot_id}"))
            continue
        if task.teacher and task.teacher not in names:
            issues.append(_warning(f"{label}: teacher is not on the roster"))
        if task.location not in session.requirements():
            issues.append(_warning(f"{label}: location is not part of the session"))
        if task.date and task.date != session.date:
            issues.append(_warning(f"{label}: date {task.date} differs from session date {session.date}"))

    for name in exclusions:
        if name not in names:
            issues.append(_warning(f"Exclusions given for unknown teacher {name}"))

    return issues


def ensure_valid(teachers: Sequence[Teacher], sessions: Sequence[Session],
                 special_tasks: Optional[SpecialTasks] = None,
                 exclusions: Optional[Mapping[str, Set[str]]] = None) -> List[ValidationIssue]:
    """Raise ValidationError on any error-level issue; return the warnings otherwise."""
    issues = validate_inputs(teachers, sessions, special_tasks, exclusions)
    if any(i.is_error for i in issues):
        raise ValidationError(issues)
    return issues
