from typing import Dict, Iterable, List, Mapping, Optional, Set

from ..models import Assignment, Exclusions, Session, Teacher
from ..timeutils import overlaps

ALL_LOCATIONS = "all"


def exclusion_key(session_id: str, location: Optional[str] = None) -> str:
    return f"{session_id}_{location if location else ALL_LOCATIONS}"


def is_excluded(teacher: str, session_id: str, location: str, exclusions: Mapping[str, Set[str]]) -> bool:
    keys = exclusions.get(teacher)
    if not keys:
        return False
    return exclusion_key(session_id) in keys or exclusion_key(session_id, location) in keys


def add_exclusion(exclusions: Mapping[str, Set[str]], teacher: str, session_id: str,
                  location: Optional[str] = None) -> Exclusions:
    out: Dict[str, Set[str]] = {t: set(keys) for t, keys in exclusions.items()}
    out.setdefault(teacher, set()).add(exclusion_key(session_id, location))
    return out


def remove_exclusion(exclusions: Mapping[str, Set[str]], teacher: str, session_id: str,
                     location: Optional[str] = None) -> Exclusions:
    out: Dict[str, Set[str]] = {t: set(keys) for t, keys in exclusions.items()}
    if teacher in out:
        out[teacher].discard(exclusion_key(session_id, location))
        if not out[teacher]:
            del out[teacher]
    return out


def has_time_conflict(teacher: str, session: Session, assignments: Iterable[Assignment]) -> bool:
    for a in assignments:
        if a.teacher_name != teacher or a.date != session.date:
            continue
        if overlaps(a.start_time, a.end_time, session.start_time, session.end_time):
            return True
    return False


def is_eligible(teacher: Teacher, session: Session, location: str,
                assignments: Iterable[Assignment], exclusions: Mapping[str, Set[str]]) -> bool:
    """True when ``teacher`` may take a seat at ``location`` in ``session``.

    Pure over the given assignment snapshot: the teacher is not already in this
    exact seat, is not excluded from the session or the location, and has no
    same-day assignment overlapping the session window.
    """
    name = teacher.name
    assignments = list(assignments)
    for a in assignments:
        if (a.teacher_name == name and a.window == session.key and a.location == location):
            return False
    if is_excluded(name, session.id, location, exclusions):
        return False
    return not has_time_conflict(name, session, assignments)


def eligible_teachers(teachers: Iterable[Teacher], session: Session, location: str,
                      assignments: Iterable[Assignment], exclusions: Mapping[str, Set[str]]) -> List[Teacher]:
    snapshot = list(assignments)
    return [t for t in teachers if is_eligible(t, session, location, snapshot, exclusions)]
