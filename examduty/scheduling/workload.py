import logging
from collections import defaultdict
from typing import DefaultDict, Dict, Iterable, Mapping, Optional, Set, Tuple

from ..models import Assignment, Session, Teacher, WorkloadEntry
from ..timeutils import duration_minutes

logger = logging.getLogger(__name__)

# charge for a joint pair, in multiples of one session
JOINT_WEIGHT = 1.5


class WorkloadTracker:
    """Running (count, duration) per teacher for one run, seeded from history.

    Only ever read as a sort key. Also keeps per-day assignment counts, used
    to spread load within a day when durations tie.
    """

    def __init__(self, historical: Optional[Mapping[str, WorkloadEntry]] = None,
                 teachers: Iterable[Teacher] = ()):
        self._totals: Dict[str, WorkloadEntry] = {}
        self._daily: DefaultDict[Tuple[str, str], int] = defaultdict(int)
        historical = historical or {}
        for name, entry in historical.items():
            self._totals[name] = WorkloadEntry(count=entry.count, duration=entry.duration)
        for t in teachers:
            self._totals.setdefault(t.name, WorkloadEntry())

    def record(self, name: str, session: Session, weight: float = 1.0, count: int = 1) -> None:
        span = duration_minutes(session.start_time, session.end_time)
        entry = self._totals.setdefault(name, WorkloadEntry())
        entry.count += count
        entry.duration += span * weight
        if count:
            self._daily[(name, session.date)] += count
        logger.debug("workload %s: +%d x%.2f -> count=%d duration=%.1f",
                     name, span, weight, entry.count, entry.duration)

    def duration(self, name: str) -> float:
        entry = self._totals.get(name)
        return entry.duration if entry else 0.0

    def count(self, name: str) -> int:
        entry = self._totals.get(name)
        return entry.count if entry else 0

    def count_on(self, name: str, day: str) -> int:
        return self._daily.get((name, day), 0)

    def snapshot(self) -> Dict[str, WorkloadEntry]:
        return {n: WorkloadEntry(count=e.count, duration=e.duration) for n, e in self._totals.items()}


def charged_workload(assignments: Iterable[Assignment],
                     joint_weight: float = JOINT_WEIGHT) -> Dict[str, WorkloadEntry]:
    """Charge finished assignments the way the allocator charges them.

    Each seat is one duty of its span. A joint pair at one window is a single
    duty worth ``joint_weight`` spans. Unfilled seats are not charged.
    """
    totals: Dict[str, WorkloadEntry] = {}
    joint_seen: Set[Tuple[str, Tuple[str, str, str]]] = set()
    for a in assignments:
        name = a.teacher_name
        if name is None:
            continue
        span = duration_minutes(a.start_time, a.end_time)
        entry = totals.setdefault(name, WorkloadEntry())
        if a.is_joint and (name, a.window) in joint_seen:
            entry.duration += span * (joint_weight - 1.0)
            continue
        if a.is_joint:
            joint_seen.add((name, a.window))
        entry.count += 1
        entry.duration += span
    return totals
