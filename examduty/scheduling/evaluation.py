from collections import Counter
from typing import Dict, Mapping, Optional, Sequence

import pandas as pd

from ..models import Assignment, Conflict, Session, Severity, Teacher, WorkloadEntry
from .workload import JOINT_WEIGHT, charged_workload

WORKLOAD_COLUMNS = [
    "name", "department", "current_count", "current_duration", "total_count", "total_duration",
]


def workload_frame(assignments: Sequence[Assignment], teachers: Sequence[Teacher],
                   historical: Optional[Mapping[str, WorkloadEntry]] = None,
                   joint_weight: float = JOINT_WEIGHT) -> pd.DataFrame:
    """One row per roster teacher: this run's charged load and load including history."""
    historical = historical or {}
    charged = charged_workload(assignments, joint_weight)
    rows = []
    for t in teachers:
        past = historical.get(t.name, WorkloadEntry())
        cur = charged.get(t.name, WorkloadEntry())
        rows.append({
            "name": t.name,
            "department": t.department,
            "current_count": cur.count,
            "current_duration": cur.duration,
            "total_count": cur.count + past.count,
            "total_duration": cur.duration + past.duration,
        })
    df = pd.DataFrame(rows, columns=WORKLOAD_COLUMNS)
    return df.sort_values("total_duration", ascending=False, kind="stable").reset_index(drop=True)


def workload_balance(df: pd.DataFrame) -> Dict[str, float]:
    if df.empty:
        return {"average": 0.0, "variance": 0.0, "max_deviation": 0.0}
    cur = df["current_duration"].astype(float)
    avg = float(cur.mean())
    return {
        "average": avg,
        # population variance
        "variance": float(((cur - avg) ** 2).mean()),
        "max_deviation": float((cur - avg).abs().max()),
    }


def merge_historical_stats(historical: Mapping[str, WorkloadEntry], assignments: Sequence[Assignment],
                           teachers: Sequence[Teacher], joint_weight: float = JOINT_WEIGHT) -> Dict[str, WorkloadEntry]:
    """History plus this run, for roster teachers; the input mapping is left untouched.

    This run is charged like the allocator charges it, so the next run ranks
    teachers on the same scale.
    """
    merged = {n: WorkloadEntry(count=e.count, duration=e.duration) for n, e in historical.items()}
    charged = charged_workload(assignments, joint_weight)
    for t in teachers:
        entry = merged.setdefault(t.name, WorkloadEntry())
        cur = charged.get(t.name, WorkloadEntry())
        entry.count += cur.count
        entry.duration += cur.duration
    return merged


def summary(assignments: Sequence[Assignment], conflicts: Sequence[Conflict],
            teachers: Sequence[Teacher], sessions: Sequence[Session],
            joint_weight: float = JOINT_WEIGHT) -> str:
    seats = sum(sum(s.requirements().values()) for s in sessions)
    unfilled = sum(1 for a in assignments if a.is_unfilled)
    joint = sum(1 for a in assignments if a.is_joint)
    by_origin = Counter(a.assigned_by.value for a in assignments)
    by_severity = Counter(c.severity for c in conflicts)
    balance = workload_balance(workload_frame(assignments, teachers, joint_weight=joint_weight))
    origin = "  ".join(f"{k}: {by_origin[k]}" for k in sorted(by_origin))
    return (
        f"Teachers: {len(teachers)}  Sessions: {len(sessions)}  Seats required: {seats}\n"
        f"Assignments: {len(assignments)}  Unfilled: {unfilled}  Joint: {joint}\n"
        f"By origin: {origin}\n"
        f"Average load: {balance['average']:.1f} min  Max deviation: {balance['max_deviation']:.1f} min\n"
        f"Conflicts: high={by_severity[Severity.HIGH]}  medium={by_severity[Severity.MEDIUM]}  "
        f"low={by_severity[Severity.LOW]}\n"
    )
