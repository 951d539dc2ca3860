from dataclasses import replace
from typing import List, Sequence

from ..exceptions import UnknownAssignmentError
from ..models import AssignedBy, Assignment, Named


def _index_of(assignments: Sequence[Assignment], assignment_id: str) -> int:
    for i, a in enumerate(assignments):
        if a.id == assignment_id:
            return i
    raise UnknownAssignmentError(f"No assignment with id {assignment_id}",
                                 context={"assignment_id": assignment_id})


def reassign(assignments: Sequence[Assignment], assignment_id: str, teacher: str) -> List[Assignment]:
    out = list(assignments)
    i = _index_of(out, assignment_id)
    out[i] = replace(out[i], teacher=Named(teacher), assigned_by=AssignedBy.MANUAL)
    return out


def swap_teachers(assignments: Sequence[Assignment], id_a: str, id_b: str) -> List[Assignment]:
    """Exchange the teachers of two assignments; everything else stays put."""
    out = list(assignments)
    i, j = _index_of(out, id_a), _index_of(out, id_b)
    a, b = out[i], out[j]
    out[i] = replace(a, teacher=b.teacher, assigned_by=AssignedBy.MANUAL)
    out[j] = replace(b, teacher=a.teacher, assigned_by=AssignedBy.MANUAL)
    return out
