from typing import Dict, Iterable, List, Tuple

from .models import ScheduleRow, Session, Slot
from .timeutils import session_sort_key


def group_sessions(rows: Iterable[ScheduleRow]) -> List[Session]:
    """Collapse per-location rows into sessions keyed by (date, start, end).

    Slots keep input order; duplicate locations are kept as separate slots.
    Sessions come back in wall-clock order.
    """
    by_key: Dict[Tuple[str, str, str], Session] = {}
    for row in rows:
        key = (row.date, row.start_time, row.end_time)
        if key not in by_key:
            by_key[key] = Session(date=row.date, start_time=row.start_time, end_time=row.end_time)
        by_key[key].slots.append(Slot(location=row.location, required=row.required))
    return sorted(by_key.values(), key=lambda s: session_sort_key(s.date, s.start_time))


def sessions_by_id(sessions: Iterable[Session]) -> Dict[str, Session]:
    return {s.id: s for s in sessions}
