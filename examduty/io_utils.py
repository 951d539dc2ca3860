import csv
import io
import json
import os
from typing import Dict, IO, List, Sequence, Set, Tuple, Union

import pandas as pd

from .algorithms.adjacency import location_sort_key
from .exceptions import ValidationError
from .models import (
    Assignment, DesignatedTask, ForcedTask, ScheduleRow, SpecialTasks, Teacher, ValidationIssue, WorkloadEntry,
)
from .timeutils import session_sort_key

TextOrPath = Union[str, os.PathLike, IO]


def _open_text(src: TextOrPath):
    """Return a text-mode file handle and a flag indicating whether to close it.

    Accepts a filesystem path, a text IO object, or a BytesIO buffer.
    """
    if isinstance(src, (str, os.PathLike)):
        f = open(src, 'r', newline='', encoding='utf-8-sig')
        return f, True
    if isinstance(src, io.BytesIO):
        src.seek(0)
        f = io.TextIOWrapper(src, encoding='utf-8-sig', newline='')
        return f, True
    if hasattr(src, 'read'):
        if hasattr(src, 'seek'):
            src.seek(0)
        return src, False
    raise TypeError("Unsupported input type; expected path or file-like object")


def _read_json(src: TextOrPath):
    f, should_close = _open_text(src)
    try:
        return json.load(f)
    finally:
        if should_close:
            f.close()


def _clean(value) -> str:
    return '' if value is None else str(value).strip()


def load_teachers(src: TextOrPath) -> List[Teacher]:
    """CSV with a ``name`` column and optional ``department``, ``contact``."""
    teachers: List[Teacher] = []
    f, should_close = _open_text(src)
    try:
        for row in csv.DictReader(f):
            name = _clean(row.get('name'))
            if not name:
                continue
            teachers.append(Teacher(
                name=name,
                department=_clean(row.get('department')) or None,
                contact=_clean(row.get('contact')) or None,
            ))
    finally:
        if should_close:
            f.close()
    return teachers


SCHEDULE_COLUMNS = ('date', 'start_time', 'end_time', 'location')


def load_schedule_rows(src: TextOrPath) -> List[ScheduleRow]:
    """CSV date,start_time,end_time,location[,required].

    Missing columns or a non-numeric ``required`` cell raise ValidationError
    listing every bad line.
    """
    rows: List[ScheduleRow] = []
    issues: List[ValidationIssue] = []
    f, should_close = _open_text(src)
    try:
        reader = csv.DictReader(f)
        missing = [c for c in SCHEDULE_COLUMNS if c not in (reader.fieldnames or [])]
        if missing:
            raise ValidationError([ValidationIssue(
                "error", f"schedule is missing column(s): {', '.join(missing)}")])
        # header is line 1
        for lineno, row in enumerate(reader, start=2):
            required = _clean(row.get('required')) or '1'
            try:
                count = int(required)
            except ValueError:
                issues.append(ValidationIssue(
                    "error", f"schedule line {lineno}: required must be a whole number, got {required!r}"))
                continue
            rows.append(ScheduleRow(
                date=_clean(row['date']),
                start_time=_clean(row['start_time']),
                end_time=_clean(row['end_time']),
                location=_clean(row['location']),
                required=count,
            ))
    finally:
        if should_close:
            f.close()
    if issues:
        raise ValidationError(issues)
    return rows


def load_special_tasks(src: TextOrPath) -> SpecialTasks:
    """JSON ``{"designated": [...], "forced": [...]}`` using sessionId/slotId keys."""
    data = _read_json(src) or {}
    designated = [
        DesignatedTask(
            teacher=_clean(d.get('teacher')),
            date=_clean(d.get('date')),
            slot_id=_clean(d.get('slotId', d.get('slot_id'))),
            location=_clean(d.get('location')),
        )
        for d in data.get('designated', [])
    ]
    forced = [
        ForcedTask(
            session_id=_clean(d.get('sessionId', d.get('session_id'))),
            location=_clean(d.get('location')),
            teacher=_clean(d.get('teacher')),
        )
        for d in data.get('forced', [])
    ]
    return SpecialTasks(designated=designated, forced=forced)


def load_exclusions(src: TextOrPath) -> Dict[str, Set[str]]:
    """JSON mapping teacher -> list of exclusion keys (or list of [teacher, keys] pairs)."""
    data = _read_json(src) or {}
    pairs = data.items() if isinstance(data, dict) else data
    return {str(teacher): set(keys) for teacher, keys in pairs}


def load_historical_stats(src: TextOrPath) -> Dict[str, WorkloadEntry]:
    data = _read_json(src) or {}
    if not isinstance(data, dict):
        raise ValueError("historical stats must be a JSON object of name -> {count, duration}")
    return {
        str(name): WorkloadEntry(count=int(v.get('count', 0)), duration=float(v.get('duration', 0)))
        for name, v in data.items()
    }


def save_historical_stats(path: str, stats: Dict[str, WorkloadEntry]):
    payload = {name: {'count': e.count, 'duration': e.duration} for name, e in sorted(stats.items())}
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


def load_edge_list_csv(src: TextOrPath):
    """Venue adjacency as u,v rows; lines starting with '#' are skipped."""
    edges: List[Tuple[str, str]] = []
    f, should_close = _open_text(src)
    try:
        reader = csv.reader(f)
        for row in reader:
            if not row or (isinstance(row[0], str) and row[0].startswith('#')):
                continue
            if len(row) >= 2:
                u, v = str(row[0]).strip(), str(row[1]).strip()
                if u != v:
                    edges.append((u, v))
    finally:
        if should_close:
            f.close()
    return edges


def save_assignments_csv(path: str, assignments: Sequence[Assignment]):
    with open(path, 'w', newline='', encoding='utf-8') as f:
        w = csv.writer(f)
        w.writerow(['id', 'date', 'start_time', 'end_time', 'location', 'teacher', 'assigned_by', 'supervision'])
        for a in assignments:
            w.writerow([a.id, a.date, a.start_time, a.end_time, a.location,
                        a.teacher.label, a.assigned_by.value, a.supervision.value])


def assignments_to_pivot(assignments: Sequence[Assignment]) -> pd.DataFrame:
    """One row per date/time window, one column per location; cells list teachers."""
    if not assignments:
        return pd.DataFrame(columns=['date', 'time'])
    df = pd.DataFrame([{
        'date': a.date,
        'start_time': a.start_time,
        'time': f"{a.start_time} - {a.end_time}",
        'location': a.location,
        'teacher': a.teacher.label + (' (joint)' if a.is_joint else ''),
    } for a in assignments])
    pivot = df.pivot_table(index=['date', 'start_time', 'time'], columns='location',
                           values='teacher', aggfunc='\n'.join, fill_value='')
    locations = sorted(pivot.columns, key=location_sort_key)
    pivot = pivot[locations].reset_index()
    pivot['_order'] = [session_sort_key(d, s) for d, s in zip(pivot['date'], pivot['start_time'])]
    pivot = pivot.sort_values('_order', kind='stable').drop(columns=['_order', 'start_time'])
    pivot.columns.name = None
    return pivot.reset_index(drop=True)


def save_pivot_csv(path: str, assignments: Sequence[Assignment]):
    assignments_to_pivot(assignments).to_csv(path, index=False)
