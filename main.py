import argparse
import logging
import sys

from examduty.algorithms.adjacency import VenueGraphAdjacency, numbered_adjacency
from examduty.algorithms.greedy import AllocationParams
from examduty.exceptions import ExamDutyError, TimeFormatError, ValidationError
from examduty.graph_build import build_venue_graph
from examduty.io_utils import (
    load_teachers, load_schedule_rows, load_special_tasks, load_exclusions,
    load_historical_stats, load_edge_list_csv, save_assignments_csv, save_pivot_csv,
    save_historical_stats,
)
from examduty.models import SpecialTasks
from examduty.scheduling.assign_invigilators import plan_invigilation
from examduty.scheduling.evaluation import merge_historical_stats, summary
from examduty.sessions import group_sessions

logger = logging.getLogger("examduty")


def build_params(args) -> AllocationParams:
    if args.venue_edges:
        adjacency = VenueGraphAdjacency(build_venue_graph(load_edge_list_csv(args.venue_edges)),
                                        max_hops=args.max_hops)
    else:
        adjacency = numbered_adjacency(args.max_gap)
    return AllocationParams(
        tie_tolerance=args.tie_tolerance,
        joint_supervision=not args.no_joint,
        joint_weight=args.joint_weight,
        adjacency=adjacency,
    )


def _report_issues(issues):
    for issue in issues:
        print(f"{issue.level}: {issue.message}", file=sys.stderr)


def main(argv=None):
    p = argparse.ArgumentParser(description="ExamDuty – invigilator assignment")
    # Inputs
    p.add_argument('--teachers', type=str, required=True, help='teachers.csv with name[,department,contact]')
    p.add_argument('--schedule', type=str, required=True,
                   help='schedule.csv with date,start_time,end_time,location,required')
    p.add_argument('--tasks', type=str, help='special tasks JSON {"designated": [...], "forced": [...]}')
    p.add_argument('--exclusions', type=str, help='exclusions JSON teacher -> [keys]')
    p.add_argument('--history', type=str, help='historical workload JSON name -> {count, duration}')

    # Allocation
    p.add_argument('--tie_tolerance', '--tie-tolerance', type=float, default=0.0,
                   help='minutes within which workloads count as tied')
    p.add_argument('--no_joint', '--no-joint', action='store_true', help='disable joint supervision fallback')
    p.add_argument('--joint_weight', '--joint-weight', type=float, default=1.5)
    p.add_argument('--max_gap', '--max-gap', type=int, default=2, help='room number gap for adjacent rooms')
    p.add_argument('--venue_edges', '--venue-edges', type=str, help='CSV u,v of rooms that can be watched together')
    p.add_argument('--max_hops', '--max-hops', type=int, default=1)

    # Output
    p.add_argument('--out', type=str, default='assignments.csv')
    p.add_argument('--out_pivot', '--out-pivot', type=str, default=None)
    p.add_argument('--out_history', '--out-history', type=str, default=None,
                   help='write history updated with this run')
    p.add_argument('-v', '--verbose', action='store_true')
    args = p.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        teachers = load_teachers(args.teachers)
        sessions = group_sessions(load_schedule_rows(args.schedule))
        tasks = load_special_tasks(args.tasks) if args.tasks else SpecialTasks()
        exclusions = load_exclusions(args.exclusions) if args.exclusions else {}
        history = load_historical_stats(args.history) if args.history else {}
        params = build_params(args)
    except ValidationError as e:
        _report_issues(e.issues)
        raise SystemExit(2)
    except (TimeFormatError, ValueError, KeyError, OSError) as e:
        print(f"error: invalid input: {e}", file=sys.stderr)
        raise SystemExit(2)

    try:
        result = plan_invigilation(teachers, sessions, tasks, exclusions, history, params=params,
                                   progress=lambda pct, msg: logger.info("[%3d%%] %s", pct, msg))
    except ValidationError as e:
        _report_issues(e.issues)
        raise SystemExit(2)
    except ExamDutyError as e:
        print(f"error: {e}", file=sys.stderr)
        raise SystemExit(1)

    print(summary(result.assignments, result.conflicts, teachers, sessions, joint_weight=args.joint_weight))
    for c in result.conflicts:
        print(f"[{c.severity.value}] {c.type.value}: {c.description}")

    save_assignments_csv(args.out, result.assignments)
    saved = [args.out]
    if args.out_pivot:
        save_pivot_csv(args.out_pivot, result.assignments)
        saved.append(args.out_pivot)
    if args.out_history:
        merged = merge_historical_stats(history, result.assignments, teachers, joint_weight=args.joint_weight)
        save_historical_stats(args.out_history, merged)
        saved.append(args.out_history)
    print(f"Saved: {', '.join(saved)}")


if __name__ == '__main__':
    main()
