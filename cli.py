import argparse
import datetime
import json
import logging
import shutil
import sys
from typing import List, Optional

from algorithms import WeightConverter
from errors import InvalidInput, NotFound, StorageError
from models import ExerciseLog, SetLog, UserProfile, WorkoutSession
from rest_api import GymAPI

logger = logging.getLogger(__name__)

DEMO_OWNER = "demo"


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def demo_data(db_path: str, yaml_path: str) -> None:
    """Populate the database with a demo profile, logs and plan if empty."""
    api = GymAPI(db_path=db_path, yaml_path=yaml_path)
    try:
        api.profiles.fetch(DEMO_OWNER)
    except NotFound:
        pass
    else:
        print("Database already contains demo data")
        return
    api.profiles.save(
        UserProfile(
            owner=DEMO_OWNER,
            gender="male",
            weight=80.0,
            height=180.0,
            age=30,
            activity_level="moderately_active",
            goal="maintain",
        )
    )
    bench = api.exercise_catalog.ensure("Bench Press", "Barbell")
    squat = api.exercise_catalog.ensure("Squat", "Barbell")
    now = datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0)
    for week in range(4):
        day = now - datetime.timedelta(days=7 * (3 - week))
        api.sessions.add(
            WorkoutSession(
                owner=DEMO_OWNER,
                workout_id="push",
                start_time=day,
                end_time=day + datetime.timedelta(hours=1),
                total_volume=0.0,
            )
        )
        for exercise, base in ((bench, 80.0), (squat, 100.0)):
            api.logs.add(
                ExerciseLog(
                    owner=DEMO_OWNER,
                    exercise_id=exercise,
                    logged_at=day,
                    sets=[
                        SetLog(weight=base * 0.5, reps=10, set_type="warm_up"),
                        SetLog(weight=base + 2.5 * week, reps=5),
                        SetLog(weight=base + 2.5 * week, reps=5),
                    ],
                )
            )
    api.planner.schedule_cyclic(DEMO_OWNER, ["push", "pull", "legs", "rest"], 2)
    print("Demo data inserted")


def _print(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Workout scheduling and analytics")
    sub = parser.add_subparsers(dest="cmd", required=True)

    def with_store(p: argparse.ArgumentParser) -> argparse.ArgumentParser:
        p.add_argument("--db", default="workout.db")
        p.add_argument("--yaml", default="settings.yaml")
        return p

    weekly = with_store(sub.add_parser("schedule-weekly"))
    weekly.add_argument("--owner", required=True)
    weekly.add_argument("--weeks", type=int, required=True)
    weekly.add_argument(
        "--refs", nargs=7, required=True, metavar="REF", help="Monday to Sunday"
    )

    cyclic = with_store(sub.add_parser("schedule-cyclic"))
    cyclic.add_argument("--owner", required=True)
    cyclic.add_argument("--weeks", type=int, required=True)
    cyclic.add_argument("--refs", nargs="+", required=True, metavar="REF")

    dash = with_store(sub.add_parser("dashboard"))
    dash.add_argument("--owner", required=True)
    dash.add_argument("--start", type=datetime.date.fromisoformat, required=True)
    dash.add_argument("--end", type=datetime.date.fromisoformat, required=True)

    rm = with_store(sub.add_parser("repmax"))
    rm.add_argument("--owner", required=True)
    rm.add_argument("--exercise-id", type=int, required=True)
    rm.add_argument("--latest", action="store_true")

    std = with_store(sub.add_parser("standards"))
    std.add_argument("--owner", required=True)

    with_store(sub.add_parser("demo"))

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default="workout.db")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default="workout.db")

    conv = sub.add_parser("convert")
    conv.add_argument("--value", type=float, required=True)
    conv.add_argument("--from", dest="from_unit", required=True)
    conv.add_argument("--to", dest="to_unit", required=True)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        if args.cmd == "backup":
            backup_db(args.db, args.out)
        elif args.cmd == "restore":
            restore_db(args.src, args.db)
        elif args.cmd == "convert":
            value = WeightConverter.convert(args.value, args.from_unit, args.to_unit)
            print(f"{args.value} {args.from_unit} = {value:.4g} {args.to_unit}")
        elif args.cmd == "demo":
            demo_data(args.db, args.yaml)
        else:
            api = GymAPI(db_path=args.db, yaml_path=args.yaml)
            if args.cmd == "schedule-weekly":
                plans = api.planner.schedule_by_weekday(args.owner, args.refs, args.weeks)
                _print([p.to_dict() for p in plans])
            elif args.cmd == "schedule-cyclic":
                plans = api.planner.schedule_cyclic(args.owner, args.refs, args.weeks)
                _print([p.to_dict() for p in plans])
            elif args.cmd == "dashboard":
                _print(api.statistics.dashboard(args.owner, args.start, args.end))
            elif args.cmd == "repmax":
                _print(api.strength.rep_max(args.owner, args.exercise_id, args.latest))
            elif args.cmd == "standards":
                _print(api.strength.strength_standards(args.owner))
    except (InvalidInput, NotFound, StorageError) as e:
        logger.error("%s failed: %s", args.cmd, e)
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
