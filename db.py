import sqlite3
import datetime
import json
import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from errors import NotFound, StorageError
from models import (
    WORKING_SET,
    CatalogExercise,
    ExerciseLog,
    FoodLogEntry,
    SetLog,
    UserProfile,
    WorkoutAssignment,
    WorkoutSession,
)

logger = logging.getLogger(__name__)


def to_db_timestamp(value: datetime.datetime) -> str:
    """Return ``value`` as a fixed-width ISO-8601 UTC string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc).isoformat(timespec="microseconds")


def from_db_timestamp(value: Optional[str]) -> Optional[datetime.datetime]:
    if value is None:
        return None
    dt = datetime.datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "workout_plans": (
            """CREATE TABLE workout_plans (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner TEXT NOT NULL,
                    workout_id TEXT NOT NULL,
                    dates TEXT NOT NULL DEFAULT '[]',
                    version INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT,
                    updated_at TEXT,
                    UNIQUE(owner, workout_id)
                );""",
            [
                "id",
                "owner",
                "workout_id",
                "dates",
                "version",
                "created_at",
                "updated_at",
            ],
        ),
        "workout_sessions": (
            """CREATE TABLE workout_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner TEXT NOT NULL,
                    workout_id TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT,
                    status TEXT NOT NULL DEFAULT 'completed',
                    total_volume REAL NOT NULL DEFAULT 0
                );""",
            [
                "id",
                "owner",
                "workout_id",
                "start_time",
                "end_time",
                "status",
                "total_volume",
            ],
        ),
        "exercise_catalog": (
            """CREATE TABLE exercise_catalog (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    equipment TEXT NOT NULL,
                    target_muscles TEXT NOT NULL DEFAULT '',
                    UNIQUE(name, equipment)
                );""",
            ["id", "name", "equipment", "target_muscles"],
        ),
        "exercise_logs": (
            """CREATE TABLE exercise_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner TEXT NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    logged_at TEXT NOT NULL,
                    sets TEXT NOT NULL DEFAULT '[]',
                    FOREIGN KEY(exercise_id) REFERENCES exercise_catalog(id) ON DELETE CASCADE
                );""",
            ["id", "owner", "exercise_id", "logged_at", "sets"],
        ),
        "user_profiles": (
            """CREATE TABLE user_profiles (
                    owner TEXT PRIMARY KEY,
                    gender TEXT NOT NULL,
                    weight REAL NOT NULL,
                    height REAL NOT NULL,
                    age INTEGER NOT NULL,
                    activity_level TEXT NOT NULL DEFAULT 'sedentary',
                    goal TEXT NOT NULL DEFAULT 'maintain'
                );""",
            [
                "owner",
                "gender",
                "weight",
                "height",
                "age",
                "activity_level",
                "goal",
            ],
        ),
        "food_logs": (
            """CREATE TABLE food_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner TEXT NOT NULL,
                    logged_at TEXT NOT NULL,
                    calories REAL NOT NULL DEFAULT 0,
                    protein REAL NOT NULL DEFAULT 0,
                    carbs REAL NOT NULL DEFAULT 0,
                    fat REAL NOT NULL DEFAULT 0
                );""",
            ["id", "owner", "logged_at", "calories", "protein", "carbs", "fat"],
        ),
    }

    _COLUMN_DEFAULTS = {
        "dates": "'[]'",
        "sets": "'[]'",
        "version": "1",
        "status": "'completed'",
        "total_volume": "0",
        "target_muscles": "''",
        "activity_level": "'sedentary'",
        "goal": "'maintain'",
        "calories": "0",
        "protein": "0",
        "carbs": "0",
        "fat": "0",
    }

    def __init__(self, db_path: str = "workout.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        try:
            connection = sqlite3.connect(self._db_path)
        except sqlite3.Error as e:
            logger.error("cannot open database %s: %s", self._db_path, e)
            raise StorageError(str(e)) from e
        try:
            connection.execute("PRAGMA foreign_keys=on;")
            yield connection
            connection.commit()
        except sqlite3.Error as e:
            logger.error("database error on %s: %s", self._db_path, e)
            raise StorageError(str(e)) from e
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        logger.info("migrating table %s to columns %s", table, columns)
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)
        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            defaults = [self._COLUMN_DEFAULTS.get(c, "NULL") for c in missing]
            if missing:
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) "
                    f"SELECT {cols}, {', '.join(defaults)} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def execute_rowcount(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.rowcount

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _delete_all(self, table: str) -> None:
        self.execute(f"DELETE FROM {table};")


class WorkoutPlanRepository(BaseRepository):
    """Repository for workout date assignments.

    Each record is keyed by ``(owner, workout_id)``. Updates are guarded by a
    ``version`` column so a stale read-modify-write fails instead of
    silently overwriting a concurrent change.
    """

    _COLUMNS = "id, owner, workout_id, dates, version, created_at, updated_at"

    @staticmethod
    def _row_to_record(row: Tuple) -> WorkoutAssignment:
        pid, owner, workout_id, dates, version, created, updated = row
        return WorkoutAssignment(
            id=pid,
            owner=owner,
            workout_id=workout_id,
            dates=[datetime.date.fromisoformat(d) for d in json.loads(dates)],
            version=version,
            created_at=from_db_timestamp(created),
            updated_at=from_db_timestamp(updated),
        )

    def find_by_owner_and_references(
        self, owner: str, references: Iterable[str]
    ) -> List[WorkoutAssignment]:
        refs = list(dict.fromkeys(references))
        if not refs:
            return []
        placeholders = ", ".join("?" for _ in refs)
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workout_plans "
            f"WHERE owner = ? AND workout_id IN ({placeholders}) ORDER BY id;",
            (owner, *refs),
        )
        return [self._row_to_record(r) for r in rows]

    def fetch_for_owner(self, owner: str) -> List[WorkoutAssignment]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workout_plans WHERE owner = ? ORDER BY id;",
            (owner,),
        )
        return [self._row_to_record(r) for r in rows]

    def fetch_detail(self, plan_id: int) -> WorkoutAssignment:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workout_plans WHERE id = ?;", (plan_id,)
        )
        if not rows:
            raise NotFound("workout plan not found")
        return self._row_to_record(rows[0])

    def upsert(self, record: WorkoutAssignment) -> WorkoutAssignment:
        """Create ``record`` or replace the stored one with the same key."""
        dates = json.dumps([d.isoformat() for d in record.dates])
        created = to_db_timestamp(record.created_at) if record.created_at else None
        updated = to_db_timestamp(record.updated_at) if record.updated_at else None
        if record.id is None:
            try:
                new_id = self.execute(
                    "INSERT INTO workout_plans (owner, workout_id, dates, version, created_at, updated_at) "
                    "VALUES (?, ?, ?, 1, ?, ?);",
                    (record.owner, record.workout_id, dates, created, updated),
                )
            except StorageError:
                logger.error(
                    "could not create plan for %s/%s", record.owner, record.workout_id
                )
                raise
            return replace(record, id=new_id, version=1)
        changed = self.execute_rowcount(
            "UPDATE workout_plans SET dates = ?, version = version + 1, updated_at = ? "
            "WHERE id = ? AND version = ?;",
            (dates, updated, record.id, record.version),
        )
        if changed == 0:
            raise StorageError(
                f"workout plan {record.id} was modified concurrently or no longer exists"
            )
        return replace(record, version=record.version + 1)

    def delete_all(self) -> None:
        self._delete_all("workout_plans")


class WorkoutSessionRepository(BaseRepository):
    """Repository for completed or running workout sessions."""

    _COLUMNS = "id, owner, workout_id, start_time, end_time, status, total_volume"

    @staticmethod
    def _row_to_session(row: Tuple) -> WorkoutSession:
        sid, owner, workout_id, start, end, status, volume = row
        return WorkoutSession(
            id=sid,
            owner=owner,
            workout_id=workout_id,
            start_time=from_db_timestamp(start),
            end_time=from_db_timestamp(end),
            status=status,
            total_volume=float(volume),
        )

    def add(self, session: WorkoutSession) -> int:
        return self.execute(
            "INSERT INTO workout_sessions (owner, workout_id, start_time, end_time, status, total_volume) "
            "VALUES (?, ?, ?, ?, ?, ?);",
            (
                session.owner,
                session.workout_id,
                to_db_timestamp(session.start_time),
                to_db_timestamp(session.end_time) if session.end_time else None,
                session.status,
                float(session.total_volume),
            ),
        )

    def find_by_owner_and_date_range(
        self, owner: str, start: datetime.datetime, end: datetime.datetime
    ) -> List[WorkoutSession]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workout_sessions "
            "WHERE owner = ? AND start_time >= ? AND start_time <= ? ORDER BY start_time;",
            (owner, to_db_timestamp(start), to_db_timestamp(end)),
        )
        return [self._row_to_session(r) for r in rows]


class ExerciseLogRepository(BaseRepository):
    """Repository for per-exercise set logs."""

    _COLUMNS = "id, owner, exercise_id, logged_at, sets"

    @staticmethod
    def _row_to_log(row: Tuple) -> ExerciseLog:
        lid, owner, exercise_id, logged_at, sets = row
        return ExerciseLog(
            id=lid,
            owner=owner,
            exercise_id=exercise_id,
            logged_at=from_db_timestamp(logged_at),
            sets=[
                SetLog(
                    weight=float(s["weight"]),
                    reps=int(s["reps"]),
                    set_type=s.get("type", WORKING_SET),
                    rpe=s.get("rpe"),
                )
                for s in json.loads(sets)
            ],
        )

    def add(self, log: ExerciseLog) -> int:
        return self.execute(
            "INSERT INTO exercise_logs (owner, exercise_id, logged_at, sets) VALUES (?, ?, ?, ?);",
            (
                log.owner,
                log.exercise_id,
                to_db_timestamp(log.logged_at),
                json.dumps([s.to_dict() for s in log.sets]),
            ),
        )

    def find_by_owner_and_date_range(
        self, owner: str, start: datetime.datetime, end: datetime.datetime
    ) -> List[ExerciseLog]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercise_logs "
            "WHERE owner = ? AND logged_at >= ? AND logged_at <= ? "
            "ORDER BY exercise_id, logged_at;",
            (owner, to_db_timestamp(start), to_db_timestamp(end)),
        )
        return [self._row_to_log(r) for r in rows]

    def fetch_for_exercise(self, owner: str, exercise_id: int) -> List[ExerciseLog]:
        """Return all logs of one exercise, most recent first."""
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercise_logs "
            "WHERE owner = ? AND exercise_id = ? ORDER BY logged_at DESC, id DESC;",
            (owner, exercise_id),
        )
        return [self._row_to_log(r) for r in rows]

    def fetch_latest_for_exercises(
        self, owner: str, exercise_ids: Iterable[int]
    ) -> Dict[int, ExerciseLog]:
        ids = list(dict.fromkeys(exercise_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercise_logs "
            f"WHERE owner = ? AND exercise_id IN ({placeholders}) "
            "ORDER BY exercise_id, logged_at DESC, id DESC;",
            (owner, *ids),
        )
        latest: Dict[int, ExerciseLog] = {}
        for row in rows:
            log = self._row_to_log(row)
            latest.setdefault(log.exercise_id, log)
        return latest


class ExerciseCatalogRepository(BaseRepository):
    """Repository for exercises that logs refer to."""

    @staticmethod
    def _row_to_exercise(row: Tuple) -> CatalogExercise:
        eid, name, equipment, muscles = row
        return CatalogExercise(
            id=eid,
            name=name,
            equipment=equipment,
            target_muscles=[m for m in muscles.split("|") if m],
        )

    def add(self, name: str, equipment: str, target_muscles: Iterable[str] = ()) -> int:
        return self.execute(
            "INSERT INTO exercise_catalog (name, equipment, target_muscles) VALUES (?, ?, ?);",
            (name, equipment, "|".join(target_muscles)),
        )

    def ensure(self, name: str, equipment: str, target_muscles: Iterable[str] = ()) -> int:
        """Return the id of ``(name, equipment)``, creating it if missing."""
        found = self.find(name, equipment)
        if found is not None:
            return found.id
        return self.add(name, equipment, target_muscles)

    def find(self, name: str, equipment: str) -> Optional[CatalogExercise]:
        rows = self.fetch_all(
            "SELECT id, name, equipment, target_muscles FROM exercise_catalog "
            "WHERE name = ? AND equipment = ?;",
            (name, equipment),
        )
        return self._row_to_exercise(rows[0]) if rows else None

    def fetch_detail(self, exercise_id: int) -> CatalogExercise:
        rows = self.fetch_all(
            "SELECT id, name, equipment, target_muscles FROM exercise_catalog WHERE id = ?;",
            (exercise_id,),
        )
        if not rows:
            raise NotFound("exercise not found")
        return self._row_to_exercise(rows[0])

    def fetch_all_exercises(self) -> List[CatalogExercise]:
        rows = self.fetch_all(
            "SELECT id, name, equipment, target_muscles FROM exercise_catalog ORDER BY id;"
        )
        return [self._row_to_exercise(r) for r in rows]


class UserProfileRepository(BaseRepository):
    """Repository for per-owner body metrics and nutrition preferences."""

    def save(self, profile: UserProfile) -> None:
        self.execute(
            "INSERT INTO user_profiles (owner, gender, weight, height, age, activity_level, goal) "
            "VALUES (?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(owner) DO UPDATE SET gender = excluded.gender, weight = excluded.weight, "
            "height = excluded.height, age = excluded.age, "
            "activity_level = excluded.activity_level, goal = excluded.goal;",
            (
                profile.owner,
                profile.gender,
                float(profile.weight),
                float(profile.height),
                int(profile.age),
                profile.activity_level,
                profile.goal,
            ),
        )

    def fetch(self, owner: str) -> UserProfile:
        rows = self.fetch_all(
            "SELECT owner, gender, weight, height, age, activity_level, goal "
            "FROM user_profiles WHERE owner = ?;",
            (owner,),
        )
        if not rows:
            raise NotFound("user profile not found")
        owner, gender, weight, height, age, activity, goal = rows[0]
        return UserProfile(
            owner=owner,
            gender=gender,
            weight=float(weight),
            height=float(height),
            age=int(age),
            activity_level=activity,
            goal=goal,
        )


class FoodLogRepository(BaseRepository):
    """Repository for logged food entries."""

    _COLUMNS = "id, owner, logged_at, calories, protein, carbs, fat"

    def add(self, entry: FoodLogEntry) -> int:
        return self.execute(
            "INSERT INTO food_logs (owner, logged_at, calories, protein, carbs, fat) "
            "VALUES (?, ?, ?, ?, ?, ?);",
            (
                entry.owner,
                to_db_timestamp(entry.logged_at),
                float(entry.calories),
                float(entry.protein),
                float(entry.carbs),
                float(entry.fat),
            ),
        )

    def find_by_owner_and_date_range(
        self, owner: str, start: datetime.datetime, end: datetime.datetime
    ) -> List[FoodLogEntry]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM food_logs "
            "WHERE owner = ? AND logged_at >= ? AND logged_at <= ? ORDER BY logged_at, id;",
            (owner, to_db_timestamp(start), to_db_timestamp(end)),
        )
        return [
            FoodLogEntry(
                id=fid,
                owner=row_owner,
                logged_at=from_db_timestamp(logged_at),
                calories=float(calories),
                protein=float(protein),
                carbs=float(carbs),
                fat=float(fat),
            )
            for fid, row_owner, logged_at, calories, protein, carbs, fat in rows
        ]
