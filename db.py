import sqlite3
import csv
import os
import datetime
import json
import logging
from collections import namedtuple
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional, Tuple

from config import YamlConfig
from errors import NotFoundError, StorageError
from name_resolver import ExerciseRef
from settings_schema import validate_settings

_Result = namedtuple("_Result", "rows columns lastrowid rowcount")

logger = logging.getLogger(__name__)

LIBRARY_CSV = os.path.join(os.path.dirname(__file__), "exercise_library.csv")


def utc_now() -> str:
    """Return the current UTC time in the fixed-width ISO format stored in the database."""
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="microseconds")


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "users": (
            """CREATE TABLE users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );""",
            ["id", "username", "password_hash", "created_at"],
        ),
        "auth_sessions": (
            """CREATE TABLE auth_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    token TEXT NOT NULL UNIQUE,
                    user_id INTEGER NOT NULL,
                    expires_at TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "token", "user_id", "expires_at", "created_at"],
        ),
        "exercise_library": (
            """CREATE TABLE exercise_library (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    category TEXT NOT NULL,
                    equipment TEXT,
                    muscle_group TEXT
                );""",
            ["id", "name", "category", "equipment", "muscle_group"],
        ),
        "plans": (
            """CREATE TABLE plans (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    equipment_tags TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(owner_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "owner_id", "name", "equipment_tags", "created_at"],
        ),
        "plan_days": (
            """CREATE TABLE plan_days (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    plan_id INTEGER NOT NULL,
                    day_number INTEGER NOT NULL CHECK (day_number BETWEEN 1 AND 7),
                    type TEXT NOT NULL CHECK (type IN ('upper', 'lower', 'hiit', 'full', 'rest')),
                    name TEXT NOT NULL,
                    duration TEXT,
                    rest_content TEXT,
                    hiit_structure TEXT,
                    hiit_note TEXT,
                    UNIQUE (plan_id, day_number),
                    FOREIGN KEY(plan_id) REFERENCES plans(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "plan_id",
                "day_number",
                "type",
                "name",
                "duration",
                "rest_content",
                "hiit_structure",
                "hiit_note",
            ],
        ),
        "day_exercises": (
            """CREATE TABLE day_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    plan_day_id INTEGER NOT NULL,
                    section_title TEXT,
                    library_exercise_id INTEGER,
                    custom_name TEXT,
                    sets_reps TEXT,
                    notes TEXT,
                    url TEXT,
                    equipment TEXT,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    is_hiit_move INTEGER NOT NULL DEFAULT 0,
                    CHECK ((custom_name IS NULL) != (library_exercise_id IS NULL)),
                    FOREIGN KEY(plan_day_id) REFERENCES plan_days(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "plan_day_id",
                "section_title",
                "library_exercise_id",
                "custom_name",
                "sets_reps",
                "notes",
                "url",
                "equipment",
                "sort_order",
                "is_hiit_move",
            ],
        ),
        "user_plans": (
            """CREATE TABLE user_plans (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL UNIQUE,
                    plan_id INTEGER NOT NULL,
                    current_day_index INTEGER NOT NULL DEFAULT 1 CHECK (current_day_index BETWEEN 1 AND 7),
                    started_at TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
                    FOREIGN KEY(plan_id) REFERENCES plans(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "plan_id", "current_day_index", "started_at"],
        ),
        "completions": (
            """CREATE TABLE completions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_plan_id INTEGER NOT NULL,
                    day_number INTEGER NOT NULL CHECK (day_number BETWEEN 1 AND 7),
                    completed_at TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(user_plan_id) REFERENCES user_plans(id) ON DELETE CASCADE
                );""",
            ["id", "user_plan_id", "day_number", "completed_at", "created_at"],
        ),
        "completion_exercises": (
            """CREATE TABLE completion_exercises (
                    completion_id INTEGER NOT NULL,
                    day_exercise_id INTEGER NOT NULL,
                    PRIMARY KEY (completion_id, day_exercise_id),
                    FOREIGN KEY(completion_id) REFERENCES completions(id) ON DELETE CASCADE,
                    FOREIGN KEY(day_exercise_id) REFERENCES day_exercises(id) ON DELETE CASCADE
                );""",
            ["completion_id", "day_exercise_id"],
        ),
        "share_tokens": (
            """CREATE TABLE share_tokens (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    token TEXT NOT NULL UNIQUE,
                    plan_id INTEGER NOT NULL,
                    expires_at TEXT NOT NULL,
                    used_at TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(plan_id) REFERENCES plans(id) ON DELETE CASCADE
                );""",
            ["id", "token", "plan_id", "expires_at", "used_at", "created_at"],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    _INDEX_DEFINITIONS = [
        # at most one in-progress completion per (user plan, day)
        "CREATE UNIQUE INDEX IF NOT EXISTS ux_completions_in_progress "
        "ON completions (user_plan_id, day_number) WHERE completed_at IS NULL;",
        "CREATE INDEX IF NOT EXISTS ix_completions_user_plan ON completions (user_plan_id);",
        "CREATE INDEX IF NOT EXISTS ix_day_exercises_day ON day_exercises (plan_day_id, sort_order);",
        "CREATE INDEX IF NOT EXISTS ix_plans_owner ON plans (owner_id);",
    ]

    def __init__(self, db_path: str = "weeklygrind.db") -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._ensure_indexes()
        self._import_exercise_library_data()
        self._init_settings()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    @contextmanager
    def transaction(self):
        """Yield a connection whose writes commit together or not at all.

        The write lock is taken up front so read-then-write sequences run
        serialized against other writers.
        """
        with self._connection() as conn:
            conn.execute("BEGIN IMMEDIATE;")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            cursor.execute("PRAGMA legacy_alter_table=on;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            cursor.execute("PRAGMA legacy_alter_table=off;")
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_indexes(self) -> None:
        with self._connection() as conn:
            for sql in self._INDEX_DEFINITIONS:
                conn.execute(sql)

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

        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col in ("sort_order", "is_hiit_move"):
                        return "0"
                    if col == "current_day_index":
                        return "1"
                    if col == "equipment_tags":
                        return "'[]'"
                    if col in ("created_at", "started_at"):
                        return "CURRENT_TIMESTAMP"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")

    def _import_exercise_library_data(self) -> None:
        csv_path = LIBRARY_CSV
        if not os.path.exists(csv_path):
            logger.warning("Exercise library file %s not found; library left unseeded", csv_path)
            return
        with open(csv_path, newline="", encoding="utf-8") as csvfile:
            reader = csv.DictReader(csvfile)
            records = [
                (
                    row["Exercise Name"],
                    row["Category"],
                    row.get("Equipment", "") or None,
                    row.get("Muscle Group", "") or None,
                )
                for row in reader
            ]
        with self._connection() as conn:
            for name, category, equipment, muscle_group in records:
                conn.execute(
                    "INSERT INTO exercise_library (name, category, equipment, muscle_group) VALUES (?, ?, ?, ?) "
                    "ON CONFLICT(name) DO UPDATE SET category=excluded.category, equipment=excluded.equipment, muscle_group=excluded.muscle_group;",
                    (name, category, equipment, muscle_group),
                )

    def _init_settings(self) -> None:
        defaults = {
            "app_url": "http://localhost:8000",
            "share_token_days": "7",
            "session_hours": "720",
            "auth_enabled": "1",
            "log_level": "INFO",
            "default_plan_name": "Weekly Grind",
            "password_pepper": "",
        }
        with self._connection() as conn:
            for key, value in defaults.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
                )

    def vacuum(self) -> None:
        """Run SQLite VACUUM to reduce database size."""
        with self._connection() as conn:
            conn.execute("VACUUM;")


class BaseRepository(Database):
    """Base repository providing helper methods.

    Every helper accepts an optional ``conn`` from :meth:`Database.transaction`;
    without one the statement runs in its own short-lived connection.
    """

    def _run(self, query: str, params: Tuple, conn: Optional[sqlite3.Connection]) -> _Result:
        try:
            if conn is not None:
                return self._collect(conn.execute(query, params))
            with self._connection() as own:
                return self._collect(own.execute(query, params))
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e

    @staticmethod
    def _collect(cursor: sqlite3.Cursor) -> _Result:
        names = [d[0] for d in cursor.description] if cursor.description else []
        return _Result(cursor.fetchall(), names, cursor.lastrowid, cursor.rowcount)

    def execute(self, query: str, params: Tuple = (), conn: Optional[sqlite3.Connection] = None) -> int:
        return self._run(query, params, conn).lastrowid

    def execute_count(self, query: str, params: Tuple = (), conn: Optional[sqlite3.Connection] = None) -> int:
        """Run a write statement and return the number of affected rows."""
        return self._run(query, params, conn).rowcount

    def fetch_all(self, query: str, params: Tuple = (), conn: Optional[sqlite3.Connection] = None) -> List[Tuple]:
        return self._run(query, params, conn).rows

    def fetch_dicts(self, query: str, params: Tuple = (), conn: Optional[sqlite3.Connection] = None) -> List[dict]:
        result = self._run(query, params, conn)
        return [dict(zip(result.columns, row)) for row in result.rows]

    def fetch_one(self, query: str, params: Tuple = (), conn: Optional[sqlite3.Connection] = None) -> Optional[dict]:
        rows = self.fetch_dicts(query, params, conn)
        return rows[0] if rows else None


class UserRepository(BaseRepository):
    """Repository for registered users."""

    def create(self, username: str, password_hash: str) -> int:
        return self.execute(
            "INSERT INTO users (username, password_hash, created_at) VALUES (?, ?, ?);",
            (username, password_hash, utc_now()),
        )

    def fetch_by_username(self, username: str) -> Optional[dict]:
        return self.fetch_one(
            "SELECT id, username, password_hash, created_at FROM users WHERE username = ?;",
            (username,),
        )

    def fetch_detail(self, user_id: int) -> dict:
        row = self.fetch_one(
            "SELECT id, username, created_at FROM users WHERE id = ?;",
            (user_id,),
        )
        if row is None:
            raise NotFoundError("User not found")
        return row


class AuthSessionRepository(BaseRepository):
    """Repository for opaque bearer tokens issued at login."""

    def create(self, user_id: int, token: str, expires_at: str) -> int:
        return self.execute(
            "INSERT INTO auth_sessions (token, user_id, expires_at, created_at) VALUES (?, ?, ?, ?);",
            (token, user_id, expires_at, utc_now()),
        )

    def fetch_user(self, token: str) -> Optional[dict]:
        return self.fetch_one(
            "SELECT u.id, u.username, s.expires_at FROM auth_sessions s "
            "JOIN users u ON u.id = s.user_id WHERE s.token = ?;",
            (token,),
        )

    def delete(self, token: str) -> None:
        self.execute("DELETE FROM auth_sessions WHERE token = ?;", (token,))

    def delete_expired(self, now: str) -> int:
        return self.execute_count("DELETE FROM auth_sessions WHERE expires_at <= ?;", (now,))


class ExerciseLibraryRepository(BaseRepository):
    """Read access to the shared exercise library."""

    def add(
        self,
        name: str,
        category: str,
        equipment: Optional[str] = None,
        muscle_group: Optional[str] = None,
    ) -> int:
        return self.execute(
            "INSERT INTO exercise_library (name, category, equipment, muscle_group) VALUES (?, ?, ?, ?);",
            (name, category, equipment, muscle_group),
        )

    def search(
        self,
        category: Optional[str] = None,
        equipment: Optional[Iterable[str]] = None,
    ) -> List[dict]:
        query = "SELECT id, name, category, equipment, muscle_group FROM exercise_library WHERE 1=1"
        params: list[str] = []
        if category:
            query += " AND category = ?"
            params.append(category)
        terms = [e for e in (equipment or []) if e]
        if terms:
            query += " AND (" + " OR ".join("equipment LIKE ?" for _ in terms) + ")"
            params.extend(f"%{t}%" for t in terms)
        query += " ORDER BY name;"
        return self.fetch_dicts(query, tuple(params))

    def fetch_by_ids(self, ids: Iterable[int]) -> Dict[int, dict]:
        """Fetch many entries in one query, keyed by id."""
        unique = list(dict.fromkeys(ids))
        if not unique:
            return {}
        placeholders = ",".join("?" for _ in unique)
        rows = self.fetch_dicts(
            f"SELECT id, name, category, equipment, muscle_group FROM exercise_library WHERE id IN ({placeholders});",
            tuple(unique),
        )
        return {row["id"]: row for row in rows}

    def fetch_detail(self, exercise_id: int) -> Optional[dict]:
        return self.fetch_one(
            "SELECT id, name, category, equipment, muscle_group FROM exercise_library WHERE id = ?;",
            (exercise_id,),
        )

    def fetch_categories(self) -> List[str]:
        rows = self.fetch_all("SELECT DISTINCT category FROM exercise_library ORDER BY category;")
        return [r[0] for r in rows]

    def fetch_equipment(self) -> List[str]:
        rows = self.fetch_all(
            "SELECT DISTINCT equipment FROM exercise_library "
            "WHERE equipment IS NOT NULL AND equipment != '' ORDER BY equipment;"
        )
        return [r[0] for r in rows]


class PlanRepository(BaseRepository):
    """Repository for plans."""

    @staticmethod
    def _decode(row: Optional[dict]) -> Optional[dict]:
        if row is not None:
            row["equipment_tags"] = json.loads(row["equipment_tags"] or "[]")
        return row

    def create(
        self,
        owner_id: int,
        name: str,
        equipment_tags: Iterable[str] = (),
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        tags = list(dict.fromkeys(equipment_tags))
        return self.execute(
            "INSERT INTO plans (owner_id, name, equipment_tags, created_at) VALUES (?, ?, ?, ?);",
            (owner_id, name, json.dumps(tags), utc_now()),
            conn,
        )

    def fetch_for_owner(self, owner_id: int) -> List[dict]:
        rows = self.fetch_dicts(
            "SELECT id, name, equipment_tags, created_at FROM plans "
            "WHERE owner_id = ? ORDER BY created_at DESC, id DESC;",
            (owner_id,),
        )
        return [self._decode(r) for r in rows]

    def fetch_detail(self, plan_id: int, conn: Optional[sqlite3.Connection] = None) -> dict:
        row = self.fetch_one(
            "SELECT id, owner_id, name, equipment_tags, created_at FROM plans WHERE id = ?;",
            (plan_id,),
            conn,
        )
        if row is None:
            raise NotFoundError("Plan not found")
        return self._decode(row)

    def rename(self, plan_id: int, name: str) -> None:
        self.execute("UPDATE plans SET name = ? WHERE id = ?;", (name, plan_id))

    def set_equipment_tags(self, plan_id: int, tags: Iterable[str]) -> None:
        self.execute(
            "UPDATE plans SET equipment_tags = ? WHERE id = ?;",
            (json.dumps(list(dict.fromkeys(tags))), plan_id),
        )

    def delete(self, plan_id: int) -> None:
        self.execute("DELETE FROM plans WHERE id = ?;", (plan_id,))


class PlanDayRepository(BaseRepository):
    """Repository for the days of a plan."""

    _COLUMNS = "id, plan_id, day_number, type, name, duration, rest_content, hiit_structure, hiit_note"
    _EDITABLE = {"type", "name", "duration", "rest_content", "hiit_structure", "hiit_note"}

    def create(
        self,
        plan_id: int,
        day_number: int,
        name: str,
        day_type: str,
        duration: Optional[str] = None,
        rest_content: Optional[str] = None,
        hiit_structure: Optional[str] = None,
        hiit_note: Optional[str] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        return self.execute(
            "INSERT INTO plan_days (plan_id, day_number, type, name, duration, rest_content, hiit_structure, hiit_note) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
            (
                plan_id,
                day_number,
                day_type,
                name,
                duration,
                rest_content,
                hiit_structure,
                hiit_note,
            ),
            conn,
        )

    def fetch_for_plan(self, plan_id: int, conn: Optional[sqlite3.Connection] = None) -> List[dict]:
        return self.fetch_dicts(
            f"SELECT {self._COLUMNS} FROM plan_days WHERE plan_id = ? ORDER BY day_number;",
            (plan_id,),
            conn,
        )

    def fetch_by_number(
        self, plan_id: int, day_number: int, conn: Optional[sqlite3.Connection] = None
    ) -> Optional[dict]:
        return self.fetch_one(
            f"SELECT {self._COLUMNS} FROM plan_days WHERE plan_id = ? AND day_number = ?;",
            (plan_id, day_number),
            conn,
        )

    def fetch_detail(self, day_id: int) -> dict:
        row = self.fetch_one(
            f"SELECT {self._COLUMNS} FROM plan_days WHERE id = ?;",
            (day_id,),
        )
        if row is None:
            raise NotFoundError("Plan day not found")
        return row

    def update(self, day_id: int, fields: dict) -> None:
        changes = {k: v for k, v in fields.items() if k in self._EDITABLE}
        if not changes:
            return
        assignments = ", ".join(f"{col} = ?" for col in changes)
        self.execute(
            f"UPDATE plan_days SET {assignments} WHERE id = ?;",
            (*changes.values(), day_id),
        )


class DayExerciseRepository(BaseRepository):
    """Repository for the exercises listed under a plan day."""

    _COLUMNS = (
        "id, plan_day_id, section_title, library_exercise_id, custom_name, sets_reps, "
        "notes, url, equipment, sort_order, is_hiit_move"
    )
    _EDITABLE = {"section_title", "sets_reps", "notes", "url", "equipment", "sort_order", "is_hiit_move"}

    @staticmethod
    def _decode(row: dict) -> dict:
        row["is_hiit_move"] = bool(row["is_hiit_move"])
        return row

    def add(
        self,
        plan_day_id: int,
        ref: ExerciseRef,
        section_title: Optional[str] = None,
        sets_reps: Optional[str] = None,
        notes: Optional[str] = None,
        url: Optional[str] = None,
        equipment: Optional[str] = None,
        sort_order: int = 0,
        is_hiit_move: bool = False,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        custom_name, library_id = ref.columns()
        return self.execute(
            "INSERT INTO day_exercises (plan_day_id, section_title, library_exercise_id, custom_name, sets_reps, notes, url, equipment, sort_order, is_hiit_move) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
            (
                plan_day_id,
                section_title,
                library_id,
                custom_name,
                sets_reps,
                notes,
                url,
                equipment,
                sort_order,
                int(is_hiit_move),
            ),
            conn,
        )

    def fetch_for_days(
        self, day_ids: Iterable[int], conn: Optional[sqlite3.Connection] = None
    ) -> List[dict]:
        ids = list(day_ids)
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        rows = self.fetch_dicts(
            f"SELECT {self._COLUMNS} FROM day_exercises WHERE plan_day_id IN ({placeholders}) "
            "ORDER BY sort_order, id;",
            tuple(ids),
            conn,
        )
        return [self._decode(r) for r in rows]

    def fetch_detail(self, exercise_id: int) -> dict:
        row = self.fetch_one(
            f"SELECT {self._COLUMNS} FROM day_exercises WHERE id = ?;",
            (exercise_id,),
        )
        if row is None:
            raise NotFoundError("Exercise not found")
        return self._decode(row)

    def next_sort_order(self, plan_day_id: int) -> int:
        rows = self.fetch_all(
            "SELECT COALESCE(MAX(sort_order), -1) + 1 FROM day_exercises WHERE plan_day_id = ?;",
            (plan_day_id,),
        )
        return int(rows[0][0]) if rows else 0

    def update(self, exercise_id: int, fields: dict, ref: Optional[ExerciseRef] = None) -> None:
        changes = {k: v for k, v in fields.items() if k in self._EDITABLE}
        if "is_hiit_move" in changes:
            changes["is_hiit_move"] = int(bool(changes["is_hiit_move"]))
        if ref is not None:
            changes["custom_name"], changes["library_exercise_id"] = ref.columns()
        if not changes:
            return
        assignments = ", ".join(f"{col} = ?" for col in changes)
        self.execute(
            f"UPDATE day_exercises SET {assignments} WHERE id = ?;",
            (*changes.values(), exercise_id),
        )

    def remove(self, exercise_id: int) -> None:
        self.execute("DELETE FROM day_exercises WHERE id = ?;", (exercise_id,))


class UserPlanRepository(BaseRepository):
    """Repository for each user's active plan binding."""

    _COLUMNS = "id, user_id, plan_id, current_day_index, started_at"

    def fetch_for_user(self, user_id: int, conn: Optional[sqlite3.Connection] = None) -> Optional[dict]:
        return self.fetch_one(
            f"SELECT {self._COLUMNS} FROM user_plans WHERE user_id = ?;",
            (user_id,),
            conn,
        )

    def fetch_detail(self, user_plan_id: int, conn: Optional[sqlite3.Connection] = None) -> dict:
        row = self.fetch_one(
            f"SELECT {self._COLUMNS} FROM user_plans WHERE id = ?;",
            (user_plan_id,),
            conn,
        )
        if row is None:
            raise NotFoundError("User plan not found")
        return row

    def activate(
        self, user_id: int, plan_id: int, conn: Optional[sqlite3.Connection] = None
    ) -> Tuple[dict, bool]:
        """Point the user's binding at ``plan_id`` and reset the day pointer.

        Returns the binding and whether it was newly created.
        """
        existed = self.fetch_for_user(user_id, conn) is not None
        self.execute(
            "INSERT INTO user_plans (user_id, plan_id, current_day_index, started_at) VALUES (?, ?, 1, ?) "
            "ON CONFLICT(user_id) DO UPDATE SET plan_id = excluded.plan_id, current_day_index = 1, started_at = excluded.started_at;",
            (user_id, plan_id, utc_now()),
            conn,
        )
        return self.fetch_for_user(user_id, conn), not existed

    def advance_day(self, user_plan_id: int, conn: Optional[sqlite3.Connection] = None) -> None:
        self.execute(
            "UPDATE user_plans SET current_day_index = (current_day_index % 7) + 1 WHERE id = ?;",
            (user_plan_id,),
            conn,
        )


class CompletionRepository(BaseRepository):
    """Repository for in-progress and finalized day completions."""

    def fetch_in_progress(
        self, user_plan_id: int, day_number: int, conn: Optional[sqlite3.Connection] = None
    ) -> Optional[dict]:
        return self.fetch_one(
            "SELECT id, user_plan_id, day_number, completed_at FROM completions "
            "WHERE user_plan_id = ? AND day_number = ? AND completed_at IS NULL;",
            (user_plan_id, day_number),
            conn,
        )

    def ensure_in_progress(
        self, user_plan_id: int, day_number: int, conn: Optional[sqlite3.Connection] = None
    ) -> int:
        """Return the in-progress completion id, creating it when absent."""
        self.execute(
            "INSERT OR IGNORE INTO completions (user_plan_id, day_number, completed_at, created_at) VALUES (?, ?, NULL, ?);",
            (user_plan_id, day_number, utc_now()),
            conn,
        )
        row = self.fetch_in_progress(user_plan_id, day_number, conn)
        if row is None:
            raise StorageError("in-progress completion missing after insert")
        return row["id"]

    def finalize(self, completion_id: int, timestamp: str, conn: Optional[sqlite3.Connection] = None) -> None:
        self.execute(
            "UPDATE completions SET completed_at = ? WHERE id = ? AND completed_at IS NULL;",
            (timestamp, completion_id),
            conn,
        )

    def create_finalized(
        self,
        user_plan_id: int,
        day_number: int,
        timestamp: str,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        return self.execute(
            "INSERT INTO completions (user_plan_id, day_number, completed_at, created_at) VALUES (?, ?, ?, ?);",
            (user_plan_id, day_number, timestamp, timestamp),
            conn,
        )

    def fetch_for_user_plan(self, user_plan_id: int) -> List[dict]:
        return self.fetch_dicts(
            "SELECT id, day_number, completed_at FROM completions WHERE user_plan_id = ? "
            "ORDER BY completed_at IS NULL DESC, completed_at DESC, id DESC;",
            (user_plan_id,),
        )


class CompletionExerciseRepository(BaseRepository):
    """Repository for the exercise checklist of a completion."""

    def add(
        self, completion_id: int, day_exercise_id: int, conn: Optional[sqlite3.Connection] = None
    ) -> bool:
        """Insert the pair idempotently; return False when it was already present."""
        inserted = self.execute_count(
            "INSERT OR IGNORE INTO completion_exercises (completion_id, day_exercise_id) VALUES (?, ?);",
            (completion_id, day_exercise_id),
            conn,
        )
        return inserted > 0

    def remove(
        self, completion_id: int, day_exercise_id: int, conn: Optional[sqlite3.Connection] = None
    ) -> None:
        self.execute(
            "DELETE FROM completion_exercises WHERE completion_id = ? AND day_exercise_id = ?;",
            (completion_id, day_exercise_id),
            conn,
        )

    def fetch_for_completion(self, completion_id: int) -> List[int]:
        rows = self.fetch_all(
            "SELECT day_exercise_id FROM completion_exercises WHERE completion_id = ? ORDER BY day_exercise_id;",
            (completion_id,),
        )
        return [r[0] for r in rows]

    def fetch_for_completions(self, completion_ids: Iterable[int]) -> Dict[int, List[int]]:
        ids = list(completion_ids)
        if not ids:
            return {}
        placeholders = ",".join("?" for _ in ids)
        rows = self.fetch_all(
            f"SELECT completion_id, day_exercise_id FROM completion_exercises WHERE completion_id IN ({placeholders}) "
            "ORDER BY completion_id, day_exercise_id;",
            tuple(ids),
        )
        result: Dict[int, List[int]] = {}
        for completion_id, day_exercise_id in rows:
            result.setdefault(completion_id, []).append(day_exercise_id)
        return result


class ShareTokenRepository(BaseRepository):
    """Repository for single-use plan share tokens."""

    def create(self, plan_id: int, token: str, expires_at: str) -> int:
        return self.execute(
            "INSERT INTO share_tokens (token, plan_id, expires_at, used_at, created_at) VALUES (?, ?, ?, NULL, ?);",
            (token, plan_id, expires_at, utc_now()),
        )

    def fetch_by_token(self, token: str, conn: Optional[sqlite3.Connection] = None) -> Optional[dict]:
        return self.fetch_one(
            "SELECT id, token, plan_id, expires_at, used_at FROM share_tokens WHERE token = ?;",
            (token,),
            conn,
        )

    def consume(self, token: str, used_at: str, conn: Optional[sqlite3.Connection] = None) -> bool:
        """Mark the token used unless it already is; True when this call won."""
        changed = self.execute_count(
            "UPDATE share_tokens SET used_at = ? WHERE token = ? AND used_at IS NULL;",
            (used_at, token),
            conn,
        )
        return changed == 1


class SettingsRepository(BaseRepository):
    """Repository for application settings synchronized with YAML."""

    BOOL_KEYS = {"auth_enabled"}
    INT_KEYS = {"share_token_days", "session_hours"}

    def __init__(
        self, db_path: str = "weeklygrind.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, int | bool | str] = {}
        for k, v in rows:
            if k in self.BOOL_KEYS:
                result[k] = v in {"1", "1.0", "true", "True"}
            elif k in self.INT_KEYS:
                result[k] = int(float(v))
            else:
                result[k] = v
        return result

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                val = str(value)
                if key in self.BOOL_KEYS:
                    val = "1" if val in {"1", "1.0", "true", "True"} else "0"
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, val),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def get_text(self, key: str, default: str) -> str:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return str(rows[0][0]) if rows else default

    def get_int(self, key: str, default: int) -> int:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return int(float(rows[0][0])) if rows else default

    def get_bool(self, key: str, default: bool) -> bool:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        if not rows:
            return default
        return rows[0][0] in {"1", "1.0", "true", "True"}

    def set_text(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def set_int(self, key: str, value: int) -> None:
        self.set_text(key, str(int(value)))

    def set_bool(self, key: str, value: bool) -> None:
        self.set_text(key, "1" if value else "0")

    def all_settings(self) -> dict:
        self._sync_from_yaml()
        return self._raw_all_settings()
