"""
SQLite-backed repository.

Dates are stored as ISO strings and dependency lists as JSON. Each
transaction() is a single SQL transaction, rolled back on any error.
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from taskplan.domain.errors import NotFoundError, PersistenceError
from taskplan.domain.project import Project
from taskplan.domain.task import DATE_FIELDS, Task
from taskplan.domain.user import User
from taskplan.persistence.repository import TaskRepository
from taskplan.utils.logging import get_logger

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    data TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    data TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    project_id TEXT,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project_id);
"""

PROJECT_DATE_FIELDS = ("start_date", "end_date", "original_end_date")


def _encode(data: Dict[str, Any], date_fields) -> str:
    data = dict(data)
    for field in date_fields:
        if data.get(field) is not None:
            data[field] = data[field].strftime("%Y-%m-%d")
    return json.dumps(data)


def _decode(text: str, date_fields) -> Dict[str, Any]:
    data = json.loads(text)
    for field in date_fields:
        if data.get(field):
            data[field] = datetime.strptime(data[field], "%Y-%m-%d")
    return data


class SQLiteRepository(TaskRepository):
    """
    Repository over a SQLite database file (or ":memory:").

    Args:
        database_path: Path to the database file
        timeout: Seconds to wait for a database lock
    """

    def __init__(self, database_path: str = ":memory:", timeout: float = 30.0):
        self.database_path = database_path
        if database_path != ":memory:":
            db_dir = Path(database_path).parent
            if db_dir and not db_dir.exists():
                db_dir.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created database directory: {db_dir}")

        try:
            # Transactions are managed explicitly with BEGIN/COMMIT
            self.conn = sqlite3.connect(
                database_path, timeout=timeout, check_same_thread=False, isolation_level=None
            )
            self.conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {database_path}: {e}") from e

        self._lock = threading.RLock()
        self._in_transaction = False

    def _execute(self, query: str, params=()) -> sqlite3.Cursor:
        try:
            with self._lock:
                return self.conn.execute(query, params)
        except sqlite3.Error as e:
            logger.error(f"Query failed: {e}")
            raise PersistenceError(str(e)) from e

    def _fetch_one(self, table: str, key) -> Optional[str]:
        row = self._execute(f"SELECT data FROM {table} WHERE id = ?", (str(key),)).fetchone()
        return row[0] if row else None

    def get_project(self, project_id) -> Project:
        text = self._fetch_one("projects", project_id)
        if text is None:
            raise NotFoundError("Project", project_id)
        return Project.from_dict(_decode(text, PROJECT_DATE_FIELDS))

    def get_task(self, task_id) -> Task:
        text = self._fetch_one("tasks", task_id)
        if text is None:
            raise NotFoundError("Task", task_id)
        return Task.from_dict(_decode(text, DATE_FIELDS))

    def list_tasks(self, project_id=None) -> List[Task]:
        if project_id is None:
            rows = self._execute("SELECT data FROM tasks ORDER BY rowid").fetchall()
        else:
            rows = self._execute(
                "SELECT data FROM tasks WHERE project_id = ? ORDER BY rowid",
                (str(project_id),),
            ).fetchall()
        return [Task.from_dict(_decode(row[0], DATE_FIELDS)) for row in rows]

    def list_users(self) -> List[User]:
        rows = self._execute("SELECT data FROM users ORDER BY rowid").fetchall()
        return [User.from_dict(json.loads(row[0])) for row in rows]

    def add_user(self, user: User):
        self._execute(
            "INSERT OR REPLACE INTO users (id, data) VALUES (?, ?)",
            (str(user.id), json.dumps(user.to_dict())),
        )

    def save_task(self, task: Task):
        project_id = str(task.project_id) if task.project_id is not None else None
        self._execute(
            "INSERT INTO tasks (id, project_id, data) VALUES (?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET project_id = excluded.project_id, data = excluded.data",
            (str(task.id), project_id, _encode(task.to_dict(), DATE_FIELDS)),
        )

    def save_project(self, project: Project):
        self._execute(
            "INSERT INTO projects (id, data) VALUES (?, ?) "
            "ON CONFLICT(id) DO UPDATE SET data = excluded.data",
            (str(project.id), _encode(project.to_dict(), PROJECT_DATE_FIELDS)),
        )

    @contextmanager
    def transaction(self):
        with self._lock:
            if self._in_transaction:
                raise PersistenceError("Nested transactions are not supported")
            self._execute("BEGIN IMMEDIATE")
            self._in_transaction = True
            try:
                yield self
            except Exception:
                self.conn.execute("ROLLBACK")
                logger.warning("Transaction rolled back")
                raise
            else:
                self._execute("COMMIT")
            finally:
                self._in_transaction = False

    def close(self):
        self.conn.close()
