import os
import shutil
import tempfile
import unittest
from datetime import datetime

from taskplan.domain.errors import NotFoundError, PersistenceError
from taskplan.domain.project import Project
from taskplan.domain.task import Task
from taskplan.domain.user import User
from taskplan.persistence.repository import InMemoryRepository
from taskplan.persistence.sqlite import SQLiteRepository


def sample_records():
    project = Project("P1", "Relaunch", start_date=datetime(2025, 1, 6), end_date=datetime(2025, 1, 31))
    tasks = [
        Task(
            "T1", "Plan", start_date=datetime(2025, 1, 6), end_date=datetime(2025, 1, 7),
            task_type="CONNECTED", schedule_policy="SECURE", dependents=["T2"],
            assignee_id="alice", project_id="P1",
        ),
        Task(
            "T2", "Build", start_date=datetime(2025, 1, 8), end_date=datetime(2025, 1, 10),
            task_type="CONNECTED", dependencies=["T1"], estimated_hours=24,
            assignee_id="bob", project_id="P1",
        ),
        Task("T9", "Elsewhere", project_id="P2"),
    ]
    users = [User("alice"), User("bob", max_hours_per_day=6)]
    return project, tasks, users


class RepositoryContract:
    """Tests shared by every repository implementation."""

    def make_repository(self):
        raise NotImplementedError

    def setUp(self):
        self.repository = self.make_repository()

    def test_reads(self):
        project = self.repository.get_project("P1")
        self.assertEqual(project.end_date, datetime(2025, 1, 31))

        task = self.repository.get_task("T2")
        self.assertEqual(task.dependencies, ["T1"])
        self.assertEqual(task.start_date, datetime(2025, 1, 8))
        self.assertEqual(task.task_type, "CONNECTED")

        self.assertEqual([t.id for t in self.repository.list_tasks("P1")], ["T1", "T2"])
        self.assertEqual(len(self.repository.list_tasks()), 3)
        self.assertEqual(sorted(u.id for u in self.repository.list_users()), ["alice", "bob"])

    def test_missing_records(self):
        with self.assertRaises(NotFoundError):
            self.repository.get_project("P404")
        with self.assertRaises(NotFoundError):
            self.repository.get_task("T404")

    def test_reads_return_copies(self):
        task = self.repository.get_task("T1")
        task.reschedule(datetime(2025, 2, 3), datetime(2025, 2, 4))
        self.assertEqual(self.repository.get_task("T1").start_date, datetime(2025, 1, 6))

    def test_transaction_commits(self):
        task = self.repository.get_task("T1")
        task.reschedule(datetime(2025, 1, 13), datetime(2025, 1, 14), "Moved")
        project = self.repository.get_project("P1")
        project.move_end_date(datetime(2025, 2, 7), 5)

        with self.repository.transaction():
            self.repository.save_task(task)
            self.repository.save_project(project)

        stored = self.repository.get_task("T1")
        self.assertEqual(stored.start_date, datetime(2025, 1, 13))
        self.assertEqual(stored.original_end_date, datetime(2025, 1, 7))
        self.assertEqual(stored.delay_reason, "Moved")
        self.assertEqual(stored.schedule_policy, "SECURE")
        stored_project = self.repository.get_project("P1")
        self.assertEqual(stored_project.end_date, datetime(2025, 2, 7))
        self.assertEqual(stored_project.original_end_date, datetime(2025, 1, 31))
        self.assertEqual(stored_project.delay_days, 5)

    def test_transaction_rolls_back(self):
        first = self.repository.get_task("T1")
        first.reschedule(datetime(2025, 1, 13), datetime(2025, 1, 14))
        second = self.repository.get_task("T2")
        second.reschedule(datetime(2025, 1, 15), datetime(2025, 1, 17))

        with self.assertRaises(RuntimeError):
            with self.repository.transaction():
                self.repository.save_task(first)
                self.repository.save_task(second)
                raise RuntimeError("write failed")

        self.assertEqual(self.repository.get_task("T1").start_date, datetime(2025, 1, 6))
        self.assertEqual(self.repository.get_task("T2").start_date, datetime(2025, 1, 8))

    def test_nested_transaction_rejected(self):
        with self.assertRaises(PersistenceError):
            with self.repository.transaction():
                with self.repository.transaction():
                    pass

    def test_load_snapshot(self):
        snapshot = self.repository.load_snapshot("P1")
        self.assertEqual(snapshot.project.id, "P1")
        self.assertEqual(sorted(snapshot.tasks), ["T1", "T2"])
        self.assertEqual(snapshot.users["bob"].max_hours_per_day, 6)


class InMemoryRepositoryTestCase(RepositoryContract, unittest.TestCase):
    def make_repository(self):
        project, tasks, users = sample_records()
        return InMemoryRepository([project], tasks, users)

    def test_commit_counter(self):
        with self.repository.transaction():
            self.repository.save_task(self.repository.get_task("T1"))
        self.assertEqual(self.repository.commits, 1)

    def test_staged_writes_invisible_until_commit(self):
        task = self.repository.get_task("T1")
        task.reschedule(datetime(2025, 1, 13), datetime(2025, 1, 14))
        with self.repository.transaction():
            self.repository.save_task(task)
            self.assertEqual(self.repository.get_task("T1").start_date, datetime(2025, 1, 6))
        self.assertEqual(self.repository.get_task("T1").start_date, datetime(2025, 1, 13))


class SQLiteRepositoryTestCase(RepositoryContract, unittest.TestCase):
    def make_repository(self):
        self.temp_dir = tempfile.mkdtemp()
        repository = SQLiteRepository(os.path.join(self.temp_dir, "db", "tasks.db"))
        project, tasks, users = sample_records()
        repository.save_project(project)
        for user in users:
            repository.add_user(user)
        for task in tasks:
            repository.save_task(task)
        return repository

    def tearDown(self):
        self.repository.close()
        shutil.rmtree(self.temp_dir)

    def test_data_survives_reopen(self):
        path = self.repository.database_path
        self.repository.close()
        self.repository = SQLiteRepository(path)
        task = self.repository.get_task("T1")
        self.assertEqual(task.dependents, ["T2"])
        self.assertEqual(task.end_date, datetime(2025, 1, 7))


if __name__ == "__main__":
    unittest.main()
