import unittest
from datetime import datetime

from taskplan.domain.errors import NotFoundError, ValidationError
from taskplan.domain.project import Project, ProjectError, ProjectSnapshot
from taskplan.domain.task import ScheduleChange, Task, TaskError
from taskplan.domain.user import User, UserError


class TaskTestCase(unittest.TestCase):
    def setUp(self):
        self.task = Task(
            "T1",
            "Write report",
            priority="HIGH",
            start_date=datetime(2025, 1, 6),
            end_date=datetime(2025, 1, 10),
            estimated_hours=40,
            task_type="CONNECTED",
            dependencies=["T0"],
            assignee_id="alice",
            project_id="P1",
        )

    def test_task_initialization(self):
        self.assertEqual(self.task.status, "TODO")
        self.assertEqual(self.task.priority, "HIGH")
        self.assertEqual(self.task.task_type, "CONNECTED")
        self.assertEqual(self.task.schedule_policy, "STANDARD")
        self.assertEqual(self.task.delay_days, 0)
        self.assertIsNone(self.task.original_end_date)
        self.assertTrue(self.task.is_connected())
        self.assertTrue(self.task.is_critical_priority())

    def test_invalid_values(self):
        with self.assertRaises(TaskError):
            Task(None, "No id")
        with self.assertRaises(TaskError):
            Task("T2", "")
        with self.assertRaises(TaskError):
            Task("T2", "Bad status", status="DONE")
        with self.assertRaises(TaskError):
            Task("T2", "Bad hours", estimated_hours=-1)
        with self.assertRaises(TaskError):
            Task("T2", "Backwards", start_date=datetime(2025, 1, 10), end_date=datetime(2025, 1, 6))
        # Task errors are validation errors
        with self.assertRaises(ValidationError):
            Task("T2", "Bad policy", schedule_policy="FAST")

    def test_is_active_and_overdue(self):
        self.assertTrue(self.task.is_active_on(datetime(2025, 1, 6)))
        self.assertTrue(self.task.is_active_on(datetime(2025, 1, 10, 18, 0)))
        self.assertFalse(self.task.is_active_on(datetime(2025, 1, 11)))
        self.assertTrue(self.task.is_overdue(datetime(2025, 1, 11)))
        self.assertFalse(self.task.is_overdue(datetime(2025, 1, 10)))

        self.task.complete_task(datetime(2025, 1, 12))
        self.assertFalse(self.task.is_overdue(datetime(2025, 1, 20)))
        self.assertEqual(self.task.actual_finish_date, datetime(2025, 1, 12))

        undated = Task("T3", "Someday")
        self.assertFalse(undated.is_active_on(datetime(2025, 1, 6)))
        self.assertFalse(undated.is_overdue(datetime(2030, 1, 1)))

    def test_reference_finish_date(self):
        self.assertEqual(self.task.reference_finish_date(), datetime(2025, 1, 10))
        self.task.estimated_finish_date = datetime(2025, 1, 9)
        self.assertEqual(self.task.reference_finish_date(), datetime(2025, 1, 9))

    def test_reschedule_records_original_end_once(self):
        change = self.task.reschedule(datetime(2025, 1, 8), datetime(2025, 1, 14), "Late input")
        self.assertIsInstance(change, ScheduleChange)
        self.assertEqual(change.impact_days, 4)
        self.assertEqual(change.old_end_date, datetime(2025, 1, 10))
        self.assertEqual(self.task.original_end_date, datetime(2025, 1, 10))
        self.assertEqual(self.task.delay_days, 4)
        self.assertEqual(self.task.delay_reason, "Late input")

        change = self.task.reschedule(datetime(2025, 1, 6), datetime(2025, 1, 12), "Pulled in")
        self.assertEqual(change.impact_days, -2)
        self.assertEqual(self.task.original_end_date, datetime(2025, 1, 10))
        # Moving earlier does not reduce accumulated delay
        self.assertEqual(self.task.delay_days, 4)

    def test_reschedule_rejects_backwards_span(self):
        with self.assertRaises(TaskError):
            self.task.reschedule(datetime(2025, 1, 10), datetime(2025, 1, 6))

    def test_schedule_change_to_dict(self):
        change = self.task.reschedule(datetime(2025, 1, 7), datetime(2025, 1, 13), "Shift")
        data = change.to_dict()
        self.assertEqual(data["taskId"], "T1")
        self.assertEqual(data["oldStartDate"], datetime(2025, 1, 6))
        self.assertEqual(data["newEndDate"], datetime(2025, 1, 13))
        self.assertEqual(data["impactDays"], 3)
        self.assertEqual(data["reason"], "Shift")

    def test_copy_is_independent(self):
        copy = self.task.copy()
        copy.dependencies.append("T9")
        copy.reschedule(datetime(2025, 2, 3), datetime(2025, 2, 7))
        self.assertEqual(self.task.dependencies, ["T0"])
        self.assertEqual(self.task.start_date, datetime(2025, 1, 6))
        self.assertEqual(copy.project_id, "P1")

    def test_from_dict_keeps_derived_fields(self):
        self.task.workload_percentage = 90
        self.task.is_bottleneck = True
        self.task.reschedule(datetime(2025, 1, 7), datetime(2025, 1, 13), "Shift")
        restored = Task.from_dict(self.task.to_dict())
        self.assertEqual(restored.workload_percentage, 90)
        self.assertTrue(restored.is_bottleneck)
        self.assertEqual(restored.original_end_date, datetime(2025, 1, 10))
        self.assertEqual(restored.delay_reason, "Shift")
        self.assertIsNone(restored.to_dict()["schedule_policy"])


class UserTestCase(unittest.TestCase):
    def test_user_defaults(self):
        user = User("alice")
        self.assertEqual(user.name, "alice")
        self.assertEqual(user.max_hours_per_day, 8)
        self.assertTrue(user.is_working_day(datetime(2025, 1, 6)))
        self.assertFalse(user.is_working_day(datetime(2025, 1, 11)))

    def test_invalid_user(self):
        with self.assertRaises(UserError):
            User(None)
        with self.assertRaises(UserError):
            User("bob", max_hours_per_day=0)
        with self.assertRaises(UserError):
            User("bob", working_weekdays=[7])

    def test_round_trip(self):
        user = User("carol", "Carol", max_hours_per_day=6, working_weekdays=[0, 1, 2])
        restored = User.from_dict(user.to_dict())
        self.assertEqual(restored.working_weekdays, frozenset([0, 1, 2]))
        self.assertEqual(restored.max_hours_per_day, 6)


class ProjectTestCase(unittest.TestCase):
    def setUp(self):
        self.project = Project(
            "P1", "Relaunch", start_date=datetime(2025, 1, 6), end_date=datetime(2025, 1, 31)
        )

    def test_move_end_date(self):
        self.project.move_end_date(datetime(2025, 2, 7), delay_days=5)
        self.assertEqual(self.project.end_date, datetime(2025, 2, 7))
        self.assertEqual(self.project.original_end_date, datetime(2025, 1, 31))
        self.assertEqual(self.project.delay_days, 5)

        self.project.move_end_date(datetime(2025, 2, 14), delay_days=2)
        self.assertEqual(self.project.original_end_date, datetime(2025, 1, 31))
        self.assertEqual(self.project.delay_days, 5)

    def test_invalid_project(self):
        with self.assertRaises(ProjectError):
            Project(None)
        with self.assertRaises(ProjectError):
            Project("P2", delay_days=-1)
        with self.assertRaises(ProjectError):
            Project("P2", start_date=datetime(2025, 2, 1), end_date=datetime(2025, 1, 1))

    def test_snapshot_copy_is_independent(self):
        tasks = [
            Task("T1", "First", start_date=datetime(2025, 1, 6), end_date=datetime(2025, 1, 7)),
            Task("T2", "Second", status="COMPLETED"),
        ]
        snapshot = ProjectSnapshot(self.project, tasks, [User("alice")])
        copy = snapshot.copy()
        copy.tasks["T1"].reschedule(datetime(2025, 1, 8), datetime(2025, 1, 9))
        copy.project.move_end_date(datetime(2025, 3, 1))

        self.assertEqual(snapshot.tasks["T1"].start_date, datetime(2025, 1, 6))
        self.assertEqual(snapshot.project.end_date, datetime(2025, 1, 31))
        self.assertEqual([t.id for t in snapshot.incomplete_tasks()], ["T1"])
        self.assertIs(copy.users["alice"], snapshot.users["alice"])

        with self.assertRaises(NotFoundError):
            snapshot.get_task("T9")


if __name__ == "__main__":
    unittest.main()
