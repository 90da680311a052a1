import unittest
from datetime import datetime

from taskplan.domain.errors import ValidationError
from taskplan.domain.project import Project, ProjectSnapshot
from taskplan.domain.task import Task
from taskplan.services.bulk import STRATEGIES, BulkRescheduler


class BulkReschedulerTestCase(unittest.TestCase):
    def setUp(self):
        self.today = datetime(2025, 1, 6)  # Monday
        self.project = Project(
            "P1", start_date=datetime(2024, 12, 2), end_date=datetime(2024, 12, 9)
        )
        self.tasks = [
            # Two working days
            Task(
                "T1", "Plan", priority="HIGH",
                start_date=datetime(2024, 12, 2), end_date=datetime(2024, 12, 3),
                assignee_id="alice", project_id="P1",
            ),
            # Three working days
            Task(
                "T2", "Build", priority="MEDIUM",
                start_date=datetime(2024, 12, 4), end_date=datetime(2024, 12, 6),
                assignee_id="bob", project_id="P1",
            ),
            # Undated, one day of estimated work
            Task(
                "T3", "Ship", priority="URGENT", estimated_hours=8,
                assignee_id="alice", project_id="P1",
            ),
            Task(
                "T0", "Kickoff", status="COMPLETED",
                start_date=datetime(2024, 11, 25), end_date=datetime(2024, 11, 26),
                project_id="P1",
            ),
        ]
        self.snapshot = ProjectSnapshot(self.project, self.tasks)

    def run_type(self, reschedule_type, delay_days=0):
        return BulkRescheduler(self.snapshot, self.today).run(reschedule_type, delay_days)

    def test_registry(self):
        self.assertEqual(sorted(STRATEGIES), ["auto", "critical", "parallel", "sequential"])

    def test_task_duration(self):
        planner = BulkRescheduler(self.snapshot, self.today)
        self.assertEqual(planner.task_duration(self.tasks[0]), 2)
        self.assertEqual(planner.task_duration(self.tasks[1]), 3)
        self.assertEqual(planner.task_duration(self.tasks[2]), 1)
        self.assertEqual(planner.task_duration(Task("T9", "Unknown")), 1)
        self.assertEqual(planner.task_duration(Task("T9", "Long", estimated_hours=20)), 3)

    def test_sequential(self):
        result = self.run_type("sequential")
        tasks = result.snapshot.tasks

        self.assertEqual(result.affected_tasks, 3)
        self.assertEqual((tasks["T1"].start_date, tasks["T1"].end_date),
                         (datetime(2025, 1, 6), datetime(2025, 1, 8)))
        self.assertEqual((tasks["T2"].start_date, tasks["T2"].end_date),
                         (datetime(2025, 1, 9), datetime(2025, 1, 14)))
        self.assertEqual((tasks["T3"].start_date, tasks["T3"].end_date),
                         (datetime(2025, 1, 15), datetime(2025, 1, 16)))
        # The project ends at the cursor after the last task
        self.assertEqual(result.new_end_date, datetime(2025, 1, 17))
        self.assertEqual(result.snapshot.project.original_end_date, datetime(2024, 12, 9))

        # Completed tasks are never moved
        self.assertEqual(tasks["T0"].start_date, datetime(2024, 11, 25))

    def test_sequential_with_delay(self):
        result = self.run_type("sequential", 2)
        tasks = result.snapshot.tasks
        self.assertEqual(tasks["T1"].start_date, datetime(2025, 1, 8))
        self.assertEqual(tasks["T1"].end_date, datetime(2025, 1, 10))
        self.assertEqual(result.delay_days, 2)
        self.assertEqual(result.snapshot.project.delay_days, 2)

    def test_parallel_lanes_per_assignee(self):
        self.tasks.append(
            Task(
                "U", "Unowned", start_date=datetime(2025, 1, 6),
                end_date=datetime(2025, 1, 7), project_id="P1",
            )
        )
        self.snapshot = ProjectSnapshot(self.project, self.tasks)

        result = self.run_type("parallel")
        tasks = result.snapshot.tasks

        # Unassigned tasks are left where they are
        self.assertEqual(result.affected_tasks, 3)
        self.assertEqual((tasks["U"].start_date, tasks["U"].end_date),
                         (datetime(2025, 1, 6), datetime(2025, 1, 7)))
        self.assertNotIn("U", [change.task_id for change in result.changes])

        self.assertEqual(tasks["T1"].start_date, datetime(2025, 1, 6))
        self.assertEqual(tasks["T2"].start_date, datetime(2025, 1, 6))
        self.assertEqual(tasks["T2"].end_date, datetime(2025, 1, 9))
        self.assertEqual((tasks["T3"].start_date, tasks["T3"].end_date),
                         (datetime(2025, 1, 9), datetime(2025, 1, 10)))
        self.assertEqual(result.new_end_date, datetime(2025, 1, 10))

    def test_critical_only_moves_high_and_urgent(self):
        result = self.run_type("critical")
        tasks = result.snapshot.tasks

        self.assertEqual(result.affected_tasks, 2)
        self.assertEqual(tasks["T1"].start_date, datetime(2025, 1, 6))
        self.assertEqual(tasks["T3"].start_date, datetime(2025, 1, 9))
        self.assertEqual(tasks["T2"].start_date, datetime(2024, 12, 4))
        self.assertEqual(tasks["T2"].end_date, datetime(2024, 12, 6))
        self.assertEqual(result.new_end_date, datetime(2025, 1, 10))

    def test_critical_without_critical_tasks_keeps_end(self):
        for task in self.tasks:
            task.priority = "LOW"
        result = self.run_type("critical", 3)
        self.assertEqual(result.affected_tasks, 0)
        self.assertEqual(result.new_end_date, datetime(2024, 12, 9))
        self.assertEqual(result.snapshot.project.delay_days, 3)

    def test_auto_mostly_overdue_goes_sequential(self):
        # Without the completed task, 2 of 3 tasks are overdue
        self.tasks.pop()
        self.snapshot = ProjectSnapshot(self.project, self.tasks)

        result = self.run_type("auto")
        self.assertEqual(result.strategy_used, "sequential")
        # Largest slip: T1 ended 2024-12-03, 34 days before today
        self.assertEqual(result.delay_days, 34)
        t1 = result.snapshot.tasks["T1"]
        # The cursor may land on a weekend day
        self.assertEqual(t1.start_date, datetime(2025, 2, 9))
        self.assertEqual(t1.end_date, datetime(2025, 2, 11))

    def test_auto_some_overdue_goes_parallel(self):
        result = self.run_type("auto")
        self.assertEqual(result.strategy_used, "parallel")
        self.assertEqual(result.delay_days, 34)
        self.assertEqual(result.to_dict()["rescheduleType"], "auto")

    def test_task_ending_today_is_not_overdue(self):
        task = Task("T9", "Today", start_date=datetime(2025, 1, 2), end_date=self.today)
        self.assertFalse(task.is_overdue(datetime(2025, 1, 6, 17, 30)))
        self.assertTrue(task.is_overdue(datetime(2025, 1, 7, 0, 5)))

        # One day after the end date is a slip of one day
        self.tasks = [task]
        self.snapshot = ProjectSnapshot(self.project, self.tasks)
        result = BulkRescheduler(self.snapshot, datetime(2025, 1, 7, 9, 0)).run("auto")
        self.assertEqual(result.delay_days, 1)

    def test_auto_nothing_overdue(self):
        result = BulkRescheduler(self.snapshot, datetime(2024, 11, 1)).run("auto")
        self.assertEqual(result.strategy_used, "parallel")
        self.assertEqual(result.delay_days, 0)

    def test_input_snapshot_untouched(self):
        self.run_type("sequential")
        self.assertEqual(self.snapshot.tasks["T1"].start_date, datetime(2024, 12, 2))
        self.assertEqual(self.snapshot.project.end_date, datetime(2024, 12, 9))

    def test_result_to_dict(self):
        data = self.run_type("sequential").to_dict()
        self.assertEqual(
            data,
            {
                "success": True,
                "rescheduleType": "sequential",
                "strategyUsed": "sequential",
                "affectedTasks": 3,
                "newProjectEndDate": datetime(2025, 1, 17),
                "delayDays": 0,
            },
        )

    def test_invalid_arguments(self):
        planner = BulkRescheduler(self.snapshot, self.today)
        with self.assertRaises(ValidationError):
            planner.run("random")
        with self.assertRaises(ValidationError):
            planner.run("sequential", -1)
        with self.assertRaises(ValidationError):
            planner.run("sequential", "2")
        with self.assertRaises(ValidationError):
            BulkRescheduler(ProjectSnapshot(None, self.tasks), self.today)


if __name__ == "__main__":
    unittest.main()
