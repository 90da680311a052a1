from datetime import datetime

from taskplan.config import SchedulerConfig
from taskplan.domain.project import Project
from taskplan.domain.task import Task
from taskplan.domain.user import User
from taskplan.persistence.repository import InMemoryRepository
from taskplan.services.dependency_graph import DependencyGraph
from taskplan.services.engine import RescheduleService
from taskplan.services.notifications import CollectingNotificationSink
from taskplan.visualization.network import create_network_diagram
from taskplan.visualization.workload_chart import create_workload_chart

PROJECT_ID = "P1"
TODAY = datetime(2025, 4, 7)


def create_sample_repository():
    # Define users
    users = [
        User("alice", "Alice", max_hours_per_day=8),
        User("bob", "Bob", max_hours_per_day=8),
        User("carol", "Carol", max_hours_per_day=6),
    ]

    project = Project(
        PROJECT_ID,
        "Website relaunch",
        start_date=datetime(2025, 4, 7),
        end_date=datetime(2025, 4, 28),
    )

    def connected(task_id, title, policy, assignee, start, end, hours, priority, deps=None):
        return Task(
            task_id,
            title,
            priority=priority,
            start_date=start,
            end_date=end,
            estimated_finish_date=end,
            estimated_hours=hours,
            task_type="CONNECTED",
            schedule_policy=policy,
            dependencies=deps,
            assignee_id=assignee,
            project_id=PROJECT_ID,
        )

    tasks = [
        connected("T1", "Requirements", "SECURE", "alice",
                  datetime(2025, 4, 7), datetime(2025, 4, 9), 24, "HIGH"),
        connected("T2", "Design", "STANDARD", "bob",
                  datetime(2025, 4, 10), datetime(2025, 4, 15), 32, "HIGH", ["T1"]),
        connected("T3", "Build API", "AUTO", "alice",
                  datetime(2025, 4, 16), datetime(2025, 4, 23), 48, "URGENT", ["T2"]),
        connected("T4", "Build UI", "STANDARD", "carol",
                  datetime(2025, 4, 16), datetime(2025, 4, 22), 30, "MEDIUM", ["T2"]),
        connected("T5", "Integration tests", "STANDARD", "bob",
                  datetime(2025, 4, 24), datetime(2025, 4, 28), 24, "HIGH", ["T3", "T4"]),
        Task("T6", "User docs", priority="LOW", start_date=datetime(2025, 4, 14),
             end_date=datetime(2025, 4, 18), estimated_hours=16,
             assignee_id="carol", project_id=PROJECT_ID),
        Task("T7", "Release notes", priority="LOW", estimated_hours=8,
             project_id=PROJECT_ID),
    ]

    # Fill in the dependents lists from the dependencies
    DependencyGraph(tasks).sync_edges()

    return InMemoryRepository([project], tasks, users)


def create_sample_project(output=None, show=False, reschedule_type=None, delay_days=0):
    """
    Run the sample project: complete the first task two days late, print
    the propagated changes and a workload report.

    Returns:
        tuple: (service, report)
    """
    repository = create_sample_repository()
    notifier = CollectingNotificationSink()
    service = RescheduleService(
        repository, notifier, SchedulerConfig(), clock=lambda: TODAY
    )

    validation = service.validate_dependencies(PROJECT_ID)
    print("Task Reschedule Report")
    print("======================")
    print(f"Dependency graph: {'ok' if validation.ok else validation.errors}")

    update = service.complete_task({"taskId": "T1", "actualFinishDate": "2025-04-11"})
    print(f"\nCompleted T1, policy {update['strategyUsed']}")
    for change in update["scheduleChanges"]:
        print(
            f"  {change['taskId']}: {change['newStartDate']:%Y-%m-%d}..{change['newEndDate']:%Y-%m-%d}"
            f" ({change['impactDays']:+d} days) {change['reason']}"
        )
    print(f"Critical path: {' -> '.join(update['visualizationData']['criticalPath'])}")

    if reschedule_type:
        result = service.reschedule_project(
            {"projectId": PROJECT_ID, "rescheduleType": reschedule_type, "delayDays": delay_days}
        )
        print(
            f"\nBulk reschedule ({result['strategyUsed']}): {result['affectedTasks']} tasks, "
            f"project ends {result['newProjectEndDate']:%Y-%m-%d}"
        )

    report = service.workload_report(PROJECT_ID, datetime(2025, 4, 7), datetime(2025, 5, 9))
    print(f"\nWorkload {report.start_date:%Y-%m-%d} to {report.end_date:%Y-%m-%d}")
    print(f"  Average load: {report.average_load:.1f}%")
    print(f"  Max load: {report.max_load}%")
    print(f"  Bottleneck days: {', '.join(d.strftime('%m-%d') for d in report.bottleneck_days) or 'none'}")
    for user_id, summary in report.user_summary().items():
        print(
            f"  {user_id}: average {summary['average_load']:.0f}%, peak {summary['peak_load']}%"
        )

    print(f"\nNotifications: {len(notifier.sent)}")
    for notification in notifier.sent:
        print(f"  -> {notification.recipient_id}: {notification.message}")

    if output:
        snapshot = repository.load_snapshot(PROJECT_ID)
        data = DependencyGraph(snapshot.tasks).visualization()
        create_network_diagram(data, f"{output}_network.png", show=show)
        create_workload_chart(report, f"{output}_workload.png", show=show)

    return service, report


if __name__ == "__main__":
    create_sample_project()
