import matplotlib.pyplot as plt
import numpy as np
from matplotlib.lines import Line2D
from matplotlib.patches import Patch


def load_matrix(report):
    """
    Arrange a report's per-user loads as a matrix.

    Returns:
        tuple: (user IDs, days, array of shape (users, days)); a user with no
        sample on a day counts as 0%
    """
    days = [record.date for record in report.daily]
    user_ids = []
    for day in days:
        for sample in report.samples.get(day, []):
            if sample.user_id not in user_ids:
                user_ids.append(sample.user_id)

    matrix = np.zeros((len(user_ids), len(days)))
    for col, day in enumerate(days):
        for sample in report.samples.get(day, []):
            matrix[user_ids.index(sample.user_id), col] = sample.load_percent
    return user_ids, days, matrix


def create_workload_chart(report, filename=None, show=True, overload_threshold=80):
    """
    Chart the daily peak load of a WorkloadReport with bottleneck days highlighted.

    The upper panel shows the highest user load of each day, the lower
    panel a heatmap of every user's load.

    Args:
        report: The WorkloadReport to draw
        filename: Optional filename to save the chart
        show: Whether to display the chart (default: True)
        overload_threshold: Load percentage drawn as the threshold line

    Returns:
        The matplotlib figure
    """
    if not report.daily:
        print("Report has no days to chart.")
        return None

    user_ids, days, matrix = load_matrix(report)
    x = np.arange(len(days))
    peak = np.array([record.max_load_percent for record in report.daily])
    colors = ["red" if record.is_bottleneck else "steelblue" for record in report.daily]

    fig, (ax_load, ax_users) = plt.subplots(
        2, 1, figsize=(14, 8), sharex=True, gridspec_kw={"height_ratios": [2, 1]}
    )

    ax_load.bar(x, peak, color=colors, edgecolor="black", linewidth=0.5)
    ax_load.axhline(overload_threshold, color="orange", linestyle="--", lw=1.5)
    ax_load.axhline(100, color="red", linestyle=":", lw=1)
    ax_load.set_ylabel("Peak load (%)")
    ax_load.set_ylim(0, max(110, float(peak.max()) * 1.1))
    ax_load.set_title(
        f"Workload {report.start_date:%Y-%m-%d} to {report.end_date:%Y-%m-%d} "
        f"(average {report.average_load:.0f}%, max {report.max_load}%)",
        fontsize=14,
    )

    legend_elements = [
        Patch(facecolor="steelblue", edgecolor="black", label="Peak load"),
        Patch(facecolor="red", edgecolor="black", label="Bottleneck day"),
        Line2D([0], [0], color="orange", linestyle="--", lw=1.5, label="Overload threshold"),
        Line2D([0], [0], color="red", linestyle=":", lw=1, label="Full capacity"),
    ]
    ax_load.legend(handles=legend_elements, loc="upper right", fontsize=9)

    if user_ids:
        image = ax_users.imshow(
            matrix, aspect="auto", cmap="RdYlGn_r", vmin=0, vmax=max(100, matrix.max())
        )
        ax_users.set_yticks(np.arange(len(user_ids)))
        ax_users.set_yticklabels([str(u) for u in user_ids])
        fig.colorbar(image, ax=ax_users, label="Load (%)")
    ax_users.set_ylabel("User")

    step = max(1, len(days) // 15)
    ax_users.set_xticks(x[::step])
    ax_users.set_xticklabels([d.strftime("%m-%d") for d in days[::step]], rotation=45)

    plt.tight_layout()

    if filename:
        plt.savefig(filename, dpi=300, bbox_inches="tight")

    if show:
        plt.show()

    return fig
