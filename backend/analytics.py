import math
from collections import Counter

from models import BoardStats, Task

STATUSES = ("todo", "in_progress", "done")
PRIORITIES = ("high", "medium", "low")
TOP_TAGS_LIMIT = 8


def compute_board_stats(tasks: list[Task]) -> BoardStats:
    """Aggregate the numbers shown on the dashboard, analytics and time views."""
    status_counts = {status: 0 for status in STATUSES}
    priority_counts = {priority: 0 for priority in PRIORITIES}
    estimate_by_status = {status: 0 for status in STATUSES}
    tag_counts = Counter()

    for task in tasks:
        status_counts[task.status] += 1
        priority_counts[task.priority] += 1
        estimate_by_status[task.status] += task.time_estimate or 0
        tag_counts.update(task.tags or [])

    # Halves round up
    completion_rate = math.floor(status_counts["done"] / len(tasks) * 100 + 0.5) if tasks else 0

    return BoardStats(
        status_counts=status_counts,
        priority_counts=priority_counts,
        high_priority=priority_counts["high"],
        completion_rate=completion_rate,
        total_estimate=sum(estimate_by_status.values()),
        estimate_by_status=estimate_by_status,
        # most_common keeps first-seen order among equal counts
        top_tags=tag_counts.most_common(TOP_TAGS_LIMIT),
    )
