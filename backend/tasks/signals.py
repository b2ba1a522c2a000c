"""
Completion event and the scorer subscribed to it.

The task service sends ``task_completed`` exactly once per task, when it
enters Done. Scoring is the only subscriber shipped with the app.
"""

import logging

from django.dispatch import Signal, receiver

from .scoring import calculate_task_score


logger = logging.getLogger(__name__)

# Sent with ``task=<Task>`` after completed_at has been stored.
task_completed = Signal()


@receiver(task_completed, dispatch_uid='tasks.score_completed_task')
def score_completed_task(sender, task, **kwargs):
    """Compute the task's penalty score and store it on the record."""
    result = calculate_task_score(task.to_snapshot())
    task.score = result.final_score
    task.score_breakdown = result.breakdown.to_dict()
    task.save(update_fields=['score', 'score_breakdown', 'updated_at'])
    logger.info(
        "Scored task %s: %d (extension=%d, delay=%d, rework=%d)",
        task.pk,
        result.final_score,
        result.breakdown.extension_penalty,
        result.breakdown.delay_penalty,
        result.breakdown.rework_penalty,
    )
    return result
