"""Activities, tasks and notes.

Provides the Activity and Note models, their schemas, ActivityRepository,
and categorize_tasks for splitting open tasks into overdue, today and
upcoming groups.
"""
