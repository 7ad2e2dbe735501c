"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskResult, Job)
- task_scheduler.py: tick-based scheduler with advisory timeouts
- executor.py: bounded FIFO executor
- retry_queue.py: sequential queue that re-queues retryable failures
"""
