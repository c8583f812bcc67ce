"""
Task subsystem.

Components:
- task_models.py: TaskScope, payload normalization, date helper
- synchronizer.py: cached-first task list loading and reconciliation
"""
