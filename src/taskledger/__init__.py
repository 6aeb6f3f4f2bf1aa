"""
taskledger: a durable ledger of task executions.

Records the lifecycle of independently launched tasks in a shared
relational database, correlates them with the batch jobs they run, and
enforces single-instance execution per task name.
"""

__version__ = "0.1.0"
