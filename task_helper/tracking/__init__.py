"""Change tracking: persisted mtime baselines.

Exports:
- ChangeStore: lazily loaded baseline store with an end-of-target commit
"""

from task_helper.tracking.store import ChangeStore

__all__ = ["ChangeStore"]
