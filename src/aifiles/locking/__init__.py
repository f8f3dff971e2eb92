"""Process-level mutual exclusion per operating mode."""

from .errors import LockContentionError, format_uptime
from .guard import SingletonGuard, is_process_alive
from .models import LockArtifact, LockMode, LockStatus

__all__ = [
    "LockArtifact",
    "LockContentionError",
    "LockMode",
    "LockStatus",
    "SingletonGuard",
    "format_uptime",
    "is_process_alive",
]
