"""
Structured outcomes of backup runs.

Every caller (HTTP route, CLI command, scheduled job) consumes the same
BackupResult, so remote failures show up as fields here instead of
exceptions.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class StepResult:
    """Outcome of one step of a run (upload, local or remote cleanup)."""

    ok: bool
    message: str
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {'ok': self.ok, 'message': self.message, 'count': self.count}


@dataclass
class BackupResult:
    """Outcome of a whole run."""

    success: bool
    message: str
    filename: Optional[str] = None
    size_bytes: Optional[int] = None
    upload: Optional[StepResult] = None
    local_cleanup: Optional[StepResult] = None
    remote_cleanup: Optional[StepResult] = None
    logs: List[str] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    def to_dict(self) -> Dict[str, Any]:
        def step(result):
            return result.to_dict() if result else None

        return {
            'status': 'success' if self.success else 'error',
            'success': self.success,
            'message': self.message,
            'exit_code': self.exit_code,
            'data': {
                'filename': self.filename,
                'size': self.size_bytes,
                'upload': step(self.upload),
                'local_cleanup': step(self.local_cleanup),
                'remote_cleanup': step(self.remote_cleanup),
            },
            'logs': self.logs,
        }
