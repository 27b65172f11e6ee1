"""resticpilot: restic 백업 도구를 서브프로세스로 구동하는 파이썬 래퍼.

타입이 있는 옵션을 restic 명령줄로 변환하고, restic 의 JSON 이벤트
스트림을 콜백 또는 이벤트 목록으로 돌려준다.
"""

__version__ = "0.1.0"

from resticpilot.core.repository import Repository, create_repository, open_repository
from resticpilot.models.snapshot import Snapshot, SnapshotSummary
from resticpilot.restic.commands import Command
from resticpilot.restic.events import Observers
from resticpilot.restic.executor import (
    ResticCommandError,
    ResticError,
    ResticSpawnError,
    get_restic_version,
    is_restic_available,
)

__all__ = [
    "Command",
    "Observers",
    "Repository",
    "ResticCommandError",
    "ResticError",
    "ResticSpawnError",
    "Snapshot",
    "SnapshotSummary",
    "__version__",
    "create_repository",
    "get_restic_version",
    "is_restic_available",
    "open_repository",
]
