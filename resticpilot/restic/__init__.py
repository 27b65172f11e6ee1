"""restic 서브프로세스 계층.

명령줄 빌드(:mod:`.arguments`), 출력 라인 분류(:mod:`.events`),
프로세스 실행(:mod:`.executor`)을 담당한다.
"""

from resticpilot.restic.arguments import (
    RequestOptions,
    build_arguments,
    build_env,
    escape_path,
    render_command,
)
from resticpilot.restic.commands import Command
from resticpilot.restic.events import (
    ErrorEvent,
    Observers,
    ResticEvent,
    StatusEvent,
    SummaryEvent,
    TextLine,
    UnknownEvent,
    VerboseStatusEvent,
    classify_line,
    parse_output,
)
from resticpilot.restic.executor import (
    SPAWN_FAILURE_EXIT_CODE,
    Outcome,
    ProcessSession,
    ResticCommandError,
    ResticError,
    ResticExecutor,
    ResticSpawnError,
    SessionState,
)

__all__ = [
    "SPAWN_FAILURE_EXIT_CODE",
    "Command",
    "ErrorEvent",
    "Observers",
    "Outcome",
    "ProcessSession",
    "RequestOptions",
    "ResticCommandError",
    "ResticError",
    "ResticEvent",
    "ResticExecutor",
    "ResticSpawnError",
    "SessionState",
    "StatusEvent",
    "SummaryEvent",
    "TextLine",
    "UnknownEvent",
    "VerboseStatusEvent",
    "build_arguments",
    "build_env",
    "classify_line",
    "escape_path",
    "parse_output",
    "render_command",
]
