"""restic 서브커맨드(verb) 열거형.

:func:`~resticpilot.restic.arguments.build_arguments` 가 명령줄의 두 번째
토큰으로 사용하는 값이다.
"""

from enum import Enum


class Command(Enum):
    """restic 이 지원하는 서브커맨드."""

    # 주요 작업
    BACKUP = "backup"
    SNAPSHOTS = "snapshots"
    RESTORE = "restore"
    FORGET = "forget"
    PRUNE = "prune"
    CHECK = "check"

    # 저장소 관리
    INIT = "init"
    UNLOCK = "unlock"
    REBUILD_INDEX = "rebuild-index"

    # 데이터 조회
    DIFF = "diff"
    FIND = "find"
    LS = "ls"
    MOUNT = "mount"
    CAT = "cat"

    # 유지보수
    CACHE = "cache"
    COPY = "copy"
    MIGRATE = "migrate"
    REPAIR = "repair"
    REWRITE = "rewrite"

    # 정보
    STATS = "stats"
    TAG = "tag"
    VERSION = "version"
    KEY = "key"

    # 기타
    SELF_UPDATE = "self-update"
    GENERATE = "generate"

    @property
    def mutates_snapshots(self) -> bool:
        """실행 후 스냅샷 목록이 바뀔 수 있는 명령인지 여부."""
        return self in (Command.BACKUP, Command.FORGET, Command.PRUNE, Command.TAG)
