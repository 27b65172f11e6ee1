"""restic 저장소 파사드.

:class:`Repository` 는 restic 서브커맨드마다 메서드 하나를 제공한다.
각 메서드는 옵션을 인자 목록으로 변환해 :class:`ResticExecutor` 로 실행하고,
결과를 호출자가 기대하는 형태로 돌려준다.

반환 형태:
    - 콜백(``observers``) 없음: 이벤트 목록 (블로킹)
    - 콜백 있음: 이벤트 목록으로 확정되는 ``Future`` (논블로킹)

스냅샷을 바꾸는 명령(backup, forget, prune, tag, 스냅샷 삭제) 후에는
스냅샷 목록을 항상 다시 읽는다. 이 재조회는 원래 명령과 원자적이지 않다.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future

from resticpilot.models.options import (
    BackupOptions,
    CheckOptions,
    DiffOptions,
    FindOptions,
    ForgetOptions,
    InitOptions,
    ListOptions,
    MountOptions,
    PruneOptions,
    RepositoryOptions,
    RestoreOptions,
    StatsOptions,
    TagOptions,
)
from resticpilot.models.snapshot import Snapshot
from resticpilot.restic.arguments import RequestOptions, quote_argument
from resticpilot.restic.commands import Command
from resticpilot.restic.events import Observers, ResticEvent
from resticpilot.restic.executor import ResticExecutor

logger = logging.getLogger(__name__)

RequestResult = list[ResticEvent] | Future[list[ResticEvent]]


def _snapshot_records(events: list[ResticEvent]) -> list[dict]:
    """``snapshots --json`` 출력에서 스냅샷 레코드만 추출한다.

    restic 은 스냅샷 배열 하나를 한 줄로 출력한다.
    """
    records: list[dict] = []
    for event in events:
        payload = event.data
        if isinstance(payload, list):
            records.extend(item for item in payload if isinstance(item, dict))
        elif isinstance(payload, dict) and "id" in payload:
            records.append(payload)
    return records


class Repository:
    """restic 저장소 하나에 대한 작업 파사드."""

    def __init__(
        self,
        options: RepositoryOptions | str,
        password: str | None = None,
        password_file: str | None = None,
        executor: ResticExecutor | None = None,
    ) -> None:
        """
        초기화.

        Args:
            options: 저장소 옵션 또는 저장소 경로
            password: 경로로 생성할 때의 비밀번호
            password_file: 경로로 생성할 때의 비밀번호 파일
            executor: restic 실행기 (None 이면 기본 ``restic``)
        """
        if isinstance(options, str):
            options = RepositoryOptions(
                path=options,
                password=password,
                password_file=password_file,
            )
        self.options = options
        self.executor = executor or ResticExecutor()
        self._snapshots: list[Snapshot] = []
        self._snapshots_lock = threading.Lock()

    @property
    def path(self) -> str:
        """저장소 경로."""
        return self.options.path

    def _build_request(
        self,
        command: Command,
        arguments: list[str] | None = None,
        observers: Observers | None = None,
    ) -> RequestOptions:
        return RequestOptions(
            command=command,
            repository=self.options.path,
            password=self.options.password,
            password_file=self.options.password_file,
            key_hint=self.options.key_hint,
            no_cache=self.options.no_cache,
            cache_dir=self.options.cache_dir,
            no_lock=self.options.no_lock,
            verbosity=self.options.verbosity,
            options=self.options.options,
            arguments=tuple(arguments or ()),
            observers=observers,
        )

    def _request(
        self,
        command: Command,
        arguments: list[str] | None = None,
        observers: Observers | None = None,
    ) -> RequestResult:
        """명령을 실행하고, 스냅샷을 바꾸는 명령이면 목록을 다시 읽는다."""
        request = self._build_request(command, arguments, observers)
        result = self.executor.request(request)

        if not command.mutates_snapshots:
            return result

        if isinstance(result, Future):
            return self._reload_after(result)

        self.load_snapshots()
        return result

    def _reload_after(self, inner: Future[list[ResticEvent]]) -> Future[list[ResticEvent]]:
        """내부 Future 완료 후 스냅샷을 다시 읽고 외부 Future 를 확정한다."""
        outer: Future[list[ResticEvent]] = Future()
        outer.set_running_or_notify_cancel()

        def _on_done(done: Future[list[ResticEvent]]) -> None:
            error = done.exception()
            if error is not None:
                outer.set_exception(error)
                return
            try:
                self.load_snapshots()
            except Exception as e:
                outer.set_exception(e)
                return
            outer.set_result(done.result())

        inner.add_done_callback(_on_done)
        return outer

    def _platform(self) -> str | None:
        return self.executor.platform

    def init(self, options: InitOptions | None = None, observers: Observers | None = None) -> RequestResult:
        """저장소 초기화."""
        options = options or InitOptions()
        return self._request(Command.INIT, options.to_arguments(self._platform()), observers)

    def load_snapshots(self) -> list[Snapshot]:
        """
        저장소에서 스냅샷 목록을 읽어 캐시를 교체한다.

        Raises:
            ResticError: restic 실행 실패 (캐시는 변경되지 않음)
        """
        events = self.executor.run(self._build_request(Command.SNAPSHOTS))
        snapshots = [Snapshot.from_json(record) for record in _snapshot_records(events)]
        with self._snapshots_lock:
            self._snapshots = snapshots
        logger.debug("Loaded %d snapshots from %s", len(snapshots), self.path)
        return list(snapshots)

    def get_snapshots(self, reload: bool = False) -> list[Snapshot]:
        """캐시된 스냅샷 목록 (비어 있거나 ``reload`` 면 다시 읽음)."""
        with self._snapshots_lock:
            cached = list(self._snapshots)
        if reload or not cached:
            return self.load_snapshots()
        return cached

    def get_snapshot(self, snapshot_id: str, reload: bool = False) -> Snapshot | None:
        """전체 ID 또는 축약 ID 로 스냅샷 조회."""
        for snapshot in self.get_snapshots(reload):
            if snapshot.matches(snapshot_id):
                return snapshot
        return None

    def backup(self, options: BackupOptions, observers: Observers | None = None) -> RequestResult:
        """백업 생성."""
        return self._request(Command.BACKUP, options.to_arguments(self._platform()), observers)

    def restore(self, options: RestoreOptions, observers: Observers | None = None) -> RequestResult:
        """스냅샷 복원."""
        return self._request(Command.RESTORE, options.to_arguments(self._platform()), observers)

    def delete_snapshot(self, snapshot_id: str, prune: bool = False) -> list[ResticEvent]:
        """
        스냅샷 하나를 삭제한다.

        Args:
            snapshot_id: 삭제할 스냅샷 ID
            prune: 삭제 후 prune 실행 여부
        """
        if not snapshot_id:
            raise ValueError("snapshot_id is required")
        forget = self._build_request(Command.FORGET, [quote_argument(snapshot_id, self._platform())])
        result = self.executor.run(forget)
        if prune:
            self.executor.run(self._build_request(Command.PRUNE))
        self.load_snapshots()
        return result

    def delete_all_snapshots(self, prune: bool = False) -> list[list[ResticEvent]]:
        """저장소의 모든 스냅샷을 삭제한다."""
        results = [self.delete_snapshot(snapshot.id) for snapshot in self.load_snapshots()]
        if prune:
            self.prune()
        return results

    def forget(self, options: ForgetOptions, observers: Observers | None = None) -> RequestResult:
        """ID 또는 보존 정책으로 스냅샷 삭제."""
        return self._request(Command.FORGET, options.to_arguments(self._platform()), observers)

    def prune(self, options: PruneOptions | None = None, observers: Observers | None = None) -> RequestResult:
        """참조되지 않는 데이터 정리."""
        options = options or PruneOptions()
        return self._request(Command.PRUNE, options.to_arguments(self._platform()), observers)

    def check(self, options: CheckOptions | None = None, observers: Observers | None = None) -> RequestResult:
        """저장소 무결성 검사."""
        options = options or CheckOptions()
        return self._request(Command.CHECK, options.to_arguments(self._platform()), observers)

    def list_files(self, options: ListOptions, observers: Observers | None = None) -> RequestResult:
        """스냅샷 내 파일 목록."""
        return self._request(Command.LS, options.to_arguments(self._platform()), observers)

    def find_files(self, options: FindOptions, observers: Observers | None = None) -> RequestResult:
        """스냅샷에서 파일 검색."""
        return self._request(Command.FIND, options.to_arguments(self._platform()), observers)

    def get_stats(self, options: StatsOptions | None = None, observers: Observers | None = None) -> RequestResult:
        """저장소 통계."""
        options = options or StatsOptions()
        return self._request(Command.STATS, options.to_arguments(self._platform()), observers)

    def update_tags(self, options: TagOptions, observers: Observers | None = None) -> RequestResult:
        """스냅샷 태그 변경."""
        return self._request(Command.TAG, options.to_arguments(self._platform()), observers)

    def mount(self, options: MountOptions, observers: Observers | None = None) -> RequestResult:
        """저장소를 FUSE 로 마운트한다 (언마운트될 때까지 실행)."""
        return self._request(Command.MOUNT, options.to_arguments(self._platform()), observers)

    def diff(self, options: DiffOptions, observers: Observers | None = None) -> RequestResult:
        """두 스냅샷 비교."""
        return self._request(Command.DIFF, options.to_arguments(self._platform()), observers)

    def unlock(self, observers: Observers | None = None) -> RequestResult:
        """오래된 잠금 해제."""
        return self._request(Command.UNLOCK, observers=observers)

    def rebuild_index(self, observers: Observers | None = None) -> RequestResult:
        """인덱스 재구성."""
        return self._request(Command.REBUILD_INDEX, observers=observers)


def create_repository(
    path: str,
    password: str | None = None,
    password_file: str | None = None,
    options: InitOptions | None = None,
    executor: ResticExecutor | None = None,
) -> Repository:
    """새 저장소를 초기화하고 :class:`Repository` 를 반환한다."""
    repository = Repository(path, password=password, password_file=password_file, executor=executor)
    repository.init(options)
    return repository


def open_repository(
    path: str,
    password: str | None = None,
    password_file: str | None = None,
    executor: ResticExecutor | None = None,
) -> Repository:
    """기존 저장소를 열고 스냅샷 목록을 미리 읽는다."""
    repository = Repository(path, password=password, password_file=password_file, executor=executor)
    repository.load_snapshots()
    return repository
