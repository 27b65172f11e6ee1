"""restic 서브프로세스 실행기.

:class:`RequestOptions` 로 명령줄을 구성하고 restic 을 서브프로세스로 실행한다.
stdout/stderr 를 동시에 읽어 라인 단위로 분류하고, 종료 후 결과를
:class:`Outcome` 하나로 확정한다. 실패 시 :class:`ResticError` 를 raise 한다.

실행 모드:
    - 블로킹 (``ProcessSession.run``): 콜백이 없을 때. 종료까지 대기 후
      stdout 전체를 파싱해 이벤트 목록을 반환한다.
    - 스트리밍 (``ProcessSession.start``): 콜백이 있을 때. 출력이 도착하는 대로
      콜백을 호출하고, 종료 후 ``Future`` 를 한 번만 확정한다.

세션 상태 전이::

    CREATED → RUNNING → SUCCEEDED | FAILED
    CREATED → FAILED (실행 파일을 시작하지 못한 경우)
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import threading
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import IO, Any

from resticpilot.restic.arguments import (
    RequestOptions,
    build_arguments,
    build_env,
    render_command,
)
from resticpilot.restic.commands import Command
from resticpilot.restic.events import (
    Observers,
    ResticEvent,
    SummaryEvent,
    classify_line,
    parse_output,
)

logger = logging.getLogger(__name__)

DEFAULT_RESTIC_BINARY = "restic"

# 프로세스가 아예 시작되지 못했음을 나타내는 종료 코드
SPAWN_FAILURE_EXIT_CODE = -1


class ResticError(Exception):
    """restic 실행 실패 공통 예외.

    Attributes:
        exit_code: 종료 코드 (시작 실패 시 ``SPAWN_FAILURE_EXIT_CODE``)
        stderr: 누적된 stderr 전체
        command: 실행한 전체 명령줄
    """

    def __init__(self, message: str, exit_code: int, stderr: str, command: str) -> None:
        """초기화."""
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr
        self.command = command

    def __str__(self) -> str:
        """에러 메시지, 명령줄, stderr 마지막 줄들을 함께 표시."""
        base = f"{super().__str__()}\nCommand: {self.command}"
        if not self.stderr:
            return base
        # stderr 마지막 20줄만 표시
        lines = self.stderr.strip().splitlines()
        tail = lines[-20:]
        stderr_snippet = "\n".join(tail)
        return f"{base}\n--- restic stderr (last {len(tail)} lines) ---\n{stderr_snippet}"


class ResticSpawnError(ResticError):
    """restic 프로세스를 시작하지 못했을 때 (실행 파일 없음, 권한 없음 등)."""


class ResticCommandError(ResticError):
    """restic 이 0 이 아닌 종료 코드로 끝났을 때."""


class SessionState(Enum):
    """세션 상태."""

    CREATED = "created"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    """세션의 최종 결과.

    성공이면 ``events`` 에 stdout 의 구조화 이벤트가 도착 순서대로 담기고,
    실패이면 ``error`` 가 채워진다.
    """

    events: tuple[ResticEvent, ...] = ()
    error: ResticError | None = None

    @property
    def succeeded(self) -> bool:
        """성공 여부."""
        return self.error is None

    @property
    def exit_code(self) -> int:
        """종료 코드."""
        return 0 if self.error is None else self.error.exit_code

    def unwrap(self) -> list[ResticEvent]:
        """성공이면 이벤트 목록을 반환하고, 실패이면 에러를 raise 한다."""
        if self.error is not None:
            raise self.error
        return list(self.events)


class ProcessSession:
    """restic 명령 한 건의 서브프로세스 수명을 관리한다.

    세션은 한 번만 실행할 수 있다. 비밀번호는 자식 프로세스 전용
    환경변수 블록으로만 전달하므로 여러 세션을 동시에 실행해도 안전하다.
    """

    def __init__(
        self,
        request: RequestOptions,
        binary: str = DEFAULT_RESTIC_BINARY,
        platform: str | None = None,
    ) -> None:
        """
        초기화.

        Args:
            request: restic 요청
            binary: restic 실행 파일 이름 또는 경로
            platform: 경로 이스케이프용 플랫폼 (None 이면 현재 플랫폼)
        """
        self.request = request
        self.binary = binary
        self.args = build_arguments(request, platform)
        self.command = render_command(binary, self.args, platform)
        self.state = SessionState.CREATED
        self.outcome: Outcome | None = None

        self._observer_lock = threading.Lock()
        self._summary_seen = False
        self._observer_error: BaseException | None = None

    def run(self) -> list[ResticEvent]:
        """
        블로킹 모드로 실행한다.

        Returns:
            stdout 의 구조화 이벤트 목록 (도착 순서)

        Raises:
            ResticSpawnError: 프로세스 시작 실패
            ResticCommandError: 0 이 아닌 종료 코드
        """
        process = self._spawn()

        # communicate 는 두 파이프를 동시에 비운다
        stdout, stderr = process.communicate()
        return_code = process.returncode

        if stderr:
            logger.warning("restic stderr: %s", stderr.strip())

        if return_code != 0:
            error = self._command_error(return_code, stderr)
            self._finish(Outcome(error=error))
            raise error

        events = parse_output(stdout)
        self._finish(Outcome(events=tuple(events)))
        return events

    def start(self) -> Future[list[ResticEvent]]:
        """
        스트리밍 모드로 실행한다.

        호출자는 블로킹되지 않는다. 콜백은 파이프를 읽는 스레드에서 호출되며,
        세션 내에서는 한 번에 하나씩만 호출된다.

        Returns:
            종료 후 이벤트 목록 또는 :class:`ResticError` 로 확정되는 Future
        """
        future: Future[list[ResticEvent]] = Future()
        # 취소는 지원하지 않는다
        future.set_running_or_notify_cancel()
        observers = self.request.observers or Observers()

        try:
            process = self._spawn()
        except ResticSpawnError as e:
            self._notify(observers.on_error, e)
            future.set_exception(e)
            return future

        events: list[ResticEvent] = []
        stderr_lines: list[str] = []

        drainers = [
            threading.Thread(
                target=self._drain_stdout,
                args=(process.stdout, observers, events),
                name=f"restic-{self.request.command.value}-stdout",
                daemon=True,
            ),
            threading.Thread(
                target=self._drain_stderr,
                args=(process.stderr, observers, stderr_lines),
                name=f"restic-{self.request.command.value}-stderr",
                daemon=True,
            ),
        ]
        for thread in drainers:
            thread.start()

        supervisor = threading.Thread(
            target=self._supervise,
            args=(process, drainers, observers, events, stderr_lines, future),
            name=f"restic-{self.request.command.value}-supervisor",
            daemon=True,
        )
        supervisor.start()
        return future

    def _spawn(self) -> subprocess.Popen[str]:
        """restic 프로세스를 시작한다. 실패 시 세션을 FAILED 로 확정한다."""
        if self.state is not SessionState.CREATED:
            raise RuntimeError(f"Session already started (state={self.state.value})")

        logger.info(f"Running restic: {self.command}")

        if shutil.which(self.binary) is None:
            error = self._spawn_error(f"restic executable not found: {self.binary}")
            self._finish(Outcome(error=error))
            raise error

        try:
            # 경로는 이스케이프, 나머지 값은 인용되어 있으므로 셸을 거쳐 실행한다
            process = subprocess.Popen(
                self.command,
                shell=True,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=build_env(self.request),
            )
        except OSError as e:
            error = self._spawn_error(f"Failed to spawn restic process: {e}")
            self._finish(Outcome(error=error))
            raise error from e

        self.state = SessionState.RUNNING
        return process

    def _drain_stdout(
        self,
        stream: IO[str],
        observers: Observers,
        events: list[ResticEvent],
    ) -> None:
        """stdout 을 라인 단위로 분류해 콜백으로 전달한다."""
        for line in stream:
            if not line.strip():
                continue
            classified = classify_line(line, "stdout")
            logger.debug("restic stdout: %r", classified)

            if isinstance(classified, ResticEvent):
                events.append(classified)

            if isinstance(classified, SummaryEvent) and not self._summary_seen:
                self._summary_seen = True
                self._notify(observers.on_summary, classified)
            else:
                self._notify(observers.on_progress, classified)

    def _drain_stderr(
        self,
        stream: IO[str],
        observers: Observers,
        stderr_lines: list[str],
    ) -> None:
        """stderr 를 누적하고 매 줄을 on_error 로 전달한다 (성공 종료여도)."""
        for line in stream:
            stderr_lines.append(line)
            text = line.rstrip("\r\n")
            if not text:
                continue
            logger.warning("restic stderr: %s", text)
            self._notify(observers.on_error, text)

    def _supervise(
        self,
        process: subprocess.Popen[str],
        drainers: list[threading.Thread],
        observers: Observers,
        events: list[ResticEvent],
        stderr_lines: list[str],
        future: Future[list[ResticEvent]],
    ) -> None:
        """모든 출력이 라우팅된 뒤 종료 코드를 확인해 Future 를 확정한다."""
        for thread in drainers:
            thread.join()
        return_code = process.wait()
        for stream in (process.stdout, process.stderr):
            if stream is not None:
                stream.close()

        if return_code != 0:
            error = self._command_error(return_code, "".join(stderr_lines))
            self._finish(Outcome(error=error))
            self._notify(observers.on_error, error)
            future.set_exception(error)
            return

        self._finish(Outcome(events=tuple(events)))
        if self._observer_error is not None:
            # 콜백 예외는 삼키지 않고 호출자에게 전달한다
            future.set_exception(self._observer_error)
            return
        future.set_result(list(events))

    def _notify(self, callback: Callable[[Any], None] | None, payload: Any) -> None:
        """콜백을 직렬화해 호출한다. 첫 예외는 보관해 Future 로 전달한다."""
        if callback is None:
            return
        with self._observer_lock:
            try:
                callback(payload)
            except Exception as e:
                logger.warning("restic observer raised: %s", e, exc_info=True)
                if self._observer_error is None:
                    self._observer_error = e

    def _finish(self, outcome: Outcome) -> None:
        """최종 결과를 한 번만 기록한다."""
        if self.outcome is not None:
            raise RuntimeError("Session outcome already recorded")
        self.outcome = outcome
        self.state = SessionState.SUCCEEDED if outcome.succeeded else SessionState.FAILED
        if outcome.succeeded:
            logger.info("restic %s completed successfully", self.request.command.value)

    def _spawn_error(self, message: str) -> ResticSpawnError:
        logger.error(message)
        return ResticSpawnError(
            message,
            exit_code=SPAWN_FAILURE_EXIT_CODE,
            stderr=message,
            command=self.command,
        )

    def _command_error(self, return_code: int, stderr: str) -> ResticCommandError:
        logger.error(f"restic failed with code {return_code}: {stderr.strip()}")
        return ResticCommandError(
            f"restic {self.request.command.value} failed with exit code {return_code}",
            exit_code=return_code,
            stderr=stderr,
            command=self.command,
        )


class ResticExecutor:
    """restic 실행 파일 경로와 플랫폼을 묶은 세션 팩토리.

    콜백 유무에 따라 블로킹/스트리밍 모드를 선택한다.
    """

    def __init__(self, binary: str = DEFAULT_RESTIC_BINARY, platform: str | None = None) -> None:
        """초기화."""
        self.binary = binary
        self.platform = platform

    def session(self, request: RequestOptions) -> ProcessSession:
        """요청 한 건에 대한 세션 생성."""
        return ProcessSession(request, binary=self.binary, platform=self.platform)

    def run(self, request: RequestOptions) -> list[ResticEvent]:
        """블로킹 모드 실행."""
        return self.session(request).run()

    def start(self, request: RequestOptions) -> Future[list[ResticEvent]]:
        """스트리밍 모드 실행."""
        return self.session(request).start()

    def request(self, request: RequestOptions) -> list[ResticEvent] | Future[list[ResticEvent]]:
        """
        요청을 실행한다.

        콜백이 등록되어 있으면 스트리밍 모드(``Future`` 반환),
        아니면 블로킹 모드(이벤트 목록 반환).
        """
        if request.observers is not None and request.observers.has_any:
            return self.start(request)
        return self.run(request)


def is_restic_available(binary: str = DEFAULT_RESTIC_BINARY) -> bool:
    """restic 실행 파일이 PATH 에 있는지 확인한다."""
    return shutil.which(binary) is not None


def get_restic_version(binary: str = DEFAULT_RESTIC_BINARY) -> str:
    """
    restic 버전 문자열을 조회한다.

    Returns:
        버전 문자열. 출력에 버전이 없으면 ``"unknown"``,
        실행에 실패하면 ``"unavailable"``.
    """
    try:
        events = ResticExecutor(binary).run(RequestOptions(command=Command.VERSION))
    except ResticError as e:
        logger.warning("Failed to query restic version: %s", e)
        return "unavailable"

    for event in events:
        if isinstance(event.data, dict) and isinstance(event.data.get("version"), str):
            return event.data["version"]
    return "unknown"
