"""restic JSON 이벤트 모델 및 라인 분류기.

restic 은 ``--json`` 모드에서 stdout 한 줄마다 JSON 객체 하나를 출력한다.
객체의 ``message_type`` 필드로 종류를 구분하며, 이 모듈은 각 라인을
불변 데이터 모델 하나로 변환한다.

분류 결과:
    - :class:`StatusEvent`: ``status`` (진행률)
    - :class:`SummaryEvent`: ``summary`` (최종 결과)
    - :class:`VerboseStatusEvent`: ``verbose_status`` (파일 단위 상세)
    - :class:`ErrorEvent`: ``error`` (개별 파일 오류)
    - :class:`UnknownEvent`: 그 밖의 JSON (``message_type`` 없음 포함)
    - :class:`TextLine`: JSON 이 아닌 텍스트
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

logger = logging.getLogger(__name__)

Stream = Literal["stdout", "stderr"]


@dataclass(frozen=True)
class ResticEvent:
    """구조화된 restic 이벤트 공통 베이스.

    Attributes:
        message_type: JSON 의 ``message_type`` 값 (없으면 None)
        data: 디코딩된 원본 값
    """

    message_type: str | None
    data: Any = field(repr=False)


@dataclass(frozen=True)
class StatusEvent(ResticEvent):
    """``status`` 진행률 이벤트."""

    percent_done: float | None = None
    total_files: int = 0
    files_done: int = 0
    total_bytes: int = 0
    bytes_done: int = 0
    seconds_elapsed: int = 0
    seconds_remaining: int | None = None
    current_files: tuple[str, ...] = ()


@dataclass(frozen=True)
class SummaryEvent(ResticEvent):
    """``summary`` 최종 결과 이벤트.

    backup 외의 명령(restore 등)은 일부 필드만 채운다.
    """

    files_new: int = 0
    files_changed: int = 0
    files_unmodified: int = 0
    dirs_new: int = 0
    dirs_changed: int = 0
    dirs_unmodified: int = 0
    data_blobs: int = 0
    tree_blobs: int = 0
    data_added: int = 0
    data_added_packed: int = 0
    total_files_processed: int = 0
    total_bytes_processed: int = 0
    total_duration: float = 0.0
    snapshot_id: str | None = None


@dataclass(frozen=True)
class VerboseStatusEvent(ResticEvent):
    """``verbose_status`` 파일 단위 상세 이벤트."""

    action: str | None = None
    item: str | None = None
    duration: float = 0.0
    data_size: int = 0


@dataclass(frozen=True)
class ErrorEvent(ResticEvent):
    """``error`` 이벤트 (백업 중 개별 파일 오류)."""

    item: str | None = None
    during: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class UnknownEvent(ResticEvent):
    """알 수 없는 종류의 구조화 이벤트.

    ``message_type`` 이 없거나 열거되지 않은 값인 JSON, 그리고
    ``snapshots`` 처럼 배열을 출력하는 명령의 결과가 여기에 해당한다.
    """


@dataclass(frozen=True)
class TextLine:
    """JSON 이 아닌 텍스트 한 줄.

    Attributes:
        text: 줄바꿈을 제거한 원본 텍스트
        stream: 출처 스트림 (``stdout`` / ``stderr``)
    """

    text: str
    stream: Stream = "stdout"


ClassifiedLine = ResticEvent | TextLine


@dataclass(frozen=True)
class Observers:
    """스트리밍 모드에서 호출되는 콜백 묶음.

    세션은 콜백을 호출만 하고 작업이 끝난 뒤에는 보관하지 않는다.

    Attributes:
        on_progress: status 이벤트, 기타 구조화 이벤트, stdout 텍스트마다 호출
        on_summary: 첫 summary 이벤트에 대해 한 번 호출
        on_error: stderr 텍스트마다, 그리고 최종 실패 시 :class:`ResticError` 로 호출
    """

    on_progress: Callable[[ClassifiedLine], None] | None = None
    on_summary: Callable[[SummaryEvent], None] | None = None
    on_error: Callable[[Any], None] | None = None

    @property
    def has_any(self) -> bool:
        """콜백이 하나라도 등록되었는지 여부."""
        return any((self.on_progress, self.on_summary, self.on_error))


def _int(data: dict[str, Any], key: str) -> int:
    """숫자 필드를 int 로 읽는다. 없거나 숫자가 아니면 0."""
    raw = data.get(key)
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return int(raw)
    return 0


def _float(data: dict[str, Any], key: str) -> float | None:
    raw = data.get(key)
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return float(raw)
    return None


def _str(data: dict[str, Any], key: str) -> str | None:
    raw = data.get(key)
    return raw if isinstance(raw, str) else None


def _status_event(data: dict[str, Any]) -> StatusEvent:
    current = data.get("current_files")
    remaining = data.get("seconds_remaining")
    return StatusEvent(
        message_type="status",
        data=data,
        percent_done=_float(data, "percent_done"),
        total_files=_int(data, "total_files"),
        files_done=_int(data, "files_done"),
        total_bytes=_int(data, "total_bytes"),
        bytes_done=_int(data, "bytes_done"),
        seconds_elapsed=_int(data, "seconds_elapsed"),
        seconds_remaining=_int(data, "seconds_remaining") if remaining is not None else None,
        current_files=tuple(f for f in current if isinstance(f, str))
        if isinstance(current, list)
        else (),
    )


def _summary_event(data: dict[str, Any]) -> SummaryEvent:
    return SummaryEvent(
        message_type="summary",
        data=data,
        files_new=_int(data, "files_new"),
        files_changed=_int(data, "files_changed"),
        files_unmodified=_int(data, "files_unmodified"),
        dirs_new=_int(data, "dirs_new"),
        dirs_changed=_int(data, "dirs_changed"),
        dirs_unmodified=_int(data, "dirs_unmodified"),
        data_blobs=_int(data, "data_blobs"),
        tree_blobs=_int(data, "tree_blobs"),
        data_added=_int(data, "data_added"),
        data_added_packed=_int(data, "data_added_packed"),
        total_files_processed=_int(data, "total_files_processed"),
        total_bytes_processed=_int(data, "total_bytes_processed"),
        total_duration=_float(data, "total_duration") or 0.0,
        snapshot_id=_str(data, "snapshot_id"),
    )


def _verbose_status_event(data: dict[str, Any]) -> VerboseStatusEvent:
    return VerboseStatusEvent(
        message_type="verbose_status",
        data=data,
        action=_str(data, "action"),
        item=_str(data, "item"),
        duration=_float(data, "duration") or 0.0,
        data_size=_int(data, "data_size"),
    )


def _error_event(data: dict[str, Any]) -> ErrorEvent:
    # restic 버전에 따라 message 가 문자열 또는 {"message": ...} 객체
    error = data.get("error")
    message = error.get("message") if isinstance(error, dict) else error
    return ErrorEvent(
        message_type="error",
        data=data,
        item=_str(data, "item"),
        during=_str(data, "during"),
        message=message if isinstance(message, str) else _str(data, "message"),
    )


_EVENT_FACTORIES: dict[str, Callable[[dict[str, Any]], ResticEvent]] = {
    "status": _status_event,
    "summary": _summary_event,
    "verbose_status": _verbose_status_event,
    "error": _error_event,
}


def classify_line(line: str, stream: Stream = "stdout") -> ClassifiedLine:
    """restic 출력 한 줄을 이벤트로 분류한다.

    JSON 디코딩에 실패하면 예외 대신 :class:`TextLine` 을 반환한다.

    Args:
        line: 출력 한 줄 (끝의 줄바꿈 포함 가능)
        stream: 출처 스트림

    Returns:
        분류된 이벤트.
        예: ``{"message_type":"summary","files_new":3}`` → ``SummaryEvent(files_new=3)``
    """
    text = line.rstrip("\r\n")
    try:
        decoded = json.loads(text)
    except ValueError:
        return TextLine(text=text, stream=stream)

    if not isinstance(decoded, dict):
        return UnknownEvent(message_type=None, data=decoded)

    message_type = decoded.get("message_type")
    if not isinstance(message_type, str):
        return UnknownEvent(message_type=None, data=decoded)

    factory = _EVENT_FACTORIES.get(message_type)
    if factory is None:
        return UnknownEvent(message_type=message_type, data=decoded)
    return factory(decoded)


def parse_output(output: str) -> list[ResticEvent]:
    """stdout 전체에서 구조화 이벤트만 순서대로 추출한다.

    빈 줄과 JSON 이 아닌 줄은 건너뛴다. 줄 구분은 스트리밍 경로와 같게
    LF 만 사용한다 (``str.splitlines`` 는 U+0085 등에서도 끊는다).
    """
    events: list[ResticEvent] = []
    for line in output.split("\n"):
        if not line.strip():
            continue
        classified = classify_line(line)
        if isinstance(classified, ResticEvent):
            events.append(classified)
        else:
            logger.debug("Skipping non-JSON output: %s", classified.text)
    return events
