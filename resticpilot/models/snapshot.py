"""restic 스냅샷 도메인 모델.

``restic snapshots --json`` 결과의 레코드 하나를 불변 데이터클래스로 표현한다.
모든 필드는 :meth:`Snapshot.from_json` 에서 한 번에 채워진다.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

logger = logging.getLogger(__name__)

# restic 은 나노초(9자리)까지 출력한다. datetime 은 마이크로초까지만 표현
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


def _parse_time(raw: object) -> datetime | None:
    """restic 시각 문자열(RFC 3339, 나노초 포함 가능) 파싱."""
    if not isinstance(raw, str) or not raw:
        return None
    try:
        return datetime.fromisoformat(_EXCESS_FRACTION.sub(r"\1", raw))
    except ValueError:
        logger.warning("Invalid snapshot time: %r", raw)
        return None


def _count(data: dict[str, Any], key: str) -> int:
    raw = data.get(key)
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    return 0


@dataclass(frozen=True)
class SnapshotSummary:
    """스냅샷 생성 시점의 백업 요약 (restic 0.17+ 에서 제공).

    Attributes:
        started_at: 백업 시작 시각
        finished_at: 백업 종료 시각
        duration: 소요 시간 (초)
    """

    started_at: datetime | None
    finished_at: datetime | None
    duration: float | None
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

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> SnapshotSummary:
        """``summary`` 객체로부터 생성."""
        started_at = _parse_time(data.get("backup_start"))
        finished_at = _parse_time(data.get("backup_end"))
        duration = (
            (finished_at - started_at).total_seconds()
            if started_at is not None and finished_at is not None
            else None
        )
        return cls(
            started_at=started_at,
            finished_at=finished_at,
            duration=duration,
            files_new=_count(data, "files_new"),
            files_changed=_count(data, "files_changed"),
            files_unmodified=_count(data, "files_unmodified"),
            dirs_new=_count(data, "dirs_new"),
            dirs_changed=_count(data, "dirs_changed"),
            dirs_unmodified=_count(data, "dirs_unmodified"),
            data_blobs=_count(data, "data_blobs"),
            tree_blobs=_count(data, "tree_blobs"),
            data_added=_count(data, "data_added"),
            data_added_packed=_count(data, "data_added_packed"),
            total_files_processed=_count(data, "total_files_processed"),
            total_bytes_processed=_count(data, "total_bytes_processed"),
        )


@dataclass(frozen=True)
class Snapshot:
    """restic 스냅샷 레코드.

    Attributes:
        id: 전체 스냅샷 ID
        short_id: 축약 ID (8자)
        time: 스냅샷 시각
        hostname: 백업한 호스트
        username: 백업한 사용자
        paths: 백업 대상 경로
        tags: 태그
        parent: 부모 스냅샷 ID
        tree: 루트 트리 ID
        summary: 백업 요약 (없으면 None)
    """

    id: str
    short_id: str
    time: datetime | None
    hostname: str = ""
    username: str = ""
    paths: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    parent: str | None = None
    tree: str | None = None
    summary: SnapshotSummary | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Snapshot:
        """
        ``restic snapshots --json`` 레코드로부터 생성.

        Args:
            data: 스냅샷 JSON 객체

        Returns:
            Snapshot

        Raises:
            ValueError: ``id`` 필드가 없을 때
        """
        snapshot_id = data.get("id")
        if not isinstance(snapshot_id, str) or not snapshot_id:
            raise ValueError(f"Snapshot record without id: {data!r}")

        short_id = data.get("short_id")
        summary = data.get("summary")
        return cls(
            id=snapshot_id,
            short_id=short_id if isinstance(short_id, str) else snapshot_id[:8],
            time=_parse_time(data.get("time")),
            hostname=str(data.get("hostname") or ""),
            username=str(data.get("username") or ""),
            paths=tuple(data.get("paths") or ()),
            tags=tuple(data.get("tags") or ()),
            parent=data.get("parent"),
            tree=data.get("tree"),
            summary=SnapshotSummary.from_json(summary) if isinstance(summary, dict) else None,
        )

    def matches(self, snapshot_id: str) -> bool:
        """전체 ID 또는 축약 ID 일치 여부."""
        return snapshot_id in (self.id, self.short_id)
