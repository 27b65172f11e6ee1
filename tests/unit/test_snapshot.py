"""스냅샷 모델 테스트."""

from datetime import datetime, timedelta, timezone

import pytest

from resticpilot.models.snapshot import Snapshot, SnapshotSummary


class TestSnapshot:
    """Snapshot.from_json 테스트."""

    def test_from_json(self, snapshot_record) -> None:
        """모든 필드 파싱."""
        snapshot = Snapshot.from_json(snapshot_record)

        assert snapshot.id == snapshot_record["id"]
        assert snapshot.short_id == "4e5f6a7b"
        assert snapshot.hostname == "laptop"
        assert snapshot.username == "user"
        assert snapshot.paths == ("/home/user/docs",)
        assert snapshot.tags == ("daily",)
        assert snapshot.parent == "0f0f0f0f"
        assert snapshot.tree == "abcdef0123"
        assert snapshot.summary is None

    def test_parses_nanosecond_time(self, snapshot_record) -> None:
        """나노초 시각은 마이크로초로 잘라 파싱."""
        snapshot = Snapshot.from_json(snapshot_record)

        assert snapshot.time == datetime(
            2024, 5, 1, 10, 20, 30, 123456, tzinfo=timezone(timedelta(hours=9))
        )

    def test_parses_utc_suffix(self, snapshot_record) -> None:
        """Z 접미사 시각."""
        snapshot = Snapshot.from_json({**snapshot_record, "time": "2024-05-01T01:00:00Z"})

        assert snapshot.time == datetime(2024, 5, 1, 1, 0, tzinfo=timezone.utc)

    def test_invalid_time_is_none(self, snapshot_record) -> None:
        """잘못된 시각은 None."""
        snapshot = Snapshot.from_json({**snapshot_record, "time": "yesterday"})

        assert snapshot.time is None

    def test_short_id_fallback(self) -> None:
        """short_id 가 없으면 id 앞 8자."""
        snapshot = Snapshot.from_json({"id": "0123456789abcdef"})

        assert snapshot.short_id == "01234567"
        assert snapshot.paths == ()
        assert snapshot.tags == ()

    def test_missing_id(self) -> None:
        """id 가 없으면 ValueError."""
        with pytest.raises(ValueError, match="without id"):
            Snapshot.from_json({"short_id": "abc"})

    def test_matches(self, snapshot_record) -> None:
        """전체 ID 또는 축약 ID 일치."""
        snapshot = Snapshot.from_json(snapshot_record)

        assert snapshot.matches(snapshot_record["id"])
        assert snapshot.matches("4e5f6a7b")
        assert not snapshot.matches("4e5f")


class TestSnapshotSummary:
    """SnapshotSummary 테스트."""

    def test_duration_from_start_end(self, snapshot_record) -> None:
        """시작/종료 시각으로 소요 시간 계산."""
        record = {
            **snapshot_record,
            "summary": {
                "backup_start": "2024-05-01T10:00:00+00:00",
                "backup_end": "2024-05-01T10:01:30+00:00",
                "files_new": 4,
                "data_added": 2048,
                "total_files_processed": 10,
            },
        }

        summary = Snapshot.from_json(record).summary

        assert summary is not None
        assert summary.duration == pytest.approx(90.0)
        assert summary.files_new == 4
        assert summary.data_added == 2048
        assert summary.total_files_processed == 10
        assert summary.files_changed == 0

    def test_duration_none_without_times(self) -> None:
        """시각이 없으면 duration None."""
        summary = SnapshotSummary.from_json({"files_new": 1})

        assert summary.duration is None
        assert summary.started_at is None
