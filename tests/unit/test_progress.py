"""진행률 표시 유틸리티 테스트."""

import io

import pytest

from resticpilot.restic.events import StatusEvent
from resticpilot.utils.progress import ProgressBar, format_size, format_time


def _status(**kwargs) -> StatusEvent:
    return StatusEvent(message_type="status", data={}, **kwargs)


class TestFormatTime:
    """format_time 테스트."""

    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [(0, "0:00"), (59, "0:59"), (61, "1:01"), (3600, "1:00:00"), (3725.9, "1:02:05")],
    )
    def test_format(self, seconds: float, expected: str) -> None:
        """시:분:초 변환."""
        assert format_time(seconds) == expected


class TestFormatSize:
    """format_size 테스트."""

    @pytest.mark.parametrize(
        ("size", "expected"),
        [(0, "0 B"), (1023, "1023 B"), (1024, "1.0 KB"), (1536, "1.5 KB"), (1024**3, "1.0 GB")],
    )
    def test_format(self, size: int, expected: str) -> None:
        """단위 변환."""
        assert format_size(size) == expected


class TestProgressBar:
    """ProgressBar 테스트."""

    def test_render_initial(self) -> None:
        """초기 상태."""
        bar = ProgressBar(desc="backup", width=10, file=io.StringIO())

        assert bar.render() == "backup [░░░░░░░░░░]   0%"

    def test_update_from_status(self) -> None:
        """status 이벤트로 갱신."""
        output = io.StringIO()
        bar = ProgressBar(width=10, file=output)

        bar.update(
            _status(
                percent_done=0.5,
                total_files=10,
                files_done=5,
                total_bytes=2048,
                bytes_done=1024,
                seconds_remaining=65,
            )
        )

        rendered = bar.render()
        assert bar.percent == 50
        assert "█████░░░░░" in rendered
        assert "(5/10 files)" in rendered
        assert "1.0 KB/2.0 KB" in rendered
        assert "ETA 1:05" in rendered
        assert output.getvalue().startswith("\r")

    def test_keeps_percent_without_value(self) -> None:
        """percent_done 이 없으면 직전 값 유지."""
        bar = ProgressBar(file=io.StringIO())
        bar.update(_status(percent_done=0.3))
        bar.update(_status())

        assert bar.percent == 30

    def test_clamps_percent(self) -> None:
        """0-100 범위로 제한."""
        bar = ProgressBar(file=io.StringIO())
        bar.update(_status(percent_done=1.7))

        assert bar.percent == 100

    def test_finish(self) -> None:
        """완료 시 100% 와 줄바꿈, ETA 생략."""
        output = io.StringIO()
        bar = ProgressBar(width=4, file=output)
        bar.update(_status(percent_done=0.5, seconds_remaining=10))

        bar.finish()

        assert bar.percent == 100
        assert output.getvalue().endswith("100%\n")
