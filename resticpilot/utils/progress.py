"""진행률 표시 유틸리티."""

import sys
from typing import TextIO

from resticpilot.restic.events import StatusEvent


def format_time(seconds: float) -> str:
    """
    초를 시:분:초 형식으로 변환.

    Args:
        seconds: 초

    Returns:
        포맷된 시간 문자열
    """
    seconds = int(seconds)
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_size(bytes_: int) -> str:
    """
    바이트를 읽기 쉬운 형식으로 변환.

    Args:
        bytes_: 바이트 수

    Returns:
        포맷된 크기 문자열
    """
    size = float(bytes_)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size < 1024:
            if unit == "B":
                return f"{int(size)} {unit}"
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} PB"


class ProgressBar:
    """restic status 이벤트를 그리는 터미널 프로그레스 바."""

    def __init__(
        self,
        desc: str = "",
        width: int = 40,
        file: TextIO | None = None,
    ) -> None:
        """
        초기화.

        Args:
            desc: 설명
            width: 프로그레스 바 너비
            file: 출력 파일 (기본: stderr)
        """
        self.desc = desc
        self.width = width
        self.file = file or sys.stderr
        self.percent = 0
        self._status: StatusEvent | None = None

    def update(self, event: StatusEvent) -> None:
        """
        status 이벤트로 진행률 갱신.

        ``percent_done`` 이 없는 이벤트는 직전 진행률을 유지한다.
        """
        if event.percent_done is not None:
            self.percent = min(max(int(event.percent_done * 100), 0), 100)
        self._status = event
        self._display()

    def finish(self) -> None:
        """완료 처리."""
        self.percent = 100
        self._display()
        self.file.write("\n")
        self.file.flush()

    def render(self) -> str:
        """
        프로그레스 바 문자열 생성.

        Returns:
            렌더링된 프로그레스 바
        """
        filled = int(self.width * self.percent / 100)
        bar = "█" * filled + "░" * (self.width - filled)

        parts = []
        if self.desc:
            parts.append(self.desc)
        parts.append(f"[{bar}]")
        parts.append(f"{self.percent:3d}%")

        status = self._status
        if status is not None:
            if status.total_files:
                parts.append(f"({status.files_done}/{status.total_files} files)")
            if status.total_bytes:
                parts.append(f"{format_size(status.bytes_done)}/{format_size(status.total_bytes)}")
            if status.seconds_remaining is not None and self.percent < 100:
                parts.append(f"ETA {format_time(status.seconds_remaining)}")

        return " ".join(parts)

    def _display(self) -> None:
        """화면에 출력."""
        self.file.write(f"\r{self.render()}")
        self.file.flush()
