"""pytest 설정 및 공통 fixture."""

import json
import stat
import sys
from collections.abc import Callable, Generator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

# 테스트가 사용자 환경의 설정/비밀번호에 영향받지 않도록 제거할 환경 변수
ISOLATED_ENV_VARS = (
    "RESTIC_PASSWORD",
    "RESTICPILOT_BINARY",
    "RESTICPILOT_REPOSITORY",
    "RESTICPILOT_PASSWORD_FILE",
    "RESTICPILOT_CACHE_DIR",
    "RESTICPILOT_KEY_HINT",
    "RESTICPILOT_NO_CACHE",
    "RESTICPILOT_NO_LOCK",
    "RESTICPILOT_VERBOSITY",
)


@pytest.fixture(autouse=True)
def isolate_environment(
    tmp_path_factory: pytest.TempPathFactory,
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[Path]:
    """
    테스트용 환경 격리.

    - restic/resticpilot 관련 환경 변수 제거
    - HOME 을 임시 디렉토리로 교체 (``~/.resticpilot/config.toml`` 무시)
    """
    for key in ISOLATED_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    yield home


@dataclass
class FakeRestic:
    """가짜 restic 실행 파일.

    Attributes:
        binary: 실행 파일 절대 경로
        record_path: 호출마다 argv/env 를 JSON 라인으로 기록하는 파일
    """

    binary: str
    record_path: Path

    def calls(self) -> list[dict[str, Any]]:
        """기록된 호출 목록 (호출 순서)."""
        if not self.record_path.exists():
            return []
        return [json.loads(line) for line in self.record_path.read_text().splitlines() if line]

    def last_call(self) -> dict[str, Any]:
        """마지막 호출 기록."""
        calls = self.calls()
        assert calls, "fake restic was never invoked"
        return calls[-1]


_FAKE_RESTIC_TEMPLATE = """\
#!{python}
import json
import os
import sys

sys.stdout.reconfigure(encoding="utf-8")

with open({record!r}, "a", encoding="utf-8") as f:
    f.write(json.dumps({{"argv": sys.argv[1:], "env": dict(os.environ)}}) + "\\n")

for line in {stdout!r}:
    sys.stdout.write(line + "\\n")
sys.stdout.flush()
for line in {stderr!r}:
    sys.stderr.write(line + "\\n")
sys.stderr.flush()
sys.exit({exit_code})
"""


@pytest.fixture
def fake_restic(tmp_path: Path) -> Callable[..., FakeRestic]:
    """
    가짜 restic 실행 파일 팩토리.

    지정한 stdout/stderr 라인을 출력하고 지정한 종료 코드로 끝나는
    스크립트를 만든다. 호출 시 받은 argv 와 환경 변수를 기록한다.
    """
    counter = 0

    def _make(
        stdout: Sequence[str] = (),
        stderr: Sequence[str] = (),
        exit_code: int = 0,
    ) -> FakeRestic:
        nonlocal counter
        counter += 1
        bin_dir = tmp_path / f"bin{counter}"
        bin_dir.mkdir()
        record_path = tmp_path / f"calls{counter}.jsonl"
        script = bin_dir / "restic"
        script.write_text(
            _FAKE_RESTIC_TEMPLATE.format(
                python=sys.executable,
                record=str(record_path),
                stdout=list(stdout),
                stderr=list(stderr),
                exit_code=exit_code,
            )
        )
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return FakeRestic(binary=str(script), record_path=record_path)

    return _make


@pytest.fixture
def snapshot_record() -> dict[str, Any]:
    """``restic snapshots --json`` 레코드 하나."""
    return {
        "time": "2024-05-01T10:20:30.123456789+09:00",
        "parent": "0f0f0f0f",
        "tree": "abcdef0123",
        "paths": ["/home/user/docs"],
        "hostname": "laptop",
        "username": "user",
        "tags": ["daily"],
        "id": "4e5f6a7b8c9d0e1f2a3b4c5d6e7f8091a2b3c4d5e6f708192a3b4c5d6e7f8091",
        "short_id": "4e5f6a7b",
    }

