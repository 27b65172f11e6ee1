"""restic 명령줄 인자 빌더.

:class:`RequestOptions` 한 건을 restic 에 그대로 넘길 수 있는 인자 목록으로
변환한다. 모든 함수는 순수 함수이며 I/O 나 전역 상태를 건드리지 않는다.

인자 순서 (재현성과 테스트를 위해 고정)::

    --json <verb> [-r REPO] [인증] [키 힌트/캐시/잠금/verbose]
    [--key=value ...] [verb 전용 인자 ...] [pass-through 인자 ...]

경로는 :func:`escape_path`, 그 밖의 값(키 힌트, 추가 옵션)은 :func:`quote_argument` 로
인용하므로 셸을 거쳐도 restic 이 원래 값을 받는다. pass-through 인자는
호출자가 이미 셸 형식으로 만든 것으로 보고 그대로 붙인다.

비밀번호는 절대 인자 목록에 넣지 않는다. :func:`build_env` 가 자식 프로세스
전용 환경변수 블록에 ``RESTIC_PASSWORD`` 로 담아 전달한다.
"""

from __future__ import annotations

import os
import re
import shlex
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from resticpilot.restic.commands import Command

if TYPE_CHECKING:
    from resticpilot.restic.events import Observers

ENV_RESTIC_PASSWORD = "RESTIC_PASSWORD"

DEFAULT_VERBOSITY = 1

# POSIX 셸에서 백슬래시 이스케이프가 필요한 문자: " ' ` $ \ 및 공백류
_POSIX_SPECIAL_CHARS = re.compile(r"([\"\s'$`\\])")


@dataclass(frozen=True)
class RequestOptions:
    """restic 호출 한 건의 전체 요청.

    ``command`` 외의 모든 필드는 선택이며 서로 독립적으로 조합할 수 있다.

    Attributes:
        command: 실행할 restic 서브커맨드
        repository: 저장소 위치 (``-r``)
        password: 저장소 비밀번호 (환경변수로만 전달)
        password_file: 비밀번호 파일 경로
        key_hint: 키 힌트
        no_cache: 로컬 캐시 비활성화
        cache_dir: 캐시 디렉토리
        no_lock: 잠금 생략
        verbosity: 상세 수준 (0-3, None 이면 1)
        options: ``--key=value`` 로 렌더링되는 추가 옵션 (삽입 순서 유지)
        arguments: verb 전용 인자 (경로는 이스케이프, 나머지 값은 인용된 상태)
        extra_args: 마지막에 그대로 붙는 pass-through 인자 (이미 셸 형식)
        observers: 스트리밍 모드 콜백 묶음
    """

    command: Command
    repository: str | None = None
    password: str | None = None
    password_file: str | None = None
    key_hint: str | None = None
    no_cache: bool = False
    cache_dir: str | None = None
    no_lock: bool = False
    verbosity: int | None = None
    # dict 는 해시 불가이므로 해시 계산에서 제외 (동등 비교에는 포함)
    options: Mapping[str, str] = field(default_factory=dict, hash=False)
    arguments: tuple[str, ...] = ()
    extra_args: tuple[str, ...] = ()
    observers: Observers | None = None

    def __post_init__(self) -> None:
        """검증."""
        if not isinstance(self.command, Command):
            raise ValueError(f"Invalid command: {self.command!r}")
        if self.verbosity is not None and not 0 <= self.verbosity <= 3:
            raise ValueError(f"Invalid verbosity: {self.verbosity} (expected 0-3)")

    @property
    def is_authenticated(self) -> bool:
        """비밀번호 또는 비밀번호 파일이 지정되었는지 여부."""
        return bool(self.password) or bool(self.password_file)


def escape_path(path: str | os.PathLike[str], platform: str | None = None) -> str:
    """경로를 셸에 안전하게 전달할 수 있도록 이스케이프한다.

    - Windows(``win32``): 전체를 큰따옴표로 감싼다. 내부 문자는 건드리지 않는다.
    - 그 외(POSIX): ``"`` ``'`` `````` ``$`` ``\\`` 및 공백 문자 앞에 백슬래시를 붙인다.

    Args:
        path: 원본 경로
        platform: ``sys.platform`` 형식의 플랫폼 이름 (None 이면 현재 플랫폼)

    Returns:
        이스케이프된 경로 문자열.
        예: ``/home/a b/c'd.txt`` → ``/home/a\\ b/c\\'d.txt``
    """
    raw = os.fspath(path)
    if (platform or sys.platform) == "win32":
        return f'"{raw}"'
    return _POSIX_SPECIAL_CHARS.sub(r"\\\1", raw)


def quote_argument(value: str, platform: str | None = None) -> str:
    """경로가 아닌 값(태그, 패턴, 호스트 등)을 셸이 해석하지 않도록 인용한다.

    - Windows(``win32``): 큰따옴표로 감싸고 내부 큰따옴표는 ``\\"`` 로 바꾼다.
    - 그 외(POSIX): :func:`shlex.quote` (안전한 문자만 있으면 그대로).

    예: ``my tag`` → ``'my tag'``, ``*.log`` → ``'*.log'``
    """
    if (platform or sys.platform) == "win32":
        escaped = value.replace('"', '\\"')
        return f'"{escaped}"'
    return shlex.quote(value)


def build_arguments(request: RequestOptions, platform: str | None = None) -> list[str]:
    """요청을 restic 인자 목록으로 변환한다.

    같은 요청에 대해 항상 같은 목록을 반환한다.

    Args:
        request: restic 요청
        platform: 경로 이스케이프와 값 인용에 사용할 플랫폼 (None 이면 현재 플랫폼)

    Returns:
        실행 파일 이름을 제외한 인자 목록
    """
    args = ["--json", request.command.value]

    if request.repository:
        args.extend(["-r", escape_path(request.repository, platform)])

    # 인증 정보가 없으면 대화형 프롬프트를 피하기 위해 캐시를 끈다
    no_cache = request.no_cache or not request.is_authenticated

    if request.password_file:
        args.append(f"--password-file={escape_path(request.password_file, platform)}")

    if request.key_hint:
        args.append(quote_argument(f"--key-hint={request.key_hint}", platform))

    if no_cache:
        args.append("--no-cache")

    if request.cache_dir:
        args.append(f"--cache-dir={escape_path(request.cache_dir, platform)}")

    if request.no_lock:
        args.append("--no-lock")

    verbosity = DEFAULT_VERBOSITY if request.verbosity is None else request.verbosity
    args.append(f"--verbose={verbosity}")

    for key, value in request.options.items():
        args.append(quote_argument(f"--{key}={value}", platform))

    args.extend(request.arguments)
    # 호출자가 이미 셸 형식으로 만든 인자
    args.extend(request.extra_args)

    return args


def build_env(
    request: RequestOptions,
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """자식 프로세스 전용 환경변수 사전을 구성한다.

    부모 프로세스의 ``os.environ`` 은 수정하지 않는다. 동시에 실행되는
    다른 세션의 비밀번호와 섞이지 않도록 매 호출마다 새 사전을 만든다.

    Args:
        request: restic 요청
        base_env: 기반 환경변수 (None 이면 ``os.environ`` 복사본)

    Returns:
        자식 프로세스에 넘길 환경변수 사전
    """
    env = dict(os.environ if base_env is None else base_env)
    if request.password:
        env[ENV_RESTIC_PASSWORD] = request.password
    return env


def render_command(binary: str, args: Sequence[str], platform: str | None = None) -> str:
    """셸에서 실행할 전체 명령줄 문자열을 만든다.

    인자는 :func:`build_arguments` 에서 이미 이스케이프되었으므로
    실행 파일 경로만 이스케이프한다.
    """
    return " ".join([escape_path(binary, platform), *args])
