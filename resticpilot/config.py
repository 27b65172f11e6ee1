"""TOML 설정 파일 및 환경변수 기본값 관리.

``~/.resticpilot/config.toml`` 에서 사용자 설정을 로드하고,
환경변수 Shim 패턴으로 CLI 기본값을 주입한다.

우선순위::

    CLI 옵션 > 환경변수 > config.toml > 기본값

비밀번호는 설정 파일에서 읽지 않는다. ``password_file`` 만 지원한다.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# 환경변수 매핑
ENV_BINARY = "RESTICPILOT_BINARY"
ENV_REPOSITORY = "RESTICPILOT_REPOSITORY"
ENV_PASSWORD_FILE = "RESTICPILOT_PASSWORD_FILE"
ENV_CACHE_DIR = "RESTICPILOT_CACHE_DIR"
ENV_KEY_HINT = "RESTICPILOT_KEY_HINT"
ENV_NO_CACHE = "RESTICPILOT_NO_CACHE"
ENV_NO_LOCK = "RESTICPILOT_NO_LOCK"
ENV_VERBOSITY = "RESTICPILOT_VERBOSITY"


@dataclass(frozen=True)
class ResticConfig:
    """``config.toml`` 의 ``[restic]`` 섹션.

    모든 필드가 ``None`` 이면 해당 옵션은 환경변수 또는 기본값을 사용한다.
    """

    binary: str | None = None
    repository: str | None = None
    password_file: str | None = None
    cache_dir: str | None = None
    key_hint: str | None = None
    no_cache: bool | None = None
    no_lock: bool | None = None
    verbosity: int | None = None


@dataclass(frozen=True)
class AppConfig:
    """애플리케이션 전체 설정."""

    restic: ResticConfig = field(default_factory=ResticConfig)


def _warn_type(field_name: str, expected: str, value: object) -> None:
    """타입 불일치 경고 출력."""
    logger.warning(
        "config: %s 타입 오류 (expected %s, got %s)",
        field_name,
        expected,
        type(value).__name__,
    )


def _parse_str(data: dict[str, object], key: str, section: str) -> str | None:
    """TOML dict에서 문자열 필드를 안전하게 파싱한다."""
    raw = data.get(key)
    if isinstance(raw, str):
        return raw
    if raw is not None:
        _warn_type(f"{section}.{key}", "str", raw)
    return None


def _parse_bool(data: dict[str, object], key: str, section: str) -> bool | None:
    """TOML dict에서 bool 필드를 안전하게 파싱한다."""
    raw = data.get(key)
    if isinstance(raw, bool):
        return raw
    if raw is not None:
        _warn_type(f"{section}.{key}", "bool", raw)
    return None


def _parse_int(data: dict[str, object], key: str, section: str) -> int | None:
    """TOML dict에서 정수 필드를 안전하게 파싱한다 (bool 제외)."""
    raw = data.get(key)
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    if raw is not None:
        _warn_type(f"{section}.{key}", "int", raw)
    return None


def get_default_config_path() -> Path:
    """기본 설정 파일 경로 반환."""
    return Path.home() / ".resticpilot" / "config.toml"


def _parse_restic(data: dict[str, object]) -> ResticConfig:
    """[restic] 섹션 파싱. 타입 오류 시 해당 필드 무시."""
    section = "restic"

    # verbosity: 0-3 범위 검증
    verbosity = _parse_int(data, "verbosity", section)
    if verbosity is not None and not 0 <= verbosity <= 3:
        logger.warning("config: restic.verbosity 범위 초과: %d (0-3)", verbosity)
        verbosity = None

    # password 는 평문 저장을 허용하지 않는다
    if "password" in data:
        logger.warning("config: restic.password 는 지원하지 않습니다. password_file 을 사용하세요")

    return ResticConfig(
        binary=_parse_str(data, "binary", section),
        repository=_parse_str(data, "repository", section),
        password_file=_parse_str(data, "password_file", section),
        cache_dir=_parse_str(data, "cache_dir", section),
        key_hint=_parse_str(data, "key_hint", section),
        no_cache=_parse_bool(data, "no_cache", section),
        no_lock=_parse_bool(data, "no_lock", section),
        verbosity=verbosity,
    )


def load_config(path: Path | None = None) -> AppConfig:
    """
    TOML 설정 파일 로드.

    Args:
        path: 설정 파일 경로 (None이면 기본 경로 사용)

    Returns:
        AppConfig (파일 없음/에러 시 빈 AppConfig)
    """
    config_path = path or get_default_config_path()

    if not config_path.is_file():
        return AppConfig()

    try:
        with config_path.open("rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        logger.warning(f"config: TOML 문법 오류 ({config_path}): {e}")
        return AppConfig()
    except OSError as e:
        logger.warning(f"config: 파일 읽기 실패 ({config_path}): {e}")
        return AppConfig()

    restic_data = raw.get("restic", {})
    if isinstance(restic_data, dict):
        restic = _parse_restic(restic_data)
    else:
        logger.warning(
            "config: [restic] 섹션이 테이블이 아닙니다 (got %s)",
            type(restic_data).__name__,
        )
        restic = ResticConfig()

    return AppConfig(restic=restic)


def apply_config_to_env(config: AppConfig) -> None:
    """
    설정값을 환경변수에 주입 (미설정인 경우만).

    이미 설정된 환경변수는 보존된다 (환경변수 > config).
    """
    restic = config.restic
    mappings: list[tuple[str, str | None]] = [
        (ENV_BINARY, restic.binary),
        (ENV_REPOSITORY, restic.repository),
        (ENV_PASSWORD_FILE, restic.password_file),
        (ENV_CACHE_DIR, restic.cache_dir),
        (ENV_KEY_HINT, restic.key_hint),
    ]

    # bool → "true"/"false"
    if restic.no_cache is not None:
        mappings.append((ENV_NO_CACHE, str(restic.no_cache).lower()))
    if restic.no_lock is not None:
        mappings.append((ENV_NO_LOCK, str(restic.no_lock).lower()))
    if restic.verbosity is not None:
        mappings.append((ENV_VERBOSITY, str(restic.verbosity)))

    for env_key, value in mappings:
        if value is not None and env_key not in os.environ:
            os.environ[env_key] = value


def generate_default_config() -> str:
    """주석 포함 기본 설정 파일 템플릿 반환."""
    return """\
# resticpilot 설정 파일
# 위치: ~/.resticpilot/config.toml
#
# 우선순위: CLI 옵션 > 환경변수 > 이 파일 > 기본값
# 주석 해제 후 값을 수정하세요.

[restic]
# binary = "restic"                          # RESTICPILOT_BINARY
# repository = "/srv/restic-repo"            # RESTICPILOT_REPOSITORY
# password_file = "~/.resticpilot/password"  # RESTICPILOT_PASSWORD_FILE
# cache_dir = "~/.cache/restic"              # RESTICPILOT_CACHE_DIR
# key_hint = ""                              # RESTICPILOT_KEY_HINT
# no_cache = false                           # RESTICPILOT_NO_CACHE
# no_lock = false                            # RESTICPILOT_NO_LOCK
# verbosity = 1                              # 0-3 (RESTICPILOT_VERBOSITY)
"""


# ---------------------------------------------------------------------------
# 환경변수 기본값 헬퍼
# ---------------------------------------------------------------------------


def parse_env_bool(value: str) -> bool:
    """환경변수 문자열을 bool로 변환한다.

    '1', 'true', 'yes', 'y', 'on' (대소문자 무시)이면 True, 그 외 False.
    """
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_env_bool(env_key: str, *, default: bool = False) -> bool:
    """환경변수에서 bool 값을 가져온다."""
    env_val = os.environ.get(env_key)
    if env_val is None:
        return default
    return parse_env_bool(env_val)


def _get_env_path(env_key: str) -> str | None:
    """환경변수에서 경로를 가져온다 (``~`` 확장)."""
    env_val = os.environ.get(env_key)
    if not env_val:
        return None
    return str(Path(env_val).expanduser())


def get_default_binary() -> str:
    """환경변수 ``RESTICPILOT_BINARY`` 에서 restic 실행 파일을 가져온다 (기본 ``restic``)."""
    return os.environ.get(ENV_BINARY) or "restic"


def get_default_repository() -> str | None:
    """환경변수 ``RESTICPILOT_REPOSITORY`` 에서 저장소 위치를 가져온다.

    ``sftp:`` 등 백엔드 URL 일 수 있으므로 ``~`` 확장은 하지 않는다.
    """
    return os.environ.get(ENV_REPOSITORY) or None


def get_default_password_file() -> str | None:
    """환경변수 ``RESTICPILOT_PASSWORD_FILE`` 에서 비밀번호 파일 경로를 가져온다."""
    return _get_env_path(ENV_PASSWORD_FILE)


def get_default_cache_dir() -> str | None:
    """환경변수 ``RESTICPILOT_CACHE_DIR`` 에서 캐시 디렉토리를 가져온다."""
    return _get_env_path(ENV_CACHE_DIR)


def get_default_key_hint() -> str | None:
    """환경변수 ``RESTICPILOT_KEY_HINT`` 에서 키 힌트를 가져온다."""
    return os.environ.get(ENV_KEY_HINT) or None


def get_default_no_cache() -> bool:
    """환경변수 ``RESTICPILOT_NO_CACHE`` 에서 캐시 비활성화 여부를 가져온다."""
    return _get_env_bool(ENV_NO_CACHE)


def get_default_no_lock() -> bool:
    """환경변수 ``RESTICPILOT_NO_LOCK`` 에서 잠금 생략 여부를 가져온다."""
    return _get_env_bool(ENV_NO_LOCK)


def get_default_verbosity() -> int | None:
    """환경변수에서 기본 상세 수준을 가져온다.

    ``RESTICPILOT_VERBOSITY`` 가 0-3 정수가 아니면 None (restic 호출 시 1).

    Returns:
        상세 수준 또는 None.
    """
    env_val = os.environ.get(ENV_VERBOSITY)
    if not env_val:
        return None
    try:
        val = int(env_val)
    except ValueError:
        logger.warning("%s=%s is not a valid number", ENV_VERBOSITY, env_val)
        return None
    if not 0 <= val <= 3:
        logger.warning("%s=%s must be 0-3, ignoring", ENV_VERBOSITY, env_val)
        return None
    return val
