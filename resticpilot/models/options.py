"""restic 저장소 및 서브커맨드별 옵션 모델.

각 옵션 클래스는 불변 데이터클래스이며 :meth:`to_arguments` 로
verb 전용 인자 목록을 생성한다. 필수 필드가 비어 있으면 생성 시점에
``ValueError`` 를 raise 하여 잘못된 명령줄이 만들어지지 않게 한다.

파일시스템 경로(백업 대상, 제외 파일, 복원 대상, ``--path`` 필터,
마운트 지점)는 :func:`~resticpilot.restic.arguments.escape_path` 로
이스케이프한다. 패턴·태그·호스트·스냅샷 ID 등 나머지 값은
:func:`~resticpilot.restic.arguments.quote_argument` 로 인용한다.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Literal

from resticpilot.restic.arguments import escape_path, quote_argument

StatsMode = Literal["restore-size", "files-by-contents", "blobs-per-file", "raw-data"]
TagAction = Literal["add", "remove", "set"]


def _flagged(flag: str, tokens: Iterable[str]) -> list[str]:
    """``--flag t1 --flag t2 ...`` 형태의 인자 생성 (토큰은 이미 셸 안전)."""
    args: list[str] = []
    for token in tokens:
        args.extend([flag, token])
    return args


def _repeat(flag: str, values: Iterable[str], platform: str | None) -> list[str]:
    return _flagged(flag, (quote_argument(v, platform) for v in values))


def _repeat_paths(flag: str, paths: Iterable[str], platform: str | None) -> list[str]:
    return _flagged(flag, (escape_path(p, platform) for p in paths))


def _option(flag: str, value: str, platform: str | None) -> list[str]:
    return [flag, quote_argument(value, platform)]


def _require(value: object, name: str) -> None:
    if not value:
        raise ValueError(f"{name} is required")


@dataclass(frozen=True)
class RepositoryOptions:
    """저장소 연결 정보와 실행 플래그.

    Attributes:
        path: 저장소 위치 (로컬 경로 또는 ``sftp:``/``s3:`` 등 백엔드 URL)
        password: 비밀번호 (자식 프로세스 환경변수로만 전달)
        password_file: 비밀번호 파일 경로
        key_hint: 키 힌트
        no_cache: 캐시 비활성화
        cache_dir: 캐시 디렉토리
        no_lock: 잠금 생략
        verbosity: 상세 수준 (0-3)
        options: ``--key=value`` 추가 옵션
    """

    path: str
    password: str | None = None
    password_file: str | None = None
    key_hint: str | None = None
    no_cache: bool = False
    cache_dir: str | None = None
    no_lock: bool = False
    verbosity: int | None = None
    options: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        """경로 정규화 및 검증."""
        _require(self.path, "path")
        if self.verbosity is not None and not 0 <= self.verbosity <= 3:
            raise ValueError(f"Invalid verbosity: {self.verbosity} (expected 0-3)")
        # frozen 이므로 object.__setattr__ 로 정규화 값 주입
        object.__setattr__(self, "path", _normalize(self.path))
        if self.password_file:
            object.__setattr__(self, "password_file", os.path.normpath(self.password_file))
        if self.cache_dir:
            object.__setattr__(self, "cache_dir", os.path.normpath(self.cache_dir))


def _normalize(location: str) -> str:
    """로컬 경로만 정규화한다. ``s3:host/bucket`` 같은 백엔드 URL 은 그대로 둔다."""
    backend, sep, _ = location.partition(":")
    # Windows 드라이브 문자(C:)는 백엔드가 아니다
    if sep and len(backend) > 1 and "/" not in backend and "\\" not in backend:
        return location
    return os.path.normpath(location)


@dataclass(frozen=True)
class InitOptions:
    """``restic init`` 옵션."""

    copy_from: str | None = None

    def to_arguments(self, platform: str | None = None) -> list[str]:
        """restic 인자 목록 생성."""
        if self.copy_from:
            return ["--from-repo", escape_path(self.copy_from, platform), "--copy-chunker-params"]
        return []


@dataclass(frozen=True)
class BackupOptions:
    """``restic backup`` 옵션.

    ``paths`` 는 필수이며 최소 한 개 이상이어야 한다.
    """

    paths: tuple[str, ...]
    excludes: tuple[str, ...] = ()
    exclude_files: tuple[str, ...] = ()
    exclude_caches: bool = False
    exclude_if_present: tuple[str, ...] = ()
    one_file_system: bool = False
    tags: tuple[str, ...] = ()
    host: str | None = None
    iexcludes: tuple[str, ...] = ()
    ignore_inode: bool = False
    ignore_case: bool = False
    with_atime: bool = False
    dry_run: bool = False

    def __post_init__(self) -> None:
        """검증."""
        _require(self.paths, "paths")

    def to_arguments(self, platform: str | None = None) -> list[str]:
        """restic 인자 목록 생성."""
        args = [escape_path(p, platform) for p in self.paths]

        args.extend(_repeat("--exclude", self.excludes, platform))
        args.extend(_repeat_paths("--exclude-file", self.exclude_files, platform))
        if self.exclude_caches:
            args.append("--exclude-caches")
        args.extend(_repeat("--exclude-if-present", self.exclude_if_present, platform))
        if self.one_file_system:
            args.append("--one-file-system")
        args.extend(_repeat("--tag", self.tags, platform))
        if self.host:
            args.extend(_option("--host", self.host, platform))
        args.extend(_repeat("--iexclude", self.iexcludes, platform))
        if self.ignore_inode:
            args.append("--ignore-inode")
        if self.ignore_case:
            args.append("--ignore-case")
        if self.with_atime:
            args.append("--with-atime")
        if self.dry_run:
            args.append("--dry-run")

        return args


@dataclass(frozen=True)
class RestoreOptions:
    """``restic restore`` 옵션."""

    snapshot_id: str
    target: str
    includes: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()
    host: str | None = None
    tags: tuple[str, ...] = ()
    verify: bool = False
    dry_run: bool = False

    def __post_init__(self) -> None:
        """검증."""
        _require(self.snapshot_id, "snapshot_id")
        _require(self.target, "target")

    def to_arguments(self, platform: str | None = None) -> list[str]:
        """restic 인자 목록 생성."""
        args = [quote_argument(self.snapshot_id, platform), "--target", escape_path(self.target, platform)]
        args.extend(_repeat("--include", self.includes, platform))
        args.extend(_repeat("--exclude", self.excludes, platform))
        if self.host:
            args.extend(_option("--host", self.host, platform))
        args.extend(_repeat("--tag", self.tags, platform))
        if self.verify:
            args.append("--verify")
        if self.dry_run:
            args.append("--dry-run")
        return args


@dataclass(frozen=True)
class ForgetOptions:
    """``restic forget`` 옵션 (스냅샷 ID 지정 또는 보존 정책)."""

    snapshot_ids: tuple[str, ...] = ()
    keep_last: int | None = None
    keep_hourly: int | None = None
    keep_daily: int | None = None
    keep_weekly: int | None = None
    keep_monthly: int | None = None
    keep_yearly: int | None = None
    keep_within: str | None = None
    keep_tags: tuple[str, ...] = ()
    host: str | None = None
    tags: tuple[str, ...] = ()
    paths: tuple[str, ...] = ()
    compact: bool = False
    group_by: str | None = None
    dry_run: bool = False
    prune: bool = False

    def to_arguments(self, platform: str | None = None) -> list[str]:
        """restic 인자 목록 생성."""
        args = [quote_argument(s, platform) for s in self.snapshot_ids]

        # 0 도 유효한 값이므로 None 여부로 판단
        for flag, value in (
            ("--keep-last", self.keep_last),
            ("--keep-hourly", self.keep_hourly),
            ("--keep-daily", self.keep_daily),
            ("--keep-weekly", self.keep_weekly),
            ("--keep-monthly", self.keep_monthly),
            ("--keep-yearly", self.keep_yearly),
        ):
            if value is not None:
                args.extend([flag, str(value)])

        if self.keep_within:
            args.extend(_option("--keep-within", self.keep_within, platform))
        args.extend(_repeat("--keep-tag", self.keep_tags, platform))
        if self.host:
            args.extend(_option("--host", self.host, platform))
        args.extend(_repeat("--tag", self.tags, platform))
        args.extend(_repeat_paths("--path", self.paths, platform))
        if self.compact:
            args.append("--compact")
        if self.group_by:
            args.extend(_option("--group-by", self.group_by, platform))
        if self.dry_run:
            args.append("--dry-run")
        if self.prune:
            args.append("--prune")
        return args


@dataclass(frozen=True)
class PruneOptions:
    """``restic prune`` 옵션."""

    max_unused: str | None = None
    max_repack_size: str | None = None
    repack_cacheable_only: bool = False
    repack_small: bool = False
    dry_run: bool = False

    def to_arguments(self, platform: str | None = None) -> list[str]:
        """restic 인자 목록 생성."""
        args: list[str] = []
        if self.max_unused:
            args.extend(_option("--max-unused", self.max_unused, platform))
        if self.max_repack_size:
            args.extend(_option("--max-repack-size", self.max_repack_size, platform))
        if self.repack_cacheable_only:
            args.append("--repack-cacheable-only")
        if self.repack_small:
            args.append("--repack-small")
        if self.dry_run:
            args.append("--dry-run")
        return args


@dataclass(frozen=True)
class CheckOptions:
    """``restic check`` 옵션."""

    read_data: bool = False
    read_data_subset: str | None = None
    with_cache: bool = False

    def to_arguments(self, platform: str | None = None) -> list[str]:
        """restic 인자 목록 생성."""
        args: list[str] = []
        if self.read_data:
            args.append("--read-data")
        if self.read_data_subset:
            args.extend(_option("--read-data-subset", self.read_data_subset, platform))
        if self.with_cache:
            args.append("--with-cache")
        return args


@dataclass(frozen=True)
class ListOptions:
    """``restic ls`` 옵션."""

    snapshot_id: str
    path: str | None = None
    host: str | None = None
    tags: tuple[str, ...] = ()
    long: bool = False
    recursive: bool = False

    def __post_init__(self) -> None:
        """검증."""
        _require(self.snapshot_id, "snapshot_id")

    def to_arguments(self, platform: str | None = None) -> list[str]:
        """restic 인자 목록 생성."""
        args = [quote_argument(self.snapshot_id, platform)]
        if self.path:
            args.append(escape_path(self.path, platform))
        if self.host:
            args.extend(_option("--host", self.host, platform))
        args.extend(_repeat("--tag", self.tags, platform))
        if self.long:
            args.append("--long")
        if self.recursive:
            args.append("--recursive")
        return args


@dataclass(frozen=True)
class FindOptions:
    """``restic find`` 옵션."""

    patterns: tuple[str, ...]
    ignore_case: bool = False
    long: bool = False
    host: str | None = None
    paths: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    snapshot_id: str | None = None

    def __post_init__(self) -> None:
        """검증."""
        _require(self.patterns, "patterns")

    def to_arguments(self, platform: str | None = None) -> list[str]:
        """restic 인자 목록 생성."""
        args = [quote_argument(p, platform) for p in self.patterns]
        if self.ignore_case:
            args.append("--ignore-case")
        if self.long:
            args.append("--long")
        if self.host:
            args.extend(_option("--host", self.host, platform))
        args.extend(_repeat_paths("--path", self.paths, platform))
        args.extend(_repeat("--tag", self.tags, platform))
        if self.snapshot_id:
            args.extend(_option("--snapshot", self.snapshot_id, platform))
        return args


@dataclass(frozen=True)
class StatsOptions:
    """``restic stats`` 옵션."""

    host: str | None = None
    tags: tuple[str, ...] = ()
    paths: tuple[str, ...] = ()
    mode: StatsMode | None = None

    def to_arguments(self, platform: str | None = None) -> list[str]:
        """restic 인자 목록 생성."""
        args: list[str] = []
        if self.host:
            args.extend(_option("--host", self.host, platform))
        args.extend(_repeat("--tag", self.tags, platform))
        args.extend(_repeat_paths("--path", self.paths, platform))
        if self.mode:
            args.extend(_option("--mode", self.mode, platform))
        return args


@dataclass(frozen=True)
class TagOptions:
    """``restic tag`` 옵션.

    ``action`` 은 ``add`` / ``remove`` / ``set`` 중 하나 (기본 ``set``).
    restic 은 ``--set`` 등이 태그마다 필요하므로 태그별로 플래그를 반복한다.
    """

    snapshot_ids: tuple[str, ...]
    tags: tuple[str, ...]
    action: TagAction = "set"

    def __post_init__(self) -> None:
        """검증."""
        _require(self.snapshot_ids, "snapshot_ids")
        _require(self.tags, "tags")
        if self.action not in ("add", "remove", "set"):
            raise ValueError(f"Invalid tag action: {self.action!r}")

    def to_arguments(self, platform: str | None = None) -> list[str]:
        """restic 인자 목록 생성."""
        args = [quote_argument(s, platform) for s in self.snapshot_ids]
        args.extend(_repeat(f"--{self.action}", self.tags, platform))
        return args


@dataclass(frozen=True)
class MountOptions:
    """``restic mount`` 옵션."""

    mount_point: str
    snapshot_id: str | None = None
    host: str | None = None
    tags: tuple[str, ...] = ()
    paths: tuple[str, ...] = ()
    allow_other: bool = False
    allow_root: bool = False

    def __post_init__(self) -> None:
        """검증."""
        _require(self.mount_point, "mount_point")

    def to_arguments(self, platform: str | None = None) -> list[str]:
        """restic 인자 목록 생성."""
        args = [escape_path(self.mount_point, platform)]
        if self.snapshot_id:
            args.extend(_option("--snapshot", self.snapshot_id, platform))
        if self.host:
            args.extend(_option("--host", self.host, platform))
        args.extend(_repeat("--tag", self.tags, platform))
        args.extend(_repeat_paths("--path", self.paths, platform))
        if self.allow_other:
            args.append("--allow-other")
        if self.allow_root:
            args.append("--allow-root")
        return args


@dataclass(frozen=True)
class DiffOptions:
    """``restic diff`` 옵션."""

    snapshot_id1: str
    snapshot_id2: str
    metadata: bool = False

    def __post_init__(self) -> None:
        """검증."""
        _require(self.snapshot_id1, "snapshot_id1")
        _require(self.snapshot_id2, "snapshot_id2")

    def to_arguments(self, platform: str | None = None) -> list[str]:
        """restic 인자 목록 생성."""
        args = [quote_argument(self.snapshot_id1, platform), quote_argument(self.snapshot_id2, platform)]
        if self.metadata:
            args.append("--metadata")
        return args
