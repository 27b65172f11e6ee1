"""resticpilot CLI 진입점.

restic 서브커맨드를 :class:`~resticpilot.core.repository.Repository` 메서드로
라우팅한다. backup/restore/prune/check 는 스트리밍 모드로 실행하여
status 이벤트로 프로그레스 바를 그린다.

주요 서브커맨드:
    - ``snapshots``: 스냅샷 목록
    - ``backup`` / ``restore``: 백업·복원 (진행률 표시)
    - ``forget`` / ``prune`` / ``check``: 보존 정책·정리·검사
    - ``ls`` / ``find`` / ``stats`` / ``diff`` / ``tag`` / ``mount``
    - ``unlock`` / ``rebuild-index`` / ``init`` / ``version``
    - ``init-config``: 기본 설정 파일 생성
"""

import argparse
import json
import logging
import os
import sys
from collections.abc import Callable
from concurrent.futures import Future
from pathlib import Path

from resticpilot import __version__
from resticpilot.config import (
    apply_config_to_env,
    generate_default_config,
    get_default_binary,
    get_default_cache_dir,
    get_default_config_path,
    get_default_key_hint,
    get_default_no_cache,
    get_default_no_lock,
    get_default_password_file,
    get_default_repository,
    get_default_verbosity,
    load_config,
)
from resticpilot.core.repository import Repository
from resticpilot.models.options import (
    BackupOptions,
    CheckOptions,
    DiffOptions,
    FindOptions,
    ForgetOptions,
    InitOptions,
    ListOptions,
    MountOptions,
    PruneOptions,
    RepositoryOptions,
    RestoreOptions,
    StatsOptions,
    TagOptions,
)
from resticpilot.models.snapshot import Snapshot
from resticpilot.restic.arguments import ENV_RESTIC_PASSWORD
from resticpilot.restic.events import (
    Observers,
    ResticEvent,
    StatusEvent,
    SummaryEvent,
    TextLine,
)
from resticpilot.restic.executor import ResticError, ResticExecutor, get_restic_version
from resticpilot.utils.progress import ProgressBar, format_size, format_time

logger = logging.getLogger(__name__)

# 스트리밍 모드(진행률 표시)로 실행하는 서브커맨드
STREAMING_COMMANDS = frozenset({"backup", "restore", "prune", "check"})


def safe_input(prompt: str) -> str:
    """
    터미널에서 안전하게 입력 받기.

    Args:
        prompt: 입력 프롬프트

    Returns:
        사용자 입력 (strip 적용, EOF 시 빈 문자열)
    """
    sys.stdout.write(prompt)
    sys.stdout.flush()
    try:
        return input().strip()
    except (EOFError, KeyboardInterrupt):
        return ""


def _parse_option(value: str) -> tuple[str, str]:
    """``key=value`` 형식의 ``-o`` 인자 파싱 (값은 비어 있어도 됨)."""
    key, sep, option_value = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"key=value 형식이 아닙니다: {value!r}")
    return key, option_value


def _add_filter_arguments(parser: argparse.ArgumentParser, *, paths: bool = True) -> None:
    """--host / --tag / --path 공통 필터 인자."""
    parser.add_argument("--host", default=None, help="호스트 필터")
    parser.add_argument("--tag", dest="tags", action="append", default=[], help="태그 필터 (반복 가능)")
    if paths:
        parser.add_argument("--path", dest="paths", action="append", default=[], help="경로 필터 (반복 가능)")


def create_parser() -> argparse.ArgumentParser:
    """
    CLI 파서 생성.

    Returns:
        argparse.ArgumentParser 인스턴스
    """
    parser = argparse.ArgumentParser(
        prog="resticpilot",
        description=f"restic 백업 도구를 구동합니다. (v{__version__})",
        epilog=(
            "예시:\n"
            "  resticpilot -r /srv/repo snapshots\n"
            "  resticpilot -r /srv/repo backup ~/Documents --tag daily\n"
            "  resticpilot -r /srv/repo forget --keep-daily 7 --prune"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", default=None, help="설정 파일 경로 (기본: ~/.resticpilot/config.toml)")
    parser.add_argument("-r", "--repo", default=None, help="저장소 위치 (RESTICPILOT_REPOSITORY)")
    parser.add_argument("--password-file", default=None, help="비밀번호 파일 경로")
    parser.add_argument("--cache-dir", default=None, help="캐시 디렉토리")
    parser.add_argument("--key-hint", default=None, help="키 힌트")
    parser.add_argument("--no-cache", action="store_true", default=None, help="로컬 캐시 비활성화")
    parser.add_argument("--no-lock", action="store_true", default=None, help="저장소 잠금 생략")
    parser.add_argument(
        "--verbosity",
        type=int,
        choices=[0, 1, 2, 3],
        default=None,
        help="restic 상세 수준 (기본: 1)",
    )
    parser.add_argument("--restic-binary", default=None, help="restic 실행 파일 (기본: restic)")
    parser.add_argument(
        "-o",
        "--option",
        dest="options",
        type=_parse_option,
        action="append",
        default=[],
        help="추가 restic 옵션 key=value (반복 가능)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="상세 로그 출력")
    parser.add_argument("--json", action="store_true", help="이벤트를 JSON 라인으로 출력")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    sub.add_parser("init-config", help="기본 설정 파일 생성")
    sub.add_parser("version", help="restic 버전 출력")
    sub.add_parser("snapshots", help="스냅샷 목록")
    sub.add_parser("unlock", help="오래된 잠금 해제")
    sub.add_parser("rebuild-index", help="인덱스 재구성")

    p = sub.add_parser("init", help="저장소 초기화")
    p.add_argument("--copy-from", default=None, help="chunker 파라미터를 복사할 저장소")

    p = sub.add_parser("backup", help="백업 생성")
    p.add_argument("paths", nargs="+", help="백업 대상 경로")
    p.add_argument("--exclude", dest="excludes", action="append", default=[], help="제외 패턴")
    p.add_argument("--exclude-file", dest="exclude_files", action="append", default=[], help="제외 패턴 파일")
    p.add_argument("--exclude-caches", action="store_true", help="CACHEDIR.TAG 디렉토리 제외")
    p.add_argument("--exclude-if-present", action="append", default=[], help="해당 파일이 있으면 제외")
    p.add_argument("--one-file-system", action="store_true", help="파일시스템 경계를 넘지 않음")
    p.add_argument("--tag", dest="tags", action="append", default=[], help="스냅샷 태그")
    p.add_argument("--host", default=None, help="호스트 이름")
    p.add_argument("--iexclude", dest="iexcludes", action="append", default=[], help="대소문자 무시 제외 패턴")
    p.add_argument("--ignore-inode", action="store_true", help="inode 변경 무시")
    p.add_argument("--ignore-case", action="store_true", help="대소문자 무시")
    p.add_argument("--with-atime", action="store_true", help="atime 저장")
    p.add_argument("--dry-run", action="store_true", help="실제로 저장하지 않음")

    p = sub.add_parser("restore", help="스냅샷 복원")
    p.add_argument("snapshot_id", help="스냅샷 ID (또는 latest)")
    p.add_argument("--target", required=True, help="복원 대상 디렉토리")
    p.add_argument("--include", dest="includes", action="append", default=[], help="포함 패턴")
    p.add_argument("--exclude", dest="excludes", action="append", default=[], help="제외 패턴")
    _add_filter_arguments(p, paths=False)
    p.add_argument("--verify", action="store_true", help="복원 후 검증")
    p.add_argument("--dry-run", action="store_true", help="실제로 복원하지 않음")

    p = sub.add_parser("forget", help="스냅샷 삭제 (ID 또는 보존 정책)")
    p.add_argument("snapshot_ids", nargs="*", default=[], help="삭제할 스냅샷 ID")
    for period in ("last", "hourly", "daily", "weekly", "monthly", "yearly"):
        p.add_argument(f"--keep-{period}", type=int, default=None, help=f"keep-{period} 정책")
    p.add_argument("--keep-within", default=None, help="기간 내 스냅샷 보존 (예: 1y2m)")
    p.add_argument("--keep-tag", dest="keep_tags", action="append", default=[], help="태그가 있는 스냅샷 보존")
    _add_filter_arguments(p)
    p.add_argument("--compact", action="store_true", help="간략 출력")
    p.add_argument("--group-by", default=None, help="그룹 기준 (host,paths,tags)")
    p.add_argument("--dry-run", action="store_true", help="실제로 삭제하지 않음")
    p.add_argument("--prune", action="store_true", help="삭제 후 prune 실행")

    p = sub.add_parser("prune", help="참조되지 않는 데이터 정리")
    p.add_argument("--max-unused", default=None, help="허용 미사용 공간 (예: 5%%)")
    p.add_argument("--max-repack-size", default=None, help="최대 repack 크기")
    p.add_argument("--repack-cacheable-only", action="store_true", help="캐시 가능한 팩만 repack")
    p.add_argument("--repack-small", action="store_true", help="작은 팩 repack")
    p.add_argument("--dry-run", action="store_true", help="실제로 정리하지 않음")

    p = sub.add_parser("check", help="저장소 무결성 검사")
    p.add_argument("--read-data", action="store_true", help="모든 데이터 읽기")
    p.add_argument("--read-data-subset", default=None, help="일부 데이터만 읽기 (예: 1/5)")
    p.add_argument("--with-cache", action="store_true", help="로컬 캐시 사용")

    p = sub.add_parser("ls", help="스냅샷 파일 목록")
    p.add_argument("snapshot_id", help="스냅샷 ID")
    p.add_argument("path", nargs="?", default=None, help="조회할 경로")
    _add_filter_arguments(p, paths=False)
    p.add_argument("--long", action="store_true", help="상세 출력")
    p.add_argument("--recursive", action="store_true", help="하위 디렉토리 포함")

    p = sub.add_parser("find", help="스냅샷에서 파일 검색")
    p.add_argument("patterns", nargs="+", help="검색 패턴")
    p.add_argument("--ignore-case", action="store_true", help="대소문자 무시")
    p.add_argument("--long", action="store_true", help="상세 출력")
    _add_filter_arguments(p)
    p.add_argument("--snapshot", dest="snapshot_id", default=None, help="검색할 스냅샷 ID")

    p = sub.add_parser("stats", help="저장소 통계")
    _add_filter_arguments(p)
    p.add_argument(
        "--mode",
        choices=["restore-size", "files-by-contents", "blobs-per-file", "raw-data"],
        default=None,
        help="집계 방식",
    )

    p = sub.add_parser("tag", help="스냅샷 태그 변경")
    p.add_argument("snapshot_ids", nargs="+", help="대상 스냅샷 ID")
    p.add_argument("--tag", dest="tags", action="append", required=True, help="태그 (반복 가능)")
    p.add_argument("--action", choices=["add", "remove", "set"], default="set", help="태그 동작 (기본: set)")

    p = sub.add_parser("diff", help="두 스냅샷 비교")
    p.add_argument("snapshot_id1", help="기준 스냅샷")
    p.add_argument("snapshot_id2", help="비교 스냅샷")
    p.add_argument("--metadata", action="store_true", help="메타데이터 변경 포함")

    p = sub.add_parser("mount", help="저장소 FUSE 마운트")
    p.add_argument("mount_point", help="마운트 지점")
    p.add_argument("--snapshot", dest="snapshot_id", default=None, help="특정 스냅샷만 마운트")
    _add_filter_arguments(p)
    p.add_argument("--allow-other", action="store_true", help="다른 사용자 접근 허용")
    p.add_argument("--allow-root", action="store_true", help="root 접근 허용")

    return parser


def setup_logging(verbose: bool = False) -> None:
    """
    로깅 설정.

    Args:
        verbose: 상세 로그 여부
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def cmd_init_config() -> None:
    """
    init-config 서브커맨드 처리.

    기본 설정 파일(config.toml) 템플릿을 생성합니다.
    """
    config_path = get_default_config_path()

    if config_path.exists():
        response = safe_input(f"이미 존재합니다: {config_path}\n덮어쓰시겠습니까? (y/N): ")
        if response.lower() not in ("y", "yes"):
            print("취소됨")
            return

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(generate_default_config())
    print(f"설정 파일 생성됨: {config_path}")


def build_repository(args: argparse.Namespace) -> Repository:
    """
    CLI 인자와 환경변수 기본값으로 :class:`Repository` 생성.

    비밀번호는 ``RESTIC_PASSWORD`` 환경변수에서만 읽는다.
    """
    repository = args.repo or get_default_repository()
    if not repository:
        raise ValueError("저장소가 지정되지 않았습니다 (-r 또는 RESTICPILOT_REPOSITORY)")

    options = RepositoryOptions(
        path=repository,
        password=os.environ.get(ENV_RESTIC_PASSWORD) or None,
        password_file=args.password_file or get_default_password_file(),
        key_hint=args.key_hint or get_default_key_hint(),
        no_cache=args.no_cache if args.no_cache is not None else get_default_no_cache(),
        cache_dir=args.cache_dir or get_default_cache_dir(),
        no_lock=args.no_lock if args.no_lock is not None else get_default_no_lock(),
        verbosity=args.verbosity if args.verbosity is not None else get_default_verbosity(),
        options=dict(args.options),
    )
    executor = ResticExecutor(binary=args.restic_binary or get_default_binary())
    return Repository(options, executor=executor)


def _print_event(event: ResticEvent | TextLine) -> None:
    """이벤트 하나를 JSON 라인으로 출력."""
    if isinstance(event, TextLine):
        print(json.dumps({"message_type": "text", "text": event.text}, ensure_ascii=False))
    else:
        print(json.dumps(event.data, ensure_ascii=False))


def _print_summary(summary: SummaryEvent) -> None:
    """summary 이벤트를 사람이 읽기 쉬운 형태로 출력."""
    print("\n✅ 완료")
    if summary.snapshot_id:
        print(f"📸 스냅샷: {summary.snapshot_id}")
    if summary.total_files_processed:
        print(f"📁 처리한 파일: {summary.total_files_processed} ({format_size(summary.total_bytes_processed)})")
    if summary.files_new or summary.files_changed:
        print(
            f"   새 파일 {summary.files_new} / 변경 {summary.files_changed} "
            f"/ 변경 없음 {summary.files_unmodified}"
        )
    if summary.data_added:
        print(f"💾 추가된 데이터: {format_size(summary.data_added)}")
    if summary.total_duration:
        print(f"⏱️  소요 시간: {format_time(summary.total_duration)}")


def _print_snapshots(snapshots: list[Snapshot]) -> None:
    """스냅샷 목록 표 출력."""
    if not snapshots:
        print("스냅샷이 없습니다.")
        return
    print(f"{'ID':<10} {'시각':<20} {'호스트':<16} {'태그':<20} 경로")
    print("-" * 80)
    for snapshot in snapshots:
        time_str = snapshot.time.strftime("%Y-%m-%d %H:%M:%S") if snapshot.time else "-"
        print(
            f"{snapshot.short_id:<10} {time_str:<20} {snapshot.hostname:<16} "
            f"{','.join(snapshot.tags):<20} {', '.join(snapshot.paths)}"
        )
    print(f"\n총 {len(snapshots)}개 스냅샷")


def make_observers(output_json: bool, progress_bar: ProgressBar | None = None) -> Observers:
    """
    스트리밍 모드 콜백 생성.

    Args:
        output_json: 모든 이벤트를 JSON 라인으로 출력할지 여부
        progress_bar: status 이벤트를 그릴 프로그레스 바 (JSON 모드에서는 무시)
    """

    def on_progress(event: ResticEvent | TextLine) -> None:
        if output_json:
            _print_event(event)
        elif isinstance(event, StatusEvent) and progress_bar is not None:
            progress_bar.update(event)

    def on_summary(summary: SummaryEvent) -> None:
        if output_json:
            _print_event(summary)
            return
        if progress_bar is not None:
            progress_bar.finish()
        _print_summary(summary)

    def on_error(error: object) -> None:
        # 최종 실패는 main 에서 출력한다
        if isinstance(error, str):
            logger.debug("restic stderr: %s", error)

    return Observers(on_progress=on_progress, on_summary=on_summary, on_error=on_error)


def dispatch(repository: Repository, args: argparse.Namespace) -> None:
    """서브커맨드를 :class:`Repository` 메서드로 라우팅하고 결과를 출력한다."""
    command = args.command

    if command == "snapshots":
        snapshots = repository.load_snapshots()
        if args.json:
            for snapshot in snapshots:
                print(json.dumps({"id": snapshot.id, "short_id": snapshot.short_id}))
        else:
            _print_snapshots(snapshots)
        return

    observers: Observers | None = None
    if command in STREAMING_COMMANDS:
        progress_bar = None if args.json else ProgressBar(desc=command)
        observers = make_observers(args.json, progress_bar)

    handlers: dict[str, Callable[[], list[ResticEvent] | Future[list[ResticEvent]]]] = {
        "init": lambda: repository.init(InitOptions(copy_from=args.copy_from)),
        "backup": lambda: repository.backup(
            BackupOptions(
                paths=tuple(args.paths),
                excludes=tuple(args.excludes),
                exclude_files=tuple(args.exclude_files),
                exclude_caches=args.exclude_caches,
                exclude_if_present=tuple(args.exclude_if_present),
                one_file_system=args.one_file_system,
                tags=tuple(args.tags),
                host=args.host,
                iexcludes=tuple(args.iexcludes),
                ignore_inode=args.ignore_inode,
                ignore_case=args.ignore_case,
                with_atime=args.with_atime,
                dry_run=args.dry_run,
            ),
            observers,
        ),
        "restore": lambda: repository.restore(
            RestoreOptions(
                snapshot_id=args.snapshot_id,
                target=args.target,
                includes=tuple(args.includes),
                excludes=tuple(args.excludes),
                host=args.host,
                tags=tuple(args.tags),
                verify=args.verify,
                dry_run=args.dry_run,
            ),
            observers,
        ),
        "forget": lambda: repository.forget(
            ForgetOptions(
                snapshot_ids=tuple(args.snapshot_ids),
                keep_last=args.keep_last,
                keep_hourly=args.keep_hourly,
                keep_daily=args.keep_daily,
                keep_weekly=args.keep_weekly,
                keep_monthly=args.keep_monthly,
                keep_yearly=args.keep_yearly,
                keep_within=args.keep_within,
                keep_tags=tuple(args.keep_tags),
                host=args.host,
                tags=tuple(args.tags),
                paths=tuple(args.paths),
                compact=args.compact,
                group_by=args.group_by,
                dry_run=args.dry_run,
                prune=args.prune,
            )
        ),
        "prune": lambda: repository.prune(
            PruneOptions(
                max_unused=args.max_unused,
                max_repack_size=args.max_repack_size,
                repack_cacheable_only=args.repack_cacheable_only,
                repack_small=args.repack_small,
                dry_run=args.dry_run,
            ),
            observers,
        ),
        "check": lambda: repository.check(
            CheckOptions(
                read_data=args.read_data,
                read_data_subset=args.read_data_subset,
                with_cache=args.with_cache,
            ),
            observers,
        ),
        "ls": lambda: repository.list_files(
            ListOptions(
                snapshot_id=args.snapshot_id,
                path=args.path,
                host=args.host,
                tags=tuple(args.tags),
                long=args.long,
                recursive=args.recursive,
            )
        ),
        "find": lambda: repository.find_files(
            FindOptions(
                patterns=tuple(args.patterns),
                ignore_case=args.ignore_case,
                long=args.long,
                host=args.host,
                paths=tuple(args.paths),
                tags=tuple(args.tags),
                snapshot_id=args.snapshot_id,
            )
        ),
        "stats": lambda: repository.get_stats(
            StatsOptions(host=args.host, tags=tuple(args.tags), paths=tuple(args.paths), mode=args.mode)
        ),
        "tag": lambda: repository.update_tags(
            TagOptions(snapshot_ids=tuple(args.snapshot_ids), tags=tuple(args.tags), action=args.action)
        ),
        "diff": lambda: repository.diff(
            DiffOptions(snapshot_id1=args.snapshot_id1, snapshot_id2=args.snapshot_id2, metadata=args.metadata)
        ),
        "mount": lambda: repository.mount(
            MountOptions(
                mount_point=args.mount_point,
                snapshot_id=args.snapshot_id,
                host=args.host,
                tags=tuple(args.tags),
                paths=tuple(args.paths),
                allow_other=args.allow_other,
                allow_root=args.allow_root,
            )
        ),
        "unlock": repository.unlock,
        "rebuild-index": repository.rebuild_index,
    }

    result = handlers[command]()
    if isinstance(result, Future):
        # 콜백이 진행 상황을 출력하고, 여기서는 완료만 기다린다
        result.result()
        return

    for event in result:
        _print_event(event)


def main(argv: list[str] | None = None) -> int:
    """CLI 진입점.

    인자를 파싱하고 설정 파일을 로드한 뒤, 요청된 서브커맨드를
    :func:`dispatch` 로 라우팅한다.

    Returns:
        프로세스 종료 코드 (restic 실패 시 restic 의 종료 코드)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # init-config 처리 (가장 먼저, 로깅/설정 로드 전)
    if args.command == "init-config":
        cmd_init_config()
        return 0

    # 설정 파일 로드 및 환경변수 적용
    config_path = Path(args.config) if args.config else None
    config = load_config(config_path)
    apply_config_to_env(config)

    setup_logging(args.verbose)

    if args.command == "version":
        binary = args.restic_binary or get_default_binary()
        print(f"resticpilot {__version__}")
        print(f"restic {get_restic_version(binary)}")
        return 0

    try:
        repository = build_repository(args)
        dispatch(repository, args)
    except ValueError as e:
        parser.error(str(e))
    except ResticError as e:
        logger.error(f"restic failed: {e}")
        print(f"\n❌ restic 실행 실패 (exit code {e.exit_code})", file=sys.stderr)
        print(f"   명령: {e.command}", file=sys.stderr)
        if e.stderr:
            print(e.stderr.rstrip(), file=sys.stderr)
        return e.exit_code if e.exit_code > 0 else 1
    except KeyboardInterrupt:
        print("\n중단됨", file=sys.stderr)
        return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
