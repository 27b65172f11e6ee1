"""서브커맨드 옵션 모델 테스트."""

import os

import pytest

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


class TestRepositoryOptions:
    """RepositoryOptions 테스트."""

    def test_normalizes_local_path(self) -> None:
        """로컬 경로 정규화."""
        options = RepositoryOptions(path="/srv//restic/./repo/")

        assert options.path == os.path.normpath("/srv//restic/./repo/")

    @pytest.mark.parametrize("location", ["s3:s3.amazonaws.com/bucket", "sftp:user@host:/srv/repo", "rest:http://h/"])
    def test_keeps_backend_url(self, location: str) -> None:
        """백엔드 URL 은 그대로."""
        assert RepositoryOptions(path=location).path == location

    def test_requires_path(self) -> None:
        """경로 필수."""
        with pytest.raises(ValueError, match="path"):
            RepositoryOptions(path="")

    def test_invalid_verbosity(self) -> None:
        """verbosity 범위 검증."""
        with pytest.raises(ValueError, match="verbosity"):
            RepositoryOptions(path="/r", verbosity=5)

    def test_hashable_with_options(self) -> None:
        """추가 옵션이 있어도 해시 가능, 동등 비교에는 반영."""
        first = RepositoryOptions(path="/r", options={"limit-upload": "100"})
        second = RepositoryOptions(path="/r", options={"limit-upload": "200"})

        assert hash(first) == hash(RepositoryOptions(path="/r", options={"limit-upload": "100"}))
        assert first != second
        assert len({first, second}) == 2


class TestInitOptions:
    """InitOptions 테스트."""

    def test_default_empty(self) -> None:
        """기본값은 인자 없음."""
        assert InitOptions().to_arguments("linux") == []

    def test_copy_chunker_params(self) -> None:
        """다른 저장소의 chunker 파라미터 복사."""
        args = InitOptions(copy_from="/srv/old repo").to_arguments("linux")

        assert args == ["--from-repo", "/srv/old\\ repo", "--copy-chunker-params"]


class TestBackupOptions:
    """BackupOptions 테스트."""

    def test_requires_paths(self) -> None:
        """백업 경로 필수."""
        with pytest.raises(ValueError, match="paths"):
            BackupOptions(paths=())

    def test_arguments(self) -> None:
        """경로는 이스케이프, 패턴은 셸 인용."""
        options = BackupOptions(
            paths=("/home/me/My Docs", "/etc"),
            excludes=("*.tmp",),
            exclude_files=("/etc/restic/excludes list",),
            exclude_caches=True,
            tags=("daily", "laptop"),
            host="laptop",
            one_file_system=True,
            dry_run=True,
        )

        assert options.to_arguments("linux") == [
            "/home/me/My\\ Docs",
            "/etc",
            "--exclude",
            "'*.tmp'",
            "--exclude-file",
            "/etc/restic/excludes\\ list",
            "--exclude-caches",
            "--one-file-system",
            "--tag",
            "daily",
            "--tag",
            "laptop",
            "--host",
            "laptop",
            "--dry-run",
        ]

    def test_windows_paths(self) -> None:
        """Windows 경로는 큰따옴표."""
        args = BackupOptions(paths=(r"C:\Users\A B",)).to_arguments("win32")

        assert args == [r'"C:\Users\A B"']

    def test_tag_and_host_quoted(self) -> None:
        """공백·셸 메타문자가 든 태그와 호스트는 한 토큰으로 인용."""
        options = BackupOptions(paths=("/data",), tags=("my tag",), host="a;echo INJECTED>&2")

        assert options.to_arguments("linux") == [
            "/data",
            "--tag",
            "'my tag'",
            "--host",
            "'a;echo INJECTED>&2'",
        ]

    def test_windows_patterns_quoted(self) -> None:
        """Windows 에서는 패턴도 큰따옴표."""
        args = BackupOptions(paths=("C:\\data",), excludes=("*.log",)).to_arguments("win32")

        assert args == ['"C:\\data"', "--exclude", '"*.log"']


class TestRestoreOptions:
    """RestoreOptions 테스트."""

    def test_arguments(self) -> None:
        """스냅샷, 대상, 필터."""
        options = RestoreOptions(
            snapshot_id="latest",
            target="/tmp/restore here",
            includes=("/docs",),
            verify=True,
        )

        assert options.to_arguments("linux") == [
            "latest",
            "--target",
            "/tmp/restore\\ here",
            "--include",
            "/docs",
            "--verify",
        ]

    @pytest.mark.parametrize(("snapshot_id", "target"), [("", "/t"), ("latest", "")])
    def test_required_fields(self, snapshot_id: str, target: str) -> None:
        """스냅샷 ID 와 대상 필수."""
        with pytest.raises(ValueError):
            RestoreOptions(snapshot_id=snapshot_id, target=target)


class TestForgetOptions:
    """ForgetOptions 테스트."""

    def test_snapshot_ids(self) -> None:
        """ID 지정 삭제."""
        assert ForgetOptions(snapshot_ids=("a1", "b2")).to_arguments("linux") == ["a1", "b2"]

    def test_policy(self) -> None:
        """보존 정책 (0 도 유효)."""
        options = ForgetOptions(
            keep_last=0,
            keep_daily=7,
            keep_within="1y",
            keep_tags=("keep",),
            paths=("/home/a b",),
            group_by="host,paths",
            prune=True,
        )

        assert options.to_arguments("linux") == [
            "--keep-last",
            "0",
            "--keep-daily",
            "7",
            "--keep-within",
            "1y",
            "--keep-tag",
            "keep",
            "--path",
            "/home/a\\ b",
            "--group-by",
            "host,paths",
            "--prune",
        ]


class TestMaintenanceOptions:
    """prune / check 옵션 테스트."""

    def test_prune(self) -> None:
        """prune 인자."""
        options = PruneOptions(max_unused="5%", repack_small=True, dry_run=True)

        assert options.to_arguments("linux") == ["--max-unused", "5%", "--repack-small", "--dry-run"]

    def test_check(self) -> None:
        """check 인자."""
        options = CheckOptions(read_data_subset="1/5", with_cache=True)

        assert options.to_arguments("linux") == ["--read-data-subset", "1/5", "--with-cache"]

    def test_defaults_empty(self) -> None:
        """기본값은 인자 없음."""
        assert PruneOptions().to_arguments() == []
        assert CheckOptions().to_arguments() == []
        assert StatsOptions().to_arguments() == []


class TestQueryOptions:
    """ls / find / stats / diff 옵션 테스트."""

    def test_list(self) -> None:
        """ls 인자."""
        options = ListOptions(snapshot_id="abc", path="/home/a b", long=True)

        assert options.to_arguments("linux") == ["abc", "/home/a\\ b", "--long"]

    def test_find(self) -> None:
        """find 인자."""
        options = FindOptions(patterns=("*.jpg", "*.png"), ignore_case=True, snapshot_id="abc")

        assert options.to_arguments("linux") == ["'*.jpg'", "'*.png'", "--ignore-case", "--snapshot", "abc"]

    def test_find_requires_patterns(self) -> None:
        """find 패턴 필수."""
        with pytest.raises(ValueError, match="patterns"):
            FindOptions(patterns=())

    def test_stats_mode(self) -> None:
        """stats 집계 방식."""
        assert StatsOptions(mode="raw-data").to_arguments("linux") == ["--mode", "raw-data"]

    def test_diff(self) -> None:
        """diff 인자."""
        assert DiffOptions("a", "b", metadata=True).to_arguments("linux") == ["a", "b", "--metadata"]

    def test_snapshot_ids_quoted(self) -> None:
        """스냅샷 ID 위치 인자도 셸 인용."""
        assert DiffOptions("a b", "c").to_arguments("linux") == ["'a b'", "c"]
        assert TagOptions(snapshot_ids=("x;y",), tags=("t",)).to_arguments("linux") == ["'x;y'", "--set", "t"]

    def test_diff_requires_both(self) -> None:
        """두 스냅샷 모두 필수."""
        with pytest.raises(ValueError, match="snapshot_id2"):
            DiffOptions("a", "")


class TestTagOptions:
    """TagOptions 테스트."""

    def test_default_action_is_set(self) -> None:
        """기본 동작은 set, 태그마다 플래그 반복."""
        options = TagOptions(snapshot_ids=("abc",), tags=("daily", "keep"))

        assert options.to_arguments("linux") == ["abc", "--set", "daily", "--set", "keep"]

    @pytest.mark.parametrize("action", ["add", "remove"])
    def test_actions(self, action: str) -> None:
        """add / remove 동작."""
        options = TagOptions(snapshot_ids=("a", "b"), tags=("x",), action=action)  # type: ignore[arg-type]

        assert options.to_arguments("linux") == ["a", "b", f"--{action}", "x"]

    def test_invalid_action(self) -> None:
        """알 수 없는 동작은 ValueError."""
        with pytest.raises(ValueError, match="tag action"):
            TagOptions(snapshot_ids=("a",), tags=("x",), action="rename")  # type: ignore[arg-type]

    def test_requires_tags(self) -> None:
        """태그 필수."""
        with pytest.raises(ValueError, match="tags"):
            TagOptions(snapshot_ids=("a",), tags=())


class TestMountOptions:
    """MountOptions 테스트."""

    def test_arguments(self) -> None:
        """마운트 지점 이스케이프."""
        options = MountOptions(mount_point="/mnt/restic view", snapshot_id="abc", allow_other=True)

        assert options.to_arguments("linux") == [
            "/mnt/restic\\ view",
            "--snapshot",
            "abc",
            "--allow-other",
        ]
