"""shell.py run_cmd / LocalExecutor 单元测试"""

from __future__ import annotations

import os
import sys

import pytest

from candi.core.exceptions import ToolInvocationError
from candi.utils.shell import (
    COMMAND_NOT_FOUND,
    LocalExecutor,
    get_executor,
    run_cmd,
    set_executor,
)


class TestRunCmd:
    def test_success(self, tmp_path) -> None:
        r = run_cmd("echo hello", cwd=str(tmp_path), label="test",
                    executor=LocalExecutor())
        assert r.returncode == 0
        assert "hello" in r.stdout

    def test_failure_raises_with_exit_status(self, tmp_path) -> None:
        with pytest.raises(ToolInvocationError, match="cmd失败") as exc_info:
            run_cmd(["sh", "-c", "exit 3"], cwd=str(tmp_path), executor=LocalExecutor())
        assert exc_info.value.exit_status == 3

    def test_label_and_package_in_error(self, tmp_path) -> None:
        with pytest.raises(ToolInvocationError) as exc_info:
            run_cmd("false", cwd=str(tmp_path), label="configure", package="p4est",
                    executor=LocalExecutor())
        err = exc_info.value
        assert err.step == "configure"
        assert err.package == "p4est"
        assert str(err).startswith("[p4est:configure] configure失败")

    def test_env_passed(self, tmp_path) -> None:
        env = {**os.environ, "MY_TEST_VAR": "42"}
        r = run_cmd("env", cwd=str(tmp_path), env=env, label="env_test",
                    executor=LocalExecutor())
        assert "MY_TEST_VAR=42" in r.stdout

    def test_missing_program(self, tmp_path) -> None:
        with pytest.raises(ToolInvocationError) as exc_info:
            run_cmd(["definitely-not-a-real-tool-xyz"], cwd=str(tmp_path),
                    executor=LocalExecutor())
        assert exc_info.value.exit_status == COMMAND_NOT_FOUND

    def test_undecodable_output_still_reports_status(self, tmp_path) -> None:
        script = "import sys; sys.stdout.buffer.write(b'\\xff\\xfe ok'); sys.exit(2)"
        r = LocalExecutor().execute([sys.executable, "-c", script], cwd=str(tmp_path))
        assert r.returncode == 2
        assert r.stdout.endswith(" ok")
        assert "\ufffd" in r.stdout

    def test_failure_log_written(self, tmp_path) -> None:
        with pytest.raises(ToolInvocationError) as exc_info:
            run_cmd(
                ["sh", "-c", "echo checking mpi; echo no mpi.h >&2; exit 1"],
                cwd=str(tmp_path), label="configure", package="p4est",
                executor=LocalExecutor(), log_dir=tmp_path / "logs",
            )
        log_file = tmp_path / "logs" / "configure.log"
        text = log_file.read_text(encoding="utf-8")
        assert "checking mpi" in text
        assert "no mpi.h" in text
        assert str(log_file) in str(exc_info.value)

    def test_no_log_without_log_dir(self, tmp_path) -> None:
        with pytest.raises(ToolInvocationError):
            run_cmd("false", cwd=str(tmp_path), executor=LocalExecutor())
        assert list(tmp_path.iterdir()) == []


class TestDefaultExecutor:
    def test_set_and_restore(self, executor) -> None:
        original = get_executor()
        fake = executor
        set_executor(fake)
        try:
            run_cmd(["cmake", "--version"])
            assert fake.lines == ["cmake --version"]
        finally:
            set_executor(original)
        assert get_executor() is original
