"""共享 fixture — 记录型命令执行器 + 安装上下文工厂

FakeExecutor 实现 CommandExecutor 协议，只记录命令不真正执行:
  fail_on:  命令行包含该子串时返回指定退出码
  outputs:  命令行包含该子串时返回指定 stdout
  tools:    which() 能找到的程序
"""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import Any

import pytest

from candi.core.models import CompilerSpec, InstallContext
from candi.utils.shell import CommandResult

DEFAULT_TOOLS = ("git", "wget", "spack", "mpicc", "mpicxx", "mpif90", "mpif77")


class FakeExecutor:
    def __init__(
        self,
        fail_on: dict[str, int] | None = None,
        outputs: dict[str, str] | None = None,
        tools: tuple[str, ...] = DEFAULT_TOOLS,
    ) -> None:
        self.fail_on = dict(fail_on or {})
        self.outputs = dict(outputs or {})
        self.tools = set(tools)
        self.calls: list[list[str]] = []
        self.cwds: list[str] = []

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        args = shlex.split(cmd) if isinstance(cmd, str) else list(cmd)
        self.calls.append(args)
        self.cwds.append(cwd)
        line = shlex.join(args)
        for pattern, rc in self.fail_on.items():
            if pattern in line:
                return CommandResult(rc, "", f"{pattern} failed")
        out = next((v for k, v in self.outputs.items() if k in line), "")
        return CommandResult(0, out, "")

    def which(self, program: str) -> str | None:
        if program in self.tools:
            return f"/usr/bin/{program}"
        return None

    @property
    def lines(self) -> list[str]:
        return [shlex.join(c) for c in self.calls]

    def count(self, pattern: str) -> int:
        return sum(1 for line in self.lines if pattern in line)


@pytest.fixture()
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture()
def make_ctx(tmp_path: Path, executor: FakeExecutor):
    """InstallContext 工厂，关键字参数覆盖默认字段

    用法:
        ctx = make_ctx(settings={"use_64bit_indices": True})
    """

    def _make(**overrides: Any) -> InstallContext:
        fields: dict[str, Any] = {
            "install_root": tmp_path / "prefix",
            "build_root": tmp_path / "prefix" / "tmp" / "build",
            "source_root": tmp_path / "prefix" / "tmp" / "src",
            "jobs": 4,
            "compiler": CompilerSpec("gcc", "13.2.0"),
            "executor": executor,
        }
        fields.update(overrides)
        return InstallContext(**fields)

    return _make
