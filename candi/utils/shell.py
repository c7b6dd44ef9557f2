"""Shell 命令执行工具 — 统一子进程调用

通过 CommandExecutor 协议抽象子进程执行，安装描述和 spack 封装
都只依赖 "执行命令、观察退出码、可选读取输出" 这一契约，方便测试替换。
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from candi.core.exceptions import ToolInvocationError

logger = logging.getLogger(__name__)

# 找不到命令时沿用 shell 的约定退出码
COMMAND_NOT_FOUND = 127


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议 — 抽象子进程调用

    测试时注入记录型实现即可，无需 patch subprocess。
    """

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        """执行命令并返回结果"""
        ...

    def which(self, program: str) -> str | None:
        """查找可执行文件，找不到返回 None"""
        ...


# =========================================================================
# 默认实现: 本地执行器
# =========================================================================

class LocalExecutor:
    """本地子进程执行器（默认实现）"""

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        args = shlex.split(cmd) if isinstance(cmd, str) else cmd
        try:
            r = subprocess.run(
                args, capture_output=True, text=True,
                encoding="utf-8", errors="replace",
                cwd=cwd, env=env, check=False, timeout=timeout,
            )
        except FileNotFoundError as e:
            return CommandResult(
                returncode=COMMAND_NOT_FOUND, stdout="", stderr=str(e),
            )
        return CommandResult(
            returncode=r.returncode,
            stdout=r.stdout,
            stderr=r.stderr,
        )

    def which(self, program: str) -> str | None:
        return shutil.which(program)


# =========================================================================
# 全局默认执行器（可替换）
# =========================================================================

_default_executor: CommandExecutor = LocalExecutor()


def get_executor() -> CommandExecutor:
    """获取全局默认命令执行器"""
    return _default_executor


def set_executor(executor: CommandExecutor) -> None:
    """替换全局默认命令执行器（用于测试）"""
    global _default_executor  # noqa: PLW0603
    _default_executor = executor


# =========================================================================
# 便捷函数
# =========================================================================

def format_cmd(cmd: str | list[str]) -> str:
    return cmd if isinstance(cmd, str) else shlex.join(cmd)


def write_step_log(
    log_dir: str | Path, label: str, cmd: str | list[str], result: CommandResult,
) -> Path:
    """保存失败步骤的完整输出，供排查"""
    path = Path(log_dir) / f"{label.replace(' ', '_')}.log"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        f"$ {format_cmd(cmd)}\n"
        f"# exit status {result.returncode}\n"
        f"## stdout\n{result.stdout}\n"
        f"## stderr\n{result.stderr}\n",
        encoding="utf-8",
    )
    return path


def run_cmd(
    cmd: str | list[str], *,
    cwd: str = ".",
    env: dict[str, str] | None = None,
    label: str = "cmd",
    package: str = "",
    executor: CommandExecutor | None = None,
    log_dir: str | Path | None = None,
) -> CommandResult:
    """执行命令，非零退出码抛 ToolInvocationError

    Args:
        cmd: 命令字符串或参数列表
        cwd: 工作目录
        env: 完整环境变量（不传则继承当前进程）
        label: 步骤名，写入日志和异常
        package: 所属包名，写入日志和异常
        executor: 命令执行器，不传则使用全局默认执行器
        log_dir: 失败时把完整 stdout/stderr 写入 <log_dir>/<label>.log
    """
    executor = executor or get_executor()
    logger.info(
        "  %s: %s (cwd=%s)", label, format_cmd(cmd), cwd,
        extra={"package": package, "step": label},
    )
    r = executor.execute(cmd, cwd=cwd, env=env)
    if not r.success:
        detail = (r.stderr or r.stdout)[-500:]
        if log_dir is not None:
            log_file = write_step_log(log_dir, label, cmd, r)
            detail = f"完整输出: {log_file}\n{detail}"
        raise ToolInvocationError(
            f"{label}失败: {format_cmd(cmd)}\n{detail}".rstrip(),
            exit_status=r.returncode, package=package, step=label,
        )
    return r
