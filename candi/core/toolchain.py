"""编译器 / 工具链选择

  - check_prerequisites: 安装前检查外部工具是否可用
  - detect_compilers:    源码安装路径，解析 CC/CXX/FC/FF（不修改 os.environ）
  - ensure_compiler:     spack 安装路径，确保请求的编译器已被 spack 安装并注册
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from candi.core.exceptions import ToolInvocationError
from candi.core.models import CompilerSpec
from candi.utils.shell import COMMAND_NOT_FOUND, CommandExecutor, run_cmd

logger = logging.getLogger(__name__)

# 编译器环境变量 -> 未设置时回退查找的 MPI 编译器包装
COMPILER_WRAPPERS = {
    "CC": "mpicc",
    "CXX": "mpicxx",
    "FC": "mpif90",
    "FF": "mpif77",
}


def check_prerequisites(
    use_spack: bool,
    executor: CommandExecutor,
    env: Mapping[str, str],
    spack_compiler: bool = False,
) -> None:
    """检查必需的外部工具，缺失抛 ToolInvocationError (exit status 127)

    spack_compiler: 源码安装但编译器由 spack 提供时，同样需要 spack
    """
    required = ["git", "spack"] if use_spack else ["git", "wget"]
    if spack_compiler and not use_spack:
        required.append("spack")
    for tool in required:
        if executor.which(tool) is None:
            raise ToolInvocationError(
                f"Make sure {tool} is installed and in path.",
                exit_status=COMMAND_NOT_FOUND, step="prerequisites",
            )
    if use_spack and not (env.get("LMOD_CMD") or env.get("MODULESHOME")):
        raise ToolInvocationError(
            "Make sure spack's module system has been setup and in path.",
            exit_status=COMMAND_NOT_FOUND, step="prerequisites",
        )


# =========================================================================
# 源码安装: 编译器发现
# =========================================================================

@dataclass(frozen=True)
class CompilerDiscovery:
    """编译器发现结果

    compilers 为最终使用的变量值；wrapped 记录由 MPI 包装回退得到的变量。
    """

    compilers: dict[str, str] = field(default_factory=dict)
    paths: dict[str, str] = field(default_factory=dict)
    wrapped: tuple[str, ...] = ()
    missing: tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        return not self.missing


def detect_compilers(
    env: Mapping[str, str], executor: CommandExecutor,
) -> CompilerDiscovery:
    """从给定环境解析编译器，未设置时回退到 PATH 上的 MPI 包装"""
    compilers: dict[str, str] = {}
    paths: dict[str, str] = {}
    wrapped: list[str] = []
    missing: list[str] = []

    for var, wrapper in COMPILER_WRAPPERS.items():
        value = env.get(var, "")
        if not value and executor.which(wrapper) is not None:
            logger.warning("%s variable not set, but found %s.", var, wrapper)
            value = wrapper
            wrapped.append(var)
        if not value:
            missing.append(var)
            continue
        compilers[var] = value
        paths[var] = executor.which(value) or value
        logger.info("%s = %s", var, paths[var])

    return CompilerDiscovery(
        compilers=compilers, paths=paths,
        wrapped=tuple(wrapped), missing=tuple(missing),
    )


# =========================================================================
# spack 安装: 编译器准备
# =========================================================================

def ensure_compiler(
    compiler: CompilerSpec,
    use_default: bool,
    executor: CommandExecutor,
    jobs: int = 1,
) -> bool:
    """确保 spack 中存在请求的编译器，返回本次是否新安装

    use_default 为 True 时完全交给 spack 默认工具链。
    """
    if use_default:
        logger.info("Using spack's default compiler")
        return False

    found = executor.execute(["spack", "find", compiler.spec])
    if found.success:
        logger.info("%s is already installed", compiler.spec)
        return False

    logger.info("Installing %s", compiler.spec)
    run_cmd(
        ["spack", "install", f"-j{jobs}", compiler.spec],
        label="compiler install", package=compiler.type, executor=executor,
    )
    run_cmd(
        ["spack", "compiler", "find", compiler_prefix(compiler, executor)],
        label="compiler add", package=compiler.type, executor=executor,
    )
    logger.info("Installed %s", compiler.spec)
    return True


def compiler_prefix(compiler: CompilerSpec, executor: CommandExecutor) -> str:
    """spack 安装的编译器根目录"""
    return run_cmd(
        ["spack", "location", "-i", compiler.spec],
        label="compiler location", package=compiler.type, executor=executor,
    ).stdout.strip()
