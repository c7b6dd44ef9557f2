"""Lmod 模块文件生成

使用非默认编译器做源码安装时，为每个安装产物写一份
<install_root>/modulefiles/<name>/<version>.lua，供 `module load` 使用。
"""

from __future__ import annotations

import logging
from pathlib import Path

from candi.core.models import CompilerSpec, InstalledLocation
from candi.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)

MODULEFILES_DIR = "modulefiles"


def _env_name(name: str) -> str:
    return name.upper().replace("-", "_").replace(".", "_")


def render_modulefile(loc: InstalledLocation, compiler: CompilerSpec) -> str:
    root = str(loc.path)
    lines = [
        f'whatis("Name: {loc.name}")',
        f'whatis("Version: {loc.version}")',
        f'whatis("Compiler: {compiler.spec}")',
        "",
        f'local root = "{root}"',
        f'setenv("{_env_name(loc.name)}_DIR", root)',
        'prepend_path("PATH", pathJoin(root, "bin"))',
        'prepend_path("LD_LIBRARY_PATH", pathJoin(root, "lib"))',
        'prepend_path("LD_LIBRARY_PATH", pathJoin(root, "lib64"))',
        'prepend_path("CMAKE_PREFIX_PATH", root)',
        "",
    ]
    return "\n".join(lines)


def write_modulefile(
    install_root: Path, loc: InstalledLocation, compiler: CompilerSpec,
) -> Path:
    """写入模块文件，返回其路径"""
    path = Path(install_root) / MODULEFILES_DIR / loc.name / f"{loc.version}.lua"
    atomic_write(path, render_modulefile(loc, compiler))
    logger.info("模块文件已生成: %s", path)
    return path
