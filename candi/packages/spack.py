"""spack 安装描述

把一个 PackageRequest 交给 spack 安装。`spack find <spec>` 是可靠的
"已安装" 信号，重复执行同一计划时已安装的 spec 直接跳过。
"""

from __future__ import annotations

import logging
from pathlib import Path

from candi.core.models import InstallContext, InstalledLocation, PackageRequest
from candi.utils.shell import run_cmd

logger = logging.getLogger(__name__)


class SpackPackage:
    """单个 spack spec 的安装描述"""

    def __init__(self, request: PackageRequest) -> None:
        self.request = request
        self.name = request.name

    def spec(self, ctx: InstallContext) -> str:
        """完整 spec，非默认编译器时追加 %<compiler>@<version>"""
        if ctx.use_default_compiler:
            return self.request.spec
        return self.request.spec + ctx.compiler.constraint

    def is_installed(self, ctx: InstallContext) -> bool:
        r = ctx.executor.execute(["spack", "find", self.spec(ctx)])
        return r.success

    def installed_location(self, ctx: InstallContext) -> InstalledLocation:
        r = ctx.executor.execute(["spack", "location", "-i", self.spec(ctx)])
        path = r.stdout.strip() if r.success else ""
        return InstalledLocation(self.name, self.request.version, Path(path))

    def install(self, ctx: InstallContext) -> InstalledLocation:
        spec = self.spec(ctx)
        run_cmd(
            ["spack", "install", f"-j{ctx.jobs}", spec],
            label="spack install", package=self.name, executor=ctx.executor,
        )
        path = run_cmd(
            ["spack", "location", "-i", spec],
            label="spack location", package=self.name, executor=ctx.executor,
        ).stdout.strip()
        return InstalledLocation(self.name, self.request.version, Path(path))
