"""依赖安装序列器

把请求的包集合整理成可复现的有序安装计划，并逐个执行:

  build_plan:  cuda -> kokkos -> openmpi 固定优先，其余保持请求顺序，按名去重
  resolve:     执行前一次性按名解析全部安装描述，缺失即失败
  execute:     严格串行；每个包拿到一份新的只读上下文；
               已安装（可靠检测到时）直接跳过；任一外部命令失败立即终止整个运行，
               已安装的包保留在磁盘上，不回滚
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import replace
from types import MappingProxyType

from candi.core.exceptions import ToolInvocationError
from candi.core.models import (
    InstallContext,
    InstalledLocation,
    InstallPlan,
    InstallReport,
    PackageRequest,
)
from candi.core.protocols import PackageDescriptor, PresenceCheck
from candi.core.registry import DescriptorRegistry

logger = logging.getLogger(__name__)

# 其他依赖配置时需要先就位的包，按此顺序最先安装
PRIORITY_PACKAGES = ("cuda", "kokkos", "openmpi")


def build_plan(
    requested: Iterable[str | PackageRequest],
    cuda_enabled: bool = False,
) -> InstallPlan:
    """生成有序安装计划

    同名包只保留第一次出现的请求（包括版本和 variants）。
    """
    by_name: dict[str, PackageRequest] = {}
    for item in requested:
        req = item if isinstance(item, PackageRequest) else PackageRequest(item)
        by_name.setdefault(req.name, req)
    if cuda_enabled:
        by_name.setdefault("cuda", PackageRequest("cuda"))

    ordered = [by_name[n] for n in PRIORITY_PACKAGES if n in by_name]
    ordered += [r for n, r in by_name.items() if n not in PRIORITY_PACKAGES]
    return InstallPlan(tuple(ordered))


class Sequencer:
    """按计划串行执行安装描述"""

    def __init__(self, registry: DescriptorRegistry) -> None:
        self.registry = registry

    def resolve(
        self, plan: InstallPlan,
    ) -> list[tuple[PackageRequest, PackageDescriptor]]:
        """解析计划中每个包的安装描述，任何一个缺失都抛 MissingDescriptorError"""
        return [(req, self.registry.get(req.name)) for req in plan]

    def execute(self, plan: InstallPlan, ctx: InstallContext) -> InstallReport:
        """执行安装计划，失败时抛出标明包名的 ToolInvocationError"""
        steps = self.resolve(plan)
        report = InstallReport()
        done: dict[str, InstalledLocation] = dict(ctx.installed)
        start = time.monotonic()

        logger.info("安装计划: %s", " -> ".join(plan.names))
        for req, descriptor in steps:
            call_ctx = replace(ctx, installed=MappingProxyType(dict(done)))
            loc = self._install_one(req, descriptor, call_ctx)
            done[req.name] = loc
            report.locations.append(loc)

        report.duration = time.monotonic() - start
        logger.info(
            "安装计划完成: %d 个新安装, %d 个已存在 (%.1fs)",
            len(report.installed), len(report.skipped), report.duration,
        )
        return report

    @staticmethod
    def _install_one(
        req: PackageRequest,
        descriptor: PackageDescriptor,
        ctx: InstallContext,
    ) -> InstalledLocation:
        extra = {"package": req.name}
        if isinstance(descriptor, PresenceCheck) and descriptor.is_installed(ctx):
            loc = descriptor.installed_location(ctx)
            logger.info("已安装，跳过: %s -> %s", req.name, loc.path, extra=extra)
            return replace(loc, skipped=True)

        logger.info("开始安装: %s", req.name, extra=extra)
        try:
            loc = descriptor.install(ctx)
        except ToolInvocationError as e:
            if not e.package:
                e.package = req.name
            logger.error(
                "安装失败: %s (exit status %d)", req.name, e.exit_status,
                extra={**extra, "step": e.step},
            )
            raise
        except OSError as e:
            logger.error("安装失败: %s (%s)", req.name, e, extra=extra)
            raise
        logger.info("已安装: %s -> %s", req.name, loc.path, extra=extra)
        return loc
