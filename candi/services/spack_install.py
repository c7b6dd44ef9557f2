"""spack 安装路径 — 整体委托给 spack

deal.II 以一个 spec 安装，关闭 PRISMS-PF 用不到的特性，
按配置追加 +gsl / +sundials / +int64 / +optflags；caliper 作为独立 spec。
"""

from __future__ import annotations

import logging

from candi.core.config import Config
from candi.core.exceptions import ConfigError
from candi.core.models import InstallContext, InstallPlan, InstallReport, PackageRequest
from candi.core.sequencer import Sequencer, build_plan
from candi.packages import SpackPackage, spack_registry
from candi.utils.shell import run_cmd
from candi.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)

CONCRETIZATION_FILE = "concretization.txt"

DEALII_DISABLED_VARIANTS = (
    "adol-c", "arborx", "arpack", "assimp", "cuda", "ginkgo", "gmsh",
    "hdf5", "metis", "muparser", "nanoflann", "netcdf", "oce",
    "opencascade", "petsc", "scalapack", "simplex", "slepc",
    "symengine", "trilinos", "cgal",
)


def dealii_requests(config: Config) -> list[PackageRequest]:
    """根据配置生成 spack 请求列表"""
    if config.is_on("deal_ii_with_cuda"):
        raise ConfigError(
            "PRISMS-PF candi does not support spack installation with cuda",
            field="DEAL_II_WITH_CUDA",
        )
    variants = [f"~{v}" for v in DEALII_DISABLED_VARIANTS]
    if "gsl" in config.packages:
        variants.append("+gsl")
    if "sundials" in config.packages:
        variants.append("+sundials")
    if config.is_on("use_64bit_indices"):
        variants.append("+int64")
    if config.is_on("native_optimizations"):
        variants.append("+optflags")

    requests = [PackageRequest("dealii", config.deal_ii_version, tuple(variants))]
    if "caliper" in config.packages:
        requests.append(PackageRequest("caliper"))
    return requests


class SpackInstaller:
    """spack 安装流程: concretize -> install -> 刷新 lmod 模块"""

    def __init__(self, config: Config) -> None:
        self.config = config

    def plan(self) -> InstallPlan:
        return build_plan(dealii_requests(self.config))

    def run(self, ctx: InstallContext) -> InstallReport:
        plan = self.plan()
        self.write_concretization(plan, ctx)

        report = Sequencer(spack_registry(plan)).execute(plan, ctx)

        run_cmd(
            ["spack", "module", "lmod", "refresh", "-y"],
            label="module refresh", executor=ctx.executor,
        )
        logger.info("Required packages installed")
        return report

    def write_concretization(self, plan: InstallPlan, ctx: InstallContext) -> None:
        """记录 spack spec 的解析结果，便于排查依赖冲突"""
        specs = [SpackPackage(req).spec(ctx) for req in plan]
        r = run_cmd(
            ["spack", "spec", *specs],
            label="concretize", executor=ctx.executor,
        )
        path = ctx.install_root / CONCRETIZATION_FILE
        atomic_write(path, r.stdout)
        logger.info("spack concretization 已写入: %s", path)
