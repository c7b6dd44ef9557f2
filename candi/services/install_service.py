"""安装服务 — 串联前置检查、编译器准备和两条安装路径

  spack 路径: check_prerequisites -> ensure_compiler -> SpackInstaller
  源码路径:   check_prerequisites -> [spack 提供编译器] -> detect_compilers
              -> build_plan(依赖 + dealii + 应用) -> Sequencer.execute

目录布局:
  <prefix>/              安装根目录，每个包一个 <name>-<version> 子目录
  <prefix>/tmp/build     构建目录
  <prefix>/tmp/src       源码包缓存
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from candi.core.config import Config
from candi.core.exceptions import ConfigError
from candi.core.models import InstallContext, InstallPlan, InstallReport
from candi.core.sequencer import Sequencer, build_plan
from candi.core.toolchain import (
    check_prerequisites,
    compiler_prefix,
    detect_compilers,
    ensure_compiler,
)
from candi.packages import default_registry
from candi.services.spack_install import SpackInstaller
from candi.utils.shell import CommandExecutor, get_executor

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "~/prisms-pf-candi"


@dataclass(frozen=True)
class InstallOptions:
    """命令行给出的运行参数"""

    prefix: Path = Path(DEFAULT_PREFIX).expanduser()
    jobs: int = 1
    use_default_compiler: bool = True

    @property
    def build_root(self) -> Path:
        return self.prefix / "tmp" / "build"

    @property
    def source_root(self) -> Path:
        return self.prefix / "tmp" / "src"


class InstallService:
    """一次安装运行"""

    def __init__(
        self,
        config: Config,
        options: InstallOptions,
        executor: CommandExecutor | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.config = config
        self.options = options
        self.executor = executor or get_executor()
        self.env = dict(os.environ if env is None else env)

    @property
    def use_spack(self) -> bool:
        return self.config.is_on("use_spack")

    @property
    def spack_compiler(self) -> bool:
        """源码安装时是否由 spack 提供编译器"""
        return (
            not self.use_spack
            and not self.options.use_default_compiler
            and self.config.is_on("use_spack_for_compiler")
        )

    # ------------------------------------------------------------------
    # 计划
    # ------------------------------------------------------------------

    def plan(self) -> InstallPlan:
        """本次运行将执行的安装计划（不执行任何命令）"""
        if self.use_spack:
            return SpackInstaller(self.config).plan()
        requested = [
            *self.config.requested_packages(),
            "dealii",
            *self.config.applications(),
        ]
        return build_plan(
            requested, cuda_enabled=self.config.is_on("deal_ii_with_cuda"),
        )

    # ------------------------------------------------------------------
    # 执行
    # ------------------------------------------------------------------

    def run(self) -> InstallReport:
        tic = time.monotonic()
        if not self.options.use_default_compiler and not self.config.compiler_version:
            raise ConfigError(
                "COMPILER_VERSION must be set when --default=OFF",
                field="COMPILER_VERSION",
            )
        check_prerequisites(
            self.use_spack, self.executor, self.env,
            spack_compiler=self.spack_compiler,
        )
        self._make_dirs()

        if self.use_spack:
            report = self._install_with_spack()
        else:
            report = self._install_from_source()

        report.duration = time.monotonic() - tic
        logger.info("Build finished in %d seconds.", int(report.duration))
        return report

    def _make_dirs(self) -> None:
        for path in (self.options.prefix, self.options.build_root, self.options.source_root):
            path.mkdir(parents=True, exist_ok=True)

    def _install_with_spack(self) -> InstallReport:
        ensure_compiler(
            self.config.compiler, self.options.use_default_compiler,
            self.executor, jobs=self.options.jobs,
        )
        return SpackInstaller(self.config).run(self._context({}))

    def _install_from_source(self) -> InstallReport:
        overrides: dict[str, str] = {}
        if self.spack_compiler:
            ensure_compiler(
                self.config.compiler, False, self.executor, jobs=self.options.jobs,
            )
            bin_dir = Path(compiler_prefix(self.config.compiler, self.executor)) / "bin"
            overrides["PATH"] = os.pathsep.join(
                p for p in (str(bin_dir), self.env.get("PATH", "")) if p
            )

        discovery = detect_compilers({**self.env, **overrides}, self.executor)
        if not discovery.found:
            missing = ", ".join(discovery.missing)
            raise ConfigError(
                f"{missing} variable not set. Please set it with "
                f"export <VAR>=<(MPI) compiler>",
                field=discovery.missing[0],
            )
        overrides.update(discovery.compilers)

        plan = self.plan()
        return Sequencer(default_registry()).execute(plan, self._context(overrides))

    def _context(self, env: dict[str, str]) -> InstallContext:
        return InstallContext(
            install_root=self.options.prefix,
            build_root=self.options.build_root,
            source_root=self.options.source_root,
            jobs=self.options.jobs,
            compiler=self.config.compiler,
            executor=self.executor,
            use_default_compiler=self.options.use_default_compiler,
            env=env,
            settings=self._settings(),
        )

    def _settings(self) -> dict[str, Any]:
        cfg = self.config
        return {
            "deal_ii_version": cfg.deal_ii_version,
            "cuda_enabled": cfg.is_on("deal_ii_with_cuda"),
            "cuda_arch": cfg.cuda_arch,
            "use_64bit_indices": cfg.is_on("use_64bit_indices"),
            "native_optimizations": cfg.is_on("native_optimizations"),
            "deal_ii_examples": cfg.is_on("deal_ii_examples"),
        }
