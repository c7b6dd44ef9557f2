"""源码安装描述基类

每次 install 调用都新建一份 BuildRecord 保存该包的下载、解压、构建、安装路径，
描述对象本身不持有任何运行期状态，同一描述被多次调用也不会串用变量。

流程: fetch -> extract -> configure -> build -> install_files
      成功后写安装台账；使用非默认编译器时额外生成 Lmod 模块文件。
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from candi.core.exceptions import ToolInvocationError
from candi.core.ledger import InstallLedger
from candi.core.modulefile import write_modulefile
from candi.core.models import InstallContext, InstalledLocation
from candi.utils.shell import CommandResult, run_cmd

logger = logging.getLogger(__name__)


@dataclass
class BuildRecord:
    """单次安装调用的工作状态"""

    name: str
    version: str
    url: str
    archive: Path
    source_dir: Path
    build_dir: Path
    install_path: Path
    log_dir: Path
    env: dict[str, str] = field(default_factory=dict)


class SourcePackage:
    """下载源码包并编译安装

    子类通过类属性声明名称、版本和下载地址（可含 {version} 占位符），
    覆盖 configure / build / install_files 定义构建步骤。
    """

    name: str = ""
    version: str = ""
    url: str = ""
    # 解压后的目录名，默认 <name>-<version>
    extract_to: str = ""
    # 影响构建产物的 ctx.settings 键，变化时已有安装不再算数
    variant_keys: tuple[str, ...] = ()

    # ------------------------------------------------------------------
    # 可被子类覆盖的解析规则
    # ------------------------------------------------------------------

    def resolve_version(self, ctx: InstallContext) -> str:
        return self.version

    def install_path(self, ctx: InstallContext) -> Path:
        return ctx.install_root / f"{self.name}-{self.resolve_version(ctx)}"

    def variant(self, ctx: InstallContext) -> dict[str, Any]:
        return {key: ctx.setting(key) for key in self.variant_keys}

    def new_record(self, ctx: InstallContext) -> BuildRecord:
        version = self.resolve_version(ctx)
        url = self.url.format(version=version)
        extract_to = (self.extract_to or f"{self.name}-{{version}}").format(
            version=version,
        )
        return BuildRecord(
            name=self.name,
            version=version,
            url=url,
            archive=ctx.source_root / url.rstrip("/").rsplit("/", 1)[-1],
            source_dir=ctx.source_root / extract_to,
            build_dir=ctx.build_root / f"{self.name}-{version}",
            install_path=self.install_path(ctx),
            log_dir=ctx.build_root / f"{self.name}-{version}",
            env={**os.environ, **ctx.env},
        )

    # ------------------------------------------------------------------
    # 协议实现
    # ------------------------------------------------------------------

    def is_installed(self, ctx: InstallContext) -> bool:
        ledger = InstallLedger(ctx.install_root)
        return ledger.is_installed(
            self.name, self.resolve_version(ctx), ctx.compiler, self.variant(ctx),
        )

    def installed_location(self, ctx: InstallContext) -> InstalledLocation:
        return InstalledLocation(
            self.name, self.resolve_version(ctx), self.install_path(ctx),
        )

    def install(self, ctx: InstallContext) -> InstalledLocation:
        rec = self.new_record(ctx)
        logger.info("%s %s -> %s", rec.name, rec.version, rec.install_path)

        self.fetch(rec, ctx)
        self.extract(rec, ctx)
        rec.build_dir.mkdir(parents=True, exist_ok=True)
        self.configure(rec, ctx)
        self.build(rec, ctx)
        self.install_files(rec, ctx)

        loc = InstalledLocation(rec.name, rec.version, rec.install_path)
        InstallLedger(ctx.install_root).record(loc, ctx.compiler, self.variant(ctx))
        if not ctx.use_default_compiler:
            write_modulefile(ctx.install_root, loc, ctx.compiler)
        return loc

    # ------------------------------------------------------------------
    # 构建步骤
    # ------------------------------------------------------------------

    def run(
        self, rec: BuildRecord, ctx: InstallContext,
        cmd: list[str], step: str, cwd: Path | None = None,
    ) -> CommandResult:
        return run_cmd(
            cmd, cwd=str(cwd or rec.build_dir), env=rec.env,
            label=step, package=rec.name, executor=ctx.executor,
            log_dir=rec.log_dir,
        )

    def fetch(self, rec: BuildRecord, ctx: InstallContext) -> None:
        """下载源码包，已缓存则跳过"""
        ctx.source_root.mkdir(parents=True, exist_ok=True)
        if rec.archive.is_file():
            logger.info("  缓存命中: %s", rec.archive)
            return
        try:
            self.run(
                rec, ctx, ["wget", "-O", str(rec.archive), rec.url],
                "download", cwd=ctx.source_root,
            )
        except ToolInvocationError:
            rec.archive.unlink(missing_ok=True)
            raise

    def extract(self, rec: BuildRecord, ctx: InstallContext) -> None:
        """重新解压，丢弃上次残留的源码目录"""
        if rec.source_dir.exists():
            shutil.rmtree(rec.source_dir)
        self.run(
            rec, ctx, ["tar", "-xf", str(rec.archive), "-C", str(ctx.source_root)],
            "extract", cwd=ctx.source_root,
        )

    def configure(self, rec: BuildRecord, ctx: InstallContext) -> None:
        pass

    def build(self, rec: BuildRecord, ctx: InstallContext) -> None:
        pass

    def install_files(self, rec: BuildRecord, ctx: InstallContext) -> None:
        pass


class CMakePackage(SourcePackage):
    """CMake 构建: 源码外构建，cmake --install 安装"""

    build_type: str = "Release"

    def cmake_args(self, rec: BuildRecord, ctx: InstallContext) -> list[str]:
        return []

    def configure(self, rec: BuildRecord, ctx: InstallContext) -> None:
        self.run(rec, ctx, [
            "cmake", "-S", str(rec.source_dir), "-B", str(rec.build_dir),
            f"-DCMAKE_INSTALL_PREFIX={rec.install_path}",
            f"-DCMAKE_BUILD_TYPE={self.build_type}",
            *self.cmake_args(rec, ctx),
        ], "configure")

    def build(self, rec: BuildRecord, ctx: InstallContext) -> None:
        self.run(
            rec, ctx, ["cmake", "--build", str(rec.build_dir), "-j", str(ctx.jobs)],
            "build",
        )

    def install_files(self, rec: BuildRecord, ctx: InstallContext) -> None:
        self.run(rec, ctx, ["cmake", "--install", str(rec.build_dir)], "install")


class AutotoolsPackage(SourcePackage):
    """configure && make && make install"""

    def configure_args(self, rec: BuildRecord, ctx: InstallContext) -> list[str]:
        return []

    def configure(self, rec: BuildRecord, ctx: InstallContext) -> None:
        self.run(rec, ctx, [
            str(rec.source_dir / "configure"),
            f"--prefix={rec.install_path}",
            *self.configure_args(rec, ctx),
        ], "configure")

    def build(self, rec: BuildRecord, ctx: InstallContext) -> None:
        self.run(rec, ctx, ["make", f"-j{ctx.jobs}"], "build")

    def install_files(self, rec: BuildRecord, ctx: InstallContext) -> None:
        self.run(rec, ctx, ["make", "install"], "install")


class GitCMakePackage(CMakePackage):
    """从 git 仓库检出并就地构建的应用（不执行 cmake --install）

    version 为检出的分支或 tag，检出目录即安装位置。
    """

    repository: str = ""

    def install_path(self, ctx: InstallContext) -> Path:
        return ctx.install_root / self.name

    def new_record(self, ctx: InstallContext) -> BuildRecord:
        path = self.install_path(ctx)
        return BuildRecord(
            name=self.name,
            version=self.resolve_version(ctx),
            url=self.repository,
            archive=path,
            source_dir=path,
            build_dir=path / "build",
            install_path=path,
            log_dir=ctx.build_root / self.name,
            env={**os.environ, **ctx.env},
        )

    def fetch(self, rec: BuildRecord, ctx: InstallContext) -> None:
        if (rec.source_dir / ".git").is_dir():
            self.run(rec, ctx, ["git", "fetch", "origin", rec.version],
                     "fetch", cwd=rec.source_dir)
            self.run(rec, ctx, ["git", "checkout", "FETCH_HEAD"],
                     "checkout", cwd=rec.source_dir)
            return
        ctx.install_root.mkdir(parents=True, exist_ok=True)
        self.run(rec, ctx, [
            "git", "clone", "--branch", rec.version,
            rec.url, str(rec.source_dir),
        ], "clone", cwd=ctx.install_root)

    def extract(self, rec: BuildRecord, ctx: InstallContext) -> None:
        pass

    def install_files(self, rec: BuildRecord, ctx: InstallContext) -> None:
        pass
