"""CLI — 安装命令"""

from __future__ import annotations

from pathlib import Path

import click

from candi.core.config import Config
from candi.services.install_service import DEFAULT_PREFIX, InstallOptions, InstallService


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(show_plan)


def _options(prefix: str, jobs: int = 1, default: str = "ON") -> InstallOptions:
    return InstallOptions(
        prefix=Path(prefix).expanduser(),
        jobs=jobs,
        use_default_compiler=default == "ON",
    )


@click.command()
@click.option("-p", "--prefix", default=DEFAULT_PREFIX, show_default=True,
              help="安装前缀路径")
@click.option("-j", "--jobs", type=click.IntRange(min=1), default=1, show_default=True,
              help="并行编译进程数")
@click.option("--default", type=click.Choice(["ON", "OFF"]), default="ON",
              show_default=True, help="使用 spack 默认编译器")
@click.pass_obj
def install(cfg: Config, prefix: str, jobs: int, default: str) -> None:
    """安装 deal.II 及其依赖（默认命令）"""
    svc = InstallService(cfg, _options(prefix, jobs, default))
    report = svc.run()
    if report.installed:
        click.echo(f"已安装: {', '.join(report.installed)}")
    if report.skipped:
        click.echo(f"已存在: {', '.join(report.skipped)}")
    click.echo(f"Build finished in {int(report.duration)} seconds.")


@click.command(name="plan")
@click.option("-p", "--prefix", default=DEFAULT_PREFIX, show_default=True,
              help="安装前缀路径")
@click.pass_obj
def show_plan(cfg: Config, prefix: str) -> None:
    """显示安装顺序（不执行）"""
    plan = InstallService(cfg, _options(prefix)).plan()
    mode = "spack" if cfg.is_on("use_spack") else "source"
    click.echo(f"安装计划 ({mode}):")
    for i, req in enumerate(plan, 1):
        click.echo(f"  {i:2d}. {req.spec}")
