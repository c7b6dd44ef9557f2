"""candi 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
控制台入口为 run(): 先加载并校验配置，再解析命令行，
因此配置错误总是先于任何参数错误被报告。
"""

from __future__ import annotations

import logging
import os
import sys

import click

from candi import __version__
from candi.core.config import DEFAULT_CONFIG_FILE, get_config, init_config
from candi.core.exceptions import CandiError, CliError
from candi.utils.logger import setup_logging

logger = logging.getLogger(__name__)

# 文件系统错误（无法创建目录、删除旧源码等）的退出码
EXIT_OS_ERROR = 5

# 未给出子命令时默认执行 install，兼容 `candi -j4 --prefix=...` 写法
DEFAULT_COMMAND = "install"


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context) -> None:
    """candi - deal.II toolchain installer for PRISMS-PF / PRISMS-Plasticity"""
    if ctx.obj is None:
        ctx.obj = get_config()


def _with_default_command(args: list[str]) -> list[str]:
    if args and (args[0] in main.commands or args[0] in ("-h", "--help", "--version")):
        return args
    return [DEFAULT_COMMAND, *args]


def run(argv: list[str] | None = None) -> int:
    """控制台入口，返回进程退出码"""
    args = list(sys.argv[1:] if argv is None else argv)
    setup_logging(
        level=os.getenv("CANDI_LOG_LEVEL", "INFO"),
        json_output=os.getenv("CANDI_LOG_JSON", "") == "1",
    )
    try:
        cfg = init_config(os.getenv("CANDI_CONFIG", DEFAULT_CONFIG_FILE))
        try:
            rv = main.main(
                args=_with_default_command(args), prog_name="candi",
                obj=cfg, standalone_mode=False,
            )
        except click.UsageError as e:
            raise CliError(
                f"{e.format_message()} See -h for more information.",
            ) from e
    except CandiError as e:
        logger.error("%s", e)
        return e.exit_code
    except OSError as e:
        logger.error("文件系统错误: %s", e)
        return EXIT_OS_ERROR
    return rv if isinstance(rv, int) else 0


# 注册各领域子命令
from candi.cli.cmd_install import register as _reg_install  # noqa: E402
from candi.cli.cmd_config import register as _reg_config  # noqa: E402

_reg_install(main)
_reg_config(main)
