"""CLI — 配置查看命令"""

from __future__ import annotations

import click
import yaml

from candi.core.config import Config


def register(group: click.Group) -> None:
    group.add_command(show_config)


@click.command(name="config")
@click.pass_obj
def show_config(cfg: Config) -> None:
    """显示校验后的有效配置"""
    data = cfg.to_dict()
    if not data["extra"]:
        data.pop("extra")
    click.echo(yaml.safe_dump(data, sort_keys=False, allow_unicode=True), nl=False)
