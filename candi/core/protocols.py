"""领域协议定义

安装描述（PackageDescriptor）是 sequencer 与具体包之间唯一的契约。
使用 typing.Protocol 而非 ABC，源码配方和 spack 封装无需共享基类即可满足协议。
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from candi.core.models import InstallContext, InstalledLocation


@runtime_checkable
class PackageDescriptor(Protocol):
    """单个包的安装描述

    install 失败时抛出 ToolInvocationError，成功返回安装位置。
    """

    name: str

    def install(self, ctx: InstallContext) -> InstalledLocation:
        """下载、配置、编译并安装该包"""
        ...


@runtime_checkable
class PresenceCheck(Protocol):
    """可选能力: 可靠判断包是否已经安装"""

    def is_installed(self, ctx: InstallContext) -> bool:
        ...

    def installed_location(self, ctx: InstallContext) -> InstalledLocation:
        """已安装时返回其位置（不执行任何安装动作）"""
        ...
