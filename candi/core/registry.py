"""安装描述注册表 — 包名 -> PackageDescriptor

注册表在构建计划时一次性解析，执行阶段不再按名字查找。
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from candi.core.exceptions import MissingDescriptorError
from candi.core.protocols import PackageDescriptor

logger = logging.getLogger(__name__)


class DescriptorRegistry:
    """包名到安装描述的查找表"""

    def __init__(self, descriptors: Iterable[PackageDescriptor] = ()) -> None:
        self._descriptors: dict[str, PackageDescriptor] = {}
        for d in descriptors:
            self.register(d)

    def register(self, descriptor: PackageDescriptor) -> PackageDescriptor:
        """注册描述，同名覆盖"""
        if descriptor.name in self._descriptors:
            logger.debug("覆盖已注册的安装描述: %s", descriptor.name)
        self._descriptors[descriptor.name] = descriptor
        return descriptor

    def get(self, name: str) -> PackageDescriptor:
        """按名字查找，未注册抛 MissingDescriptorError"""
        try:
            return self._descriptors[name]
        except KeyError:
            raise MissingDescriptorError(name, self.names()) from None

    def names(self) -> list[str]:
        return sorted(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)
