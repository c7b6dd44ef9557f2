"""安装台账 — 记录源码安装成功的包

源码编译的包没有包管理器可查询，台账是判断 "已安装" 的依据:
台账记录的版本、编译器和构建变体（影响产物的配置开关）都与本次运行一致，
且安装目录仍存在，才算已安装；任何一项不同都重新构建。

台账文件: <install_root>/.candi/installed.yml
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from candi.core.models import CompilerSpec, InstalledLocation
from candi.utils.yaml_io import load_yaml, save_yaml

logger = logging.getLogger(__name__)

LEDGER_FILE = Path(".candi") / "installed.yml"


class InstallLedger:
    """安装台账"""

    section_key = "packages"

    def __init__(self, install_root: Path) -> None:
        self.path = Path(install_root) / LEDGER_FILE

    def _section(self) -> dict[str, dict[str, Any]]:
        return load_yaml(self.path).get(self.section_key) or {}

    def get(self, name: str) -> dict[str, Any] | None:
        return self._section().get(name)

    def is_installed(
        self,
        name: str,
        version: str,
        compiler: CompilerSpec,
        variant: Mapping[str, Any] | None = None,
    ) -> bool:
        """同版本、同编译器、同构建变体且安装目录仍存在才算已安装"""
        entry = self.get(name)
        if entry is None or str(entry.get("version", "")) != version:
            return False
        if entry.get("compiler") != compiler.spec:
            return False
        if (entry.get("variant") or {}) != dict(variant or {}):
            return False
        path = entry.get("path")
        return bool(path) and Path(path).is_dir()

    def record(
        self,
        loc: InstalledLocation,
        compiler: CompilerSpec,
        variant: Mapping[str, Any] | None = None,
    ) -> None:
        """记录一次成功安装（整文件原子重写）"""
        data = load_yaml(self.path)
        section = data.setdefault(self.section_key, {})
        section[loc.name] = {
            "version": loc.version,
            "path": str(loc.path),
            "compiler": compiler.spec,
            "variant": dict(variant or {}),
            "installed_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        }
        save_yaml(self.path, data)
        logger.debug("台账已更新: %s@%s", loc.name, loc.version)

    def list_all(self) -> list[dict[str, Any]]:
        return [{"name": k, **v} for k, v in self._section().items()]
