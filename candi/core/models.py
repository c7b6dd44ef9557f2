"""核心数据模型

安装请求、安装计划、编译器标识、安装上下文和安装结果集中定义于此。
除 InstallReport 外均为不可变对象：一次运行内解析完成后不再修改。
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from candi.utils.shell import CommandExecutor

# spack 包名 -> spack 编译器名
_SPACK_COMPILER_NAMES = {
    "llvm": "clang",
    "intel-oneapi-compilers": "oneapi",
}


@dataclass(frozen=True)
class PackageRequest:
    """单个包的安装请求"""

    name: str
    version: str = ""
    variants: tuple[str, ...] = ()  # 如 ("+gsl", "~cuda")

    @property
    def spec(self) -> str:
        """渲染为 spack spec 字符串，如 dealii@9.6.2+gsl~cuda"""
        head = f"{self.name}@{self.version}" if self.version else self.name
        return head + "".join(self.variants)


@dataclass(frozen=True)
class InstallPlan:
    """有序安装计划（由 sequencer.build_plan 生成）"""

    entries: tuple[PackageRequest, ...] = ()

    def __iter__(self) -> Iterator[PackageRequest]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def names(self) -> list[str]:
        return [e.name for e in self.entries]


@dataclass(frozen=True)
class CompilerSpec:
    """编译器标识 (type, version)，决定所有包使用哪套工具链"""

    type: str
    version: str = ""

    @property
    def spec(self) -> str:
        """spack 包形式，如 llvm@20.1.0"""
        return f"{self.type}@{self.version}" if self.version else self.type

    @property
    def spack_name(self) -> str:
        """spack 编译器名，如 llvm -> clang"""
        return _SPACK_COMPILER_NAMES.get(self.type, self.type)

    @property
    def constraint(self) -> str:
        """spack 编译器约束，如 %clang@20.1.0"""
        if self.version:
            return f"%{self.spack_name}@{self.version}"
        return f"%{self.spack_name}"

    def __str__(self) -> str:
        return self.spec


@dataclass(frozen=True)
class InstalledLocation:
    """单个包的安装结果"""

    name: str
    version: str
    path: Path
    skipped: bool = False  # 已安装，本次未执行


@dataclass(frozen=True)
class InstallContext:
    """一次运行内所有安装描述共享的只读上下文

    sequencer 为每次 install 调用派生一份新的上下文（installed 为当时已完成
    包的只读视图），描述之间无法互相修改对方看到的状态。
    """

    install_root: Path
    build_root: Path
    source_root: Path
    jobs: int
    compiler: CompilerSpec
    executor: CommandExecutor
    use_default_compiler: bool = True
    env: Mapping[str, str] = field(default_factory=dict)
    settings: Mapping[str, Any] = field(default_factory=dict)
    installed: Mapping[str, InstalledLocation] = field(
        default_factory=lambda: MappingProxyType({}),
    )

    def setting(self, key: str, default: Any = None) -> Any:
        return self.settings.get(key, default)

    def location_of(self, name: str) -> Path | None:
        """获取本次运行中先前安装的包路径"""
        loc = self.installed.get(name)
        return loc.path if loc is not None else None


@dataclass
class InstallReport:
    """一次 execute 的汇总"""

    locations: list[InstalledLocation] = field(default_factory=list)
    duration: float = 0.0

    @property
    def installed(self) -> list[str]:
        return [loc.name for loc in self.locations if not loc.skipped]

    @property
    def skipped(self) -> list[str]:
        return [loc.name for loc in self.locations if loc.skipped]
