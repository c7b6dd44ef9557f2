"""集中配置管理

启动时读取一次配置文件（默认 candi.cfg，可用 CANDI_CONFIG 覆盖），
在任何命令行解析和安装动作之前完成校验。

支持两种格式（按后缀区分）:
  - .yml / .yaml: YAML 字典
  - 其他: shell 风格 KEY=VALUE，支持 PACKAGES="${PACKAGES} gsl" 追加写法
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from candi.core.exceptions import ConfigError
from candi.core.models import CompilerSpec
from candi.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "candi.cfg"
MIN_DEAL_II_VERSION = "9.6"

# 源码安装时始终需要的依赖
REQUIRED_PACKAGES = ("openblas", "openmpi", "p4est", "kokkos", "zlib")
# 可在 PACKAGES 中追加的可选依赖
OPTIONAL_PACKAGES = ("gsl", "sundials", "caliper")

# CUDA_ARCH (compute capability) -> Kokkos 架构名
CUDA_ARCHS = {
    "70": "VOLTA70",
    "75": "TURING75",
    "80": "AMPERE80",
    "86": "AMPERE86",
    "89": "ADA89",
    "90": "HOPPER90",
}

_SWITCHES = (
    "prisms_pf",
    "prisms_plasticity",
    "use_spack",
    "use_spack_for_compiler",
    "deal_ii_examples",
    "native_optimizations",
    "use_64bit_indices",
    "deal_ii_with_cuda",
)

_ASSIGN_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)=(.*)$")
_VAR_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


# =========================================================================
# 校验辅助
# =========================================================================

def check_on_off(name: str, value: str) -> None:
    """开关字段只接受 ON / OFF 两个字面量"""
    if value not in ("ON", "OFF"):
        raise ConfigError(
            f"Invalid value for {name}={value}. Expected ON or OFF.",
            field=name,
        )


def _version_parts(version: str, name: str, limit: int | None = None) -> list[int]:
    try:
        return [int(p) for p in version.split(".")[:limit]]
    except ValueError:
        raise ConfigError(
            f"Invalid value for {name}={version}. Expected a dotted version.",
            field=name,
        ) from None


def version_greater_equal(
    version: str, base_version: str, name: str = "version",
) -> bool:
    """逐段比较版本号，version 缺失的段按 0 处理

    只比较 base_version 的段数，因此 9.6.2 >= 9.6，9.5.9 < 9.6。
    """
    base = _version_parts(base_version, "base_version")
    parts = _version_parts(version, name, limit=len(base))
    parts += [0] * (len(base) - len(parts))
    return parts >= base


def _normalize(value: Any) -> str:
    # YAML 1.1 会把 ON/OFF 解析为布尔值
    if value is True:
        return "ON"
    if value is False:
        return "OFF"
    if value is None:
        return ""
    return str(value).strip()


# =========================================================================
# shell 风格配置解析
# =========================================================================

def _unquote(raw: str) -> str:
    raw = raw.strip()
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "\"'":
        return raw[1:-1]
    # 无引号时允许行尾注释
    return raw.split(" #", 1)[0].strip()


def parse_shell_cfg(text: str) -> dict[str, str]:
    """解析 KEY=VALUE 配置，${NAME} 展开为文件中先前赋的值"""
    values: dict[str, str] = {}
    for lineno, line in enumerate(text.splitlines(), 1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].strip()
        m = _ASSIGN_RE.match(line)
        if m is None:
            raise ConfigError(f"无法解析配置第 {lineno} 行: {line}")
        key, raw = m.group(1), _unquote(m.group(2))
        values[key] = _VAR_RE.sub(
            lambda v: values.get(v.group(1) or v.group(2), ""), raw,
        ).strip()
    return values


# =========================================================================
# 配置对象
# =========================================================================

@dataclass
class Config:
    """安装配置"""

    # 要安装的 PRISMS 应用，至少一个为 ON
    prisms_pf: str = "ON"
    prisms_plasticity: str = "ON"
    # 可选依赖（gsl / sundials / caliper）
    packages: list[str] = field(default_factory=list)

    # spack
    use_spack: str = "OFF"
    use_spack_for_compiler: str = "ON"
    compiler_type: str = "gcc"
    compiler_version: str = ""

    # deal.II
    deal_ii_version: str = "9.6.2"
    deal_ii_examples: str = "OFF"
    native_optimizations: str = "OFF"
    use_64bit_indices: str = "OFF"
    deal_ii_with_cuda: str = "OFF"
    cuda_arch: str = "89"

    # 未识别的键
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> Config:
        """从键值字典构建，键名大小写不敏感"""
        known = {f.name for f in fields(cls)} - {"extra"}
        matched: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            attr = key.lower()
            if attr not in known:
                extra[key] = value
            elif attr == "packages":
                if isinstance(value, str):
                    matched[attr] = value.split()
                else:
                    matched[attr] = [str(v) for v in value or []]
            else:
                matched[attr] = _normalize(value)
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    @classmethod
    def from_file(cls, path: str | Path = DEFAULT_CONFIG_FILE) -> Config:
        """加载配置文件，不存在时抛 ConfigError"""
        p = Path(path)
        if not p.is_file():
            raise ConfigError(
                f"No configuration file found: {p}. Please create a candi.cfg file.",
            )
        if p.suffix in (".yml", ".yaml"):
            data: dict[str, Any] = load_yaml(p)
        else:
            data = dict(parse_shell_cfg(p.read_text(encoding="utf-8")))
        return cls.from_mapping(data)

    def validate(self) -> Config:
        """校验字段取值，失败抛出指明字段名的 ConfigError"""
        for name in _SWITCHES:
            check_on_off(name.upper(), getattr(self, name))

        if not version_greater_equal(
            self.deal_ii_version, MIN_DEAL_II_VERSION, name="DEAL_II_VERSION",
        ):
            raise ConfigError(
                f"Invalid value for DEAL_II_VERSION={self.deal_ii_version}. "
                f"Expected version greater than {MIN_DEAL_II_VERSION}",
                field="DEAL_II_VERSION",
            )

        if not (self.is_on("prisms_pf") or self.is_on("prisms_plasticity")):
            raise ConfigError(
                "At least one of PRISMS_PF and PRISMS_PLASTICITY must be ON",
                field="PRISMS_PF",
            )

        unknown = [p for p in self.packages if p not in OPTIONAL_PACKAGES]
        if unknown:
            raise ConfigError(
                f"Invalid value for PACKAGES: {' '.join(unknown)}. "
                f"Expected any of {' '.join(OPTIONAL_PACKAGES)}",
                field="PACKAGES",
            )

        if self.is_on("deal_ii_with_cuda"):
            if self.is_on("use_spack"):
                raise ConfigError(
                    "spack installation does not support DEAL_II_WITH_CUDA=ON",
                    field="DEAL_II_WITH_CUDA",
                )
            if self.cuda_arch not in CUDA_ARCHS:
                raise ConfigError(
                    f"Invalid value for CUDA_ARCH={self.cuda_arch}. "
                    f"Expected one of {' '.join(CUDA_ARCHS)}",
                    field="CUDA_ARCH",
                )

        if self.extra:
            logger.warning("忽略未识别的配置项: %s", ", ".join(self.extra))
        return self

    def is_on(self, name: str) -> bool:
        return getattr(self, name) == "ON"

    @property
    def compiler(self) -> CompilerSpec:
        return CompilerSpec(self.compiler_type, self.compiler_version)

    def requested_packages(self) -> list[str]:
        """源码安装要求的依赖: 必选 + 配置中的可选包"""
        return [*REQUIRED_PACKAGES, *self.packages]

    def applications(self) -> list[str]:
        apps = []
        if self.is_on("prisms_pf"):
            apps.append("prisms-pf")
        if self.is_on("prisms_plasticity"):
            apps.append("prisms-plasticity")
        return apps

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# 全局单例，由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str | Path = DEFAULT_CONFIG_FILE) -> Config:
    """从文件加载、校验并设置全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path).validate()
    logger.info("配置已加载: %s", path)
    return _current
