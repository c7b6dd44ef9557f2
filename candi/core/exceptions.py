"""统一异常体系

所有业务异常继承 CandiError。每类异常自带 exit_code，
CLI 入口据此以不同退出码终止进程，所有异常均为致命错误，不做重试。
"""

from __future__ import annotations


class CandiError(Exception):
    """安装器基础异常"""

    code: str = "UNKNOWN"
    exit_code: int = 1

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(CandiError):
    """配置文件缺失或字段取值无效"""

    code = "CONFIG_ERROR"
    exit_code = 1

    def __init__(self, message: str, field: str = "") -> None:
        super().__init__(message)
        self.field = field


class CliError(CandiError):
    """命令行参数无法识别或取值无效"""

    code = "CLI_ERROR"
    exit_code = 2


class ToolInvocationError(CandiError):
    """外部命令（git / spack / cmake / make ...）返回非零退出码"""

    code = "TOOL_INVOCATION_ERROR"
    exit_code = 3

    def __init__(
        self, message: str, *,
        exit_status: int,
        package: str = "",
        step: str = "",
    ) -> None:
        super().__init__(message)
        self.exit_status = exit_status
        self.package = package
        self.step = step

    def __str__(self) -> str:
        where = f"[{self.package}:{self.step}] " if self.package else ""
        return f"{where}{self.args[0]} (exit status {self.exit_status})"


class MissingDescriptorError(CandiError):
    """请求的包没有注册安装描述"""

    code = "MISSING_DESCRIPTOR"
    exit_code = 4

    def __init__(self, package: str, available: list[str] | None = None) -> None:
        msg = f"包 '{package}' 没有注册安装描述"
        if available:
            msg += f"。可用: {', '.join(available)}"
        super().__init__(msg)
        self.package = package
