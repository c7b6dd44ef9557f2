"""prisms-candi — PRISMS-PF / PRISMS-Plasticity 依赖工具链安装器"""

__version__ = "0.3.0"
