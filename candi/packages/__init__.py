"""安装描述集合

  - default_registry(): 内置源码配方
  - spack_registry(plan): 为计划中每个请求生成 spack 描述
"""

from __future__ import annotations

from candi.core.models import InstallPlan
from candi.core.registry import DescriptorRegistry
from candi.packages.recipes import BUILTIN_RECIPES
from candi.packages.spack import SpackPackage


def default_registry() -> DescriptorRegistry:
    return DescriptorRegistry(recipe() for recipe in BUILTIN_RECIPES)


def spack_registry(plan: InstallPlan) -> DescriptorRegistry:
    return DescriptorRegistry(SpackPackage(req) for req in plan)


__all__ = ["default_registry", "spack_registry", "SpackPackage"]
