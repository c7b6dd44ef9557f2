"""安装服务测试 — 源码路径与 spack 路径"""

from __future__ import annotations

from pathlib import Path

import pytest

from candi.core.config import Config
from candi.core.exceptions import ConfigError, ToolInvocationError
from candi.services.install_service import InstallOptions, InstallService
from candi.services.spack_install import (
    CONCRETIZATION_FILE,
    DEALII_DISABLED_VARIANTS,
    dealii_requests,
)

SPACK_ENV = {"MODULESHOME": "/usr/share/lmod", "PATH": "/usr/bin"}


@pytest.fixture()
def options(tmp_path: Path) -> InstallOptions:
    return InstallOptions(prefix=tmp_path / "prefix", jobs=2)


def _service(config: Config, options: InstallOptions, executor, env=None) -> InstallService:
    return InstallService(
        config, options, executor=executor,
        env={"PATH": "/usr/bin"} if env is None else env,
    )


# =========================================================================
# 计划
# =========================================================================

class TestPlan:
    def test_source_plan_order(self, options, executor) -> None:
        cfg = Config(packages=["gsl", "sundials", "caliper"])
        assert _service(cfg, options, executor).plan().names == [
            "kokkos", "openmpi", "openblas", "p4est", "zlib",
            "gsl", "sundials", "caliper", "dealii", "prisms-pf", "prisms-plasticity",
        ]

    def test_cuda_comes_first(self, options, executor) -> None:
        cfg = Config(deal_ii_with_cuda="ON", prisms_plasticity="OFF")
        names = _service(cfg, options, executor).plan().names
        assert names[:3] == ["cuda", "kokkos", "openmpi"]
        assert names[-1] == "prisms-pf"

    def test_spack_plan(self, options, executor) -> None:
        cfg = Config(use_spack="ON", packages=["caliper"])
        assert _service(cfg, options, executor).plan().names == ["dealii", "caliper"]

    def test_plan_runs_nothing(self, options, executor) -> None:
        _service(Config(), options, executor).plan()
        assert executor.calls == []


class TestDealiiRequests:
    def test_variants_follow_config(self) -> None:
        cfg = Config(packages=["gsl"], use_64bit_indices="ON")
        (dealii,) = dealii_requests(cfg)
        assert dealii.version == "9.6.2"
        assert "+gsl" in dealii.variants
        assert "+int64" in dealii.variants
        assert "+sundials" not in dealii.variants
        assert "+optflags" not in dealii.variants
        assert dealii.variants[:len(DEALII_DISABLED_VARIANTS)] == tuple(
            f"~{v}" for v in DEALII_DISABLED_VARIANTS
        )

    def test_caliper_is_separate_spec(self) -> None:
        requests = dealii_requests(Config(packages=["caliper", "sundials"]))
        assert [r.name for r in requests] == ["dealii", "caliper"]
        assert "+sundials" in requests[0].variants

    def test_cuda_rejected(self) -> None:
        with pytest.raises(ConfigError, match="cuda"):
            dealii_requests(Config(deal_ii_with_cuda="ON"))


# =========================================================================
# 源码路径
# =========================================================================

class TestSourceInstall:
    def test_full_run(self, options, executor) -> None:
        svc = _service(Config(prisms_plasticity="OFF"), options, executor)
        report = svc.run()
        assert report.installed == [
            "kokkos", "openmpi", "openblas", "p4est", "zlib", "dealii", "prisms-pf",
        ]
        assert options.source_root.is_dir()
        assert options.build_root.is_dir()
        assert executor.count("git clone") == 1
        assert executor.count("spack") == 0

    def test_rerun_is_noop(self, options, executor) -> None:
        svc = _service(Config(prisms_plasticity="OFF"), options, executor)
        first = svc.run()
        for loc in first.locations:
            loc.path.mkdir(parents=True, exist_ok=True)
        calls = len(executor.calls)

        second = svc.run()
        assert second.installed == []
        assert second.skipped == first.installed
        assert len(executor.calls) == calls

    def test_missing_compilers(self, options, executor) -> None:
        executor.tools = {"git", "wget"}
        with pytest.raises(ConfigError, match="CC, CXX, FC, FF variable not set") as exc_info:
            _service(Config(), options, executor, env={}).run()
        assert exc_info.value.field == "CC"
        assert executor.calls == []

    def test_failure_reports_package(self, options, executor) -> None:
        executor.fail_on = {"openmpi-5.0.6/configure": 1}
        with pytest.raises(ToolInvocationError) as exc_info:
            _service(Config(), options, executor).run()
        assert exc_info.value.package == "openmpi"
        assert exc_info.value.step == "configure"
        assert executor.count("openblas") == 0

    def test_spack_provided_compiler(self, tmp_path, executor) -> None:
        executor.fail_on = {"spack find": 1}
        executor.outputs = {"spack location": "/opt/llvm\n"}
        cfg = Config(compiler_type="llvm", compiler_version="20.1.0", prisms_plasticity="OFF")
        opts = InstallOptions(prefix=tmp_path / "prefix", jobs=2, use_default_compiler=False)
        _service(cfg, opts, executor).run()

        assert executor.lines[:5] == [
            "spack find llvm@20.1.0",
            "spack install -j2 llvm@20.1.0",
            "spack location -i llvm@20.1.0",
            "spack compiler find /opt/llvm",
            "spack location -i llvm@20.1.0",
        ]
        assert (opts.prefix / "modulefiles" / "zlib" / "1.3.1.lua").is_file()

    def test_custom_compiler_requires_version(self, tmp_path, executor) -> None:
        opts = InstallOptions(prefix=tmp_path / "prefix", use_default_compiler=False)
        with pytest.raises(ConfigError) as exc_info:
            _service(Config(), opts, executor).run()
        assert exc_info.value.field == "COMPILER_VERSION"
        assert executor.calls == []

    def test_missing_wget(self, options, executor) -> None:
        executor.tools = {"git"}
        with pytest.raises(ToolInvocationError) as exc_info:
            _service(Config(), options, executor).run()
        assert exc_info.value.exit_status == 127


# =========================================================================
# spack 路径
# =========================================================================

class TestSpackInstall:
    def test_install_sequence(self, options, executor) -> None:
        executor.fail_on = {"spack find": 1}
        executor.outputs = {
            "spack spec": "dealii@9.6.2 concretized\n",
            "spack location": "/spack/opt/dealii\n",
        }
        cfg = Config(use_spack="ON", packages=["gsl"])
        report = _service(cfg, options, executor, env=SPACK_ENV).run()

        assert report.installed == ["dealii"]
        assert [line.split()[1] for line in executor.lines] == [
            "spec", "find", "install", "location", "module",
        ]
        assert executor.lines[-1] == "spack module lmod refresh -y"
        assert "+gsl" in executor.lines[2]
        concretization = options.prefix / CONCRETIZATION_FILE
        assert concretization.read_text(encoding="utf-8") == "dealii@9.6.2 concretized\n"

    def test_rerun_skips_installed_specs(self, options, executor) -> None:
        cfg = Config(use_spack="ON")
        report = _service(cfg, options, executor, env=SPACK_ENV).run()
        assert report.skipped == ["dealii"]
        assert executor.count("spack install") == 0

    def test_custom_compiler_constraint(self, tmp_path, executor) -> None:
        cfg = Config(use_spack="ON", compiler_type="llvm", compiler_version="20.1.0")
        opts = InstallOptions(prefix=tmp_path / "prefix", use_default_compiler=False)
        _service(cfg, opts, executor, env=SPACK_ENV).run()
        assert executor.lines[0] == "spack find llvm@20.1.0"
        assert executor.count("%clang@20.1.0") >= 2

    def test_requires_module_system(self, options, executor) -> None:
        with pytest.raises(ToolInvocationError, match="module system"):
            _service(Config(use_spack="ON"), options, executor, env={}).run()
