"""安装台账与模块文件测试"""

from __future__ import annotations

from pathlib import Path

from candi.core.ledger import InstallLedger
from candi.core.models import CompilerSpec, InstalledLocation
from candi.core.modulefile import render_modulefile, write_modulefile
from candi.utils.yaml_io import save_yaml

GCC = CompilerSpec("gcc", "13.2.0")


class TestInstallLedger:
    def test_record_and_query(self, tmp_path: Path) -> None:
        path = tmp_path / "zlib-1.3.1"
        path.mkdir()
        ledger = InstallLedger(tmp_path)
        ledger.record(InstalledLocation("zlib", "1.3.1", path), GCC)

        assert ledger.is_installed("zlib", "1.3.1", GCC)
        assert not ledger.is_installed("zlib", "1.3.0", GCC)
        assert not ledger.is_installed("gsl", "2.8", GCC)
        entry = ledger.get("zlib")
        assert entry is not None
        assert entry["compiler"] == "gcc@13.2.0"
        assert (tmp_path / ".candi" / "installed.yml").is_file()

    def test_removed_directory_is_not_installed(self, tmp_path: Path) -> None:
        ledger = InstallLedger(tmp_path)
        ledger.record(InstalledLocation("gsl", "2.8", tmp_path / "gone"), GCC)
        assert not ledger.is_installed("gsl", "2.8", GCC)

    def test_other_compiler_is_not_installed(self, tmp_path: Path) -> None:
        path = tmp_path / "zlib-1.3.1"
        path.mkdir()
        ledger = InstallLedger(tmp_path)
        ledger.record(InstalledLocation("zlib", "1.3.1", path), GCC)
        assert not ledger.is_installed("zlib", "1.3.1", CompilerSpec("llvm", "20.1.0"))
        assert not ledger.is_installed("zlib", "1.3.1", CompilerSpec("gcc", "14.1.0"))

    def test_changed_variant_is_not_installed(self, tmp_path: Path) -> None:
        path = tmp_path / "openblas-0.3.28"
        path.mkdir()
        ledger = InstallLedger(tmp_path)
        ledger.record(
            InstalledLocation("openblas", "0.3.28", path), GCC,
            {"use_64bit_indices": False, "native_optimizations": False},
        )
        assert ledger.is_installed(
            "openblas", "0.3.28", GCC,
            {"use_64bit_indices": False, "native_optimizations": False},
        )
        assert not ledger.is_installed(
            "openblas", "0.3.28", GCC,
            {"use_64bit_indices": True, "native_optimizations": False},
        )

    def test_entry_without_path_is_not_installed(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        save_yaml(tmp_path / ".candi" / "installed.yml", {
            "packages": {"zlib": {"version": "1.3.1", "compiler": GCC.spec}},
        })
        assert not InstallLedger(tmp_path).is_installed("zlib", "1.3.1", GCC)

    def test_list_all(self, tmp_path: Path) -> None:
        ledger = InstallLedger(tmp_path)
        ledger.record(InstalledLocation("a", "1", tmp_path), GCC)
        ledger.record(InstalledLocation("b", "2", tmp_path), GCC)
        assert [e["name"] for e in ledger.list_all()] == ["a", "b"]


class TestModulefile:
    def test_render(self) -> None:
        loc = InstalledLocation("prisms-pf", "master", Path("/opt/prisms-pf"))
        text = render_modulefile(loc, CompilerSpec("llvm", "20.1.0"))
        assert 'setenv("PRISMS_PF_DIR", root)' in text
        assert 'local root = "/opt/prisms-pf"' in text
        assert 'whatis("Compiler: llvm@20.1.0")' in text

    def test_write_layout(self, tmp_path: Path) -> None:
        loc = InstalledLocation("zlib", "1.3.1", tmp_path / "zlib-1.3.1")
        path = write_modulefile(tmp_path, loc, GCC)
        assert path == tmp_path / "modulefiles" / "zlib" / "1.3.1.lua"
        assert "CMAKE_PREFIX_PATH" in path.read_text(encoding="utf-8")
