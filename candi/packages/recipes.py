"""内置源码配方

每个类对应一个包，ctx.settings 中读取的特性开关由 InstallService 从配置填入:
  cuda_enabled / cuda_arch / use_64bit_indices / native_optimizations /
  deal_ii_examples / deal_ii_version
"""

from __future__ import annotations

from candi.core.config import CUDA_ARCHS
from candi.core.models import InstallContext
from candi.packages.source import (
    AutotoolsPackage,
    BuildRecord,
    CMakePackage,
    GitCMakePackage,
    SourcePackage,
)


def _on_off(flag: bool) -> str:
    return "ON" if flag else "OFF"


class Cuda(SourcePackage):
    """CUDA toolkit（runfile 静默安装，仅装 toolkit）"""

    name = "cuda"
    version = "12.6.3"
    url = (
        "https://developer.download.nvidia.com/compute/cuda/{version}/"
        "local_installers/cuda_{version}_560.35.05_linux.run"
    )

    def extract(self, rec: BuildRecord, ctx: InstallContext) -> None:
        pass

    def install_files(self, rec: BuildRecord, ctx: InstallContext) -> None:
        self.run(rec, ctx, [
            "sh", str(rec.archive), "--silent", "--override", "--toolkit",
            f"--toolkitpath={rec.install_path}",
            f"--tmpdir={rec.build_dir}",
        ], "install")


class Kokkos(CMakePackage):
    name = "kokkos"
    version = "4.5.01"
    url = "https://github.com/kokkos/kokkos/releases/download/{version}/kokkos-{version}.tar.gz"
    variant_keys = ("cuda_enabled", "cuda_arch")

    def cmake_args(self, rec: BuildRecord, ctx: InstallContext) -> list[str]:
        args = [
            "-DBUILD_SHARED_LIBS=ON",
            "-DKokkos_ENABLE_SERIAL=ON",
            "-DCMAKE_CXX_STANDARD=17",
        ]
        cuda = ctx.location_of("cuda")
        if ctx.setting("cuda_enabled") and cuda is not None:
            arch = CUDA_ARCHS[str(ctx.setting("cuda_arch"))]
            args += [
                "-DKokkos_ENABLE_CUDA=ON",
                "-DKokkos_ENABLE_CUDA_LAMBDA=ON",
                f"-DKokkos_ARCH_{arch}=ON",
                f"-DCUDAToolkit_ROOT={cuda}",
                f"-DCMAKE_CXX_COMPILER={rec.source_dir / 'bin' / 'nvcc_wrapper'}",
            ]
        else:
            args.append("-DKokkos_ENABLE_OPENMP=ON")
        return args


class OpenMPI(AutotoolsPackage):
    name = "openmpi"
    version = "5.0.6"
    url = "https://download.open-mpi.org/release/open-mpi/v5.0/openmpi-{version}.tar.bz2"
    variant_keys = ("cuda_enabled",)

    def configure_args(self, rec: BuildRecord, ctx: InstallContext) -> list[str]:
        args = ["--enable-shared", "--disable-static"]
        cuda = ctx.location_of("cuda")
        if cuda is not None:
            args.append(f"--with-cuda={cuda}")
        return args


class OpenBLAS(SourcePackage):
    """OpenBLAS 只有 Makefile，就地构建"""

    name = "openblas"
    version = "0.3.28"
    url = (
        "https://github.com/OpenMathLib/OpenBLAS/releases/download/"
        "v{version}/OpenBLAS-{version}.tar.gz"
    )
    extract_to = "OpenBLAS-{version}"
    variant_keys = ("use_64bit_indices", "native_optimizations")

    def _make_vars(self, ctx: InstallContext) -> list[str]:
        make_vars = ["USE_OPENMP=0", "NO_STATIC=1"]
        if ctx.setting("use_64bit_indices"):
            make_vars.append("INTERFACE64=1")
        if not ctx.setting("native_optimizations"):
            make_vars.append("DYNAMIC_ARCH=1")
        return make_vars

    def build(self, rec: BuildRecord, ctx: InstallContext) -> None:
        self.run(rec, ctx, ["make", f"-j{ctx.jobs}", *self._make_vars(ctx)],
                 "build", cwd=rec.source_dir)

    def install_files(self, rec: BuildRecord, ctx: InstallContext) -> None:
        self.run(rec, ctx, [
            "make", "install", f"PREFIX={rec.install_path}", *self._make_vars(ctx),
        ], "install", cwd=rec.source_dir)


class Zlib(CMakePackage):
    name = "zlib"
    version = "1.3.1"
    url = "https://zlib.net/fossils/zlib-{version}.tar.gz"


class P4est(AutotoolsPackage):
    name = "p4est"
    version = "2.8.6"
    url = "https://p4est.github.io/release/p4est-{version}.tar.gz"

    def configure_args(self, rec: BuildRecord, ctx: InstallContext) -> list[str]:
        return [
            "--enable-mpi", "--enable-shared", "--disable-static",
            "--disable-vtk-binary", "--without-blas",
            "CFLAGS=-O2", "CPPFLAGS=-DSC_LOG_PRIORITY=SC_LP_ESSENTIAL",
        ]


class Gsl(AutotoolsPackage):
    name = "gsl"
    version = "2.8"
    url = "https://ftp.gnu.org/gnu/gsl/gsl-{version}.tar.gz"


class Sundials(CMakePackage):
    name = "sundials"
    version = "7.1.1"
    url = "https://github.com/LLNL/sundials/releases/download/v{version}/sundials-{version}.tar.gz"
    variant_keys = ("use_64bit_indices",)

    def cmake_args(self, rec: BuildRecord, ctx: InstallContext) -> list[str]:
        index_size = "64" if ctx.setting("use_64bit_indices") else "32"
        return [
            "-DENABLE_MPI=ON",
            "-DBUILD_SHARED_LIBS=ON",
            "-DBUILD_STATIC_LIBS=OFF",
            "-DEXAMPLES_INSTALL=OFF",
            f"-DSUNDIALS_INDEX_SIZE={index_size}",
        ]


class Caliper(CMakePackage):
    name = "caliper"
    version = "2.12.1"
    url = "https://github.com/LLNL/Caliper/archive/refs/tags/v{version}.tar.gz"
    extract_to = "Caliper-{version}"

    def cmake_args(self, rec: BuildRecord, ctx: InstallContext) -> list[str]:
        return ["-DWITH_MPI=ON", "-DBUILD_TESTING=OFF"]


class DealII(CMakePackage):
    """deal.II，按本次运行已安装依赖的路径配置"""

    name = "dealii"
    url = "https://github.com/dealii/dealii/releases/download/v{version}/dealii-{version}.tar.gz"
    build_type = "DebugRelease"
    variant_keys = (
        "cuda_enabled", "use_64bit_indices", "native_optimizations", "deal_ii_examples",
    )

    # 已安装依赖 -> (deal.II 特性开关, 路径变量)
    _features = (
        ("openblas", "LAPACK", "LAPACK_DIR"),
        ("p4est", "P4EST", "P4EST_DIR"),
        ("kokkos", "KOKKOS", "KOKKOS_DIR"),
        ("zlib", "ZLIB", "ZLIB_DIR"),
        ("gsl", "GSL", "GSL_DIR"),
        ("sundials", "SUNDIALS", "SUNDIALS_DIR"),
    )

    def resolve_version(self, ctx: InstallContext) -> str:
        return str(ctx.setting("deal_ii_version", "9.6.2"))

    def cmake_args(self, rec: BuildRecord, ctx: InstallContext) -> list[str]:
        args = ["-DDEAL_II_WITH_MPI=ON"]
        mpi = ctx.location_of("openmpi")
        if mpi is not None:
            args.append(f"-DMPI_DIR={mpi}")
        for package, feature, dir_var in self._features:
            path = ctx.location_of(package)
            if path is None:
                continue
            args += [f"-DDEAL_II_WITH_{feature}=ON", f"-D{dir_var}={path}"]
        openblas = ctx.location_of("openblas")
        if openblas is not None:
            args.append(f"-DBLAS_DIR={openblas}")

        args += [
            f"-DDEAL_II_WITH_64BIT_INDICES={_on_off(ctx.setting('use_64bit_indices'))}",
            f"-DDEAL_II_COMPONENT_EXAMPLES={_on_off(ctx.setting('deal_ii_examples'))}",
        ]
        if ctx.setting("native_optimizations"):
            args += [
                "-DDEAL_II_ALLOW_PLATFORM_INTROSPECTION=ON",
                "-DCMAKE_CXX_FLAGS=-march=native",
            ]
        else:
            args.append("-DDEAL_II_ALLOW_PLATFORM_INTROSPECTION=OFF")
        return args


class _PrismsApp(GitCMakePackage):
    version = "master"

    def cmake_args(self, rec: BuildRecord, ctx: InstallContext) -> list[str]:
        dealii = ctx.location_of("dealii")
        return [f"-DDEAL_II_DIR={dealii}"] if dealii is not None else []


class PrismsPF(_PrismsApp):
    name = "prisms-pf"
    repository = "https://github.com/prisms-center/phaseField.git"


class PrismsPlasticity(_PrismsApp):
    name = "prisms-plasticity"
    repository = "https://github.com/prisms-center/plasticity.git"


BUILTIN_RECIPES: tuple[type[SourcePackage], ...] = (
    Cuda, Kokkos, OpenMPI, OpenBLAS, Zlib, P4est,
    Gsl, Sundials, Caliper, DealII, PrismsPF, PrismsPlasticity,
)
