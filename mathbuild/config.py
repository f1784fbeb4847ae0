"""
Configuration settings for the math.js build.
Loads environment variables from the project's .env, then resolves every
input and output path once into a frozen BuildConfig.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def load_environment(root: Optional[Path] = None):
    """Load .env from the project root, fallback to default lookup."""
    env_file = Path(root or os.getenv("MATHBUILD_ROOT", os.getcwd())) / ".env"
    if env_file.exists():
        load_dotenv(env_file)
        logger.debug(f"[Config] Loaded environment from: {env_file}")
    else:
        load_dotenv()
        logger.debug("[Config] Using default .env loading")


# Marker written at the root of every commonjs output tree
PACKAGE_JSON_COMMONJS = '{\n  "type": "commonjs"\n}\n'

AUTOGENERATED_WARNING = """
// Note: This file is automatically generated when building math.js.
// Changes made in this file will be overwritten.
"""

# Babel preset-env baseline for the legacy profile
COREJS_VERSION = "3.15"

DEFAULT_WATCH_DELAY_MS = 100


@dataclass(frozen=True)
class BuildConfig:
    """Paths and options for one build. Never mutated after creation."""

    root: Path

    # Source
    src_dir: Path
    bundle_entry: Path
    header_template: Path
    version_file: Path
    entry_src_dir: Path

    # Output
    lib_dir: Path
    browser_dir: Path
    cjs_dir: Path
    esm_dir: Path
    entry_lib_dir: Path
    compiled_header: Path
    bundle_file: str = "math.js"

    # Reference docs
    ref_src: Path = None
    ref_dir: Path = None
    ref_dest: Path = None
    ref_root: Path = None

    # Project files
    package_json: Path = None
    babelrc: Path = None
    tools_dir: Path = None

    # Clean targets
    legacy_dirs: Tuple[Path, ...] = field(default_factory=tuple)
    generated_suffix: str = ".generated.js"

    # Bundle options
    library_name: str = "math"
    library_target: str = "umd"
    library_export: str = "default"
    global_object: str = "this"
    corejs: str = COREJS_VERSION

    # Tooling
    node_bin: str = "node"
    watch_delay_ms: int = DEFAULT_WATCH_DELAY_MS

    @property
    def bundle_path(self) -> Path:
        return self.browser_dir / self.bundle_file


def load_build_config(root: Optional[Path] = None) -> BuildConfig:
    """
    Resolve the build configuration for a project root.

    Args:
        root: Project root. Defaults to MATHBUILD_ROOT, then the cwd.

    Returns:
        Frozen BuildConfig with absolute paths
    """
    load_environment(root)
    root = Path(root or os.getenv("MATHBUILD_ROOT", os.getcwd())).resolve()

    src_dir = root / "src"
    lib_dir = root / "lib"
    cjs_dir = lib_dir / "cjs"
    ref_dir = root / "docs"

    return BuildConfig(
        root=root,
        src_dir=src_dir,
        bundle_entry=src_dir / "defaultInstance.js",
        header_template=src_dir / "header.js",
        version_file=src_dir / "version.js",
        entry_src_dir=src_dir / "entry",
        lib_dir=lib_dir,
        browser_dir=lib_dir / "browser",
        cjs_dir=cjs_dir,
        esm_dir=lib_dir / "esm",
        entry_lib_dir=cjs_dir / "entry",
        compiled_header=cjs_dir / "header.js",
        ref_src=src_dir,
        ref_dir=ref_dir,
        ref_dest=ref_dir / "reference" / "functions",
        ref_root=ref_dir / "reference",
        package_json=root / "package.json",
        babelrc=root / ".babelrc",
        tools_dir=root / "tools",
        legacy_dirs=(root / "es",),
        node_bin=os.getenv("MATHBUILD_NODE", "node"),
        watch_delay_ms=int(os.getenv("MATHBUILD_WATCH_DELAY_MS", DEFAULT_WATCH_DELAY_MS)),
    )
