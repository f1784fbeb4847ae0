"""
Module compilers: transpile the source tree into the commonjs tree
(lib/cjs), the es-module tree (lib/esm) and the compiled entry files
(lib/cjs/entry).

Every file of a tree is transformed before anything is written, so a
failing file leaves that tree untouched.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Callable, List, Iterable

from ..config import BuildConfig, PACKAGE_JSON_COMMONJS
from ..errors import CompileError
from .transpiler import Transformer, TransformProfile

logger = logging.getLogger(__name__)

SOURCE_SUFFIXES = (".js", ".cjs")


@dataclass
class SourceFile:
    """A source file and its path relative to the tree it was collected from"""

    path: Path
    relative_path: Path

    def read(self) -> str:
        return self.path.read_text(encoding="utf-8")


def collect_sources(
    root: Path, suffixes: Iterable[str] = SOURCE_SUFFIXES, exclude: Optional[Path] = None
) -> List[SourceFile]:
    """Collect source files under root, sorted by relative path."""
    if not root.is_dir():
        return []

    files = []
    for path in root.rglob("*"):
        if not path.is_file() or path.suffix not in suffixes:
            continue
        if exclude is not None and exclude in path.parents:
            continue
        files.append(SourceFile(path=path, relative_path=path.relative_to(root)))

    return sorted(files, key=lambda f: f.relative_path.as_posix())


def write_commonjs_marker(directory: Path) -> Path:
    """Create a package.json file declaring a commonjs tree"""
    directory.mkdir(parents=True, exist_ok=True)
    marker = directory / "package.json"
    marker.write_text(PACKAGE_JSON_COMMONJS, encoding="utf-8")
    return marker


class TreeCompiler:
    """Shared transform-then-write logic of the module compilers."""

    name = "TreeCompiler"

    def __init__(
        self,
        config: BuildConfig,
        transformer: Transformer,
        log_callback: Optional[Callable] = None,
    ):
        self.config = config
        self.transformer = transformer
        self.log_callback = log_callback

    async def log(self, message: str, callback: Optional[Callable] = None):
        """Log message and call callback if provided"""
        logger.info(f"[{self.name}] {message}")
        callback = callback or self.log_callback
        if callback:
            await callback(message)

    async def compile_tree(
        self, files: List[SourceFile], profile: TransformProfile, dest: Path
    ) -> List[Path]:
        """
        Transform files with a profile and mirror them under dest.

        Raises:
            CompileError: if any file fails to transform. Nothing is written then.
        """
        results = []
        for source in files:
            try:
                code = await self.transformer.transform(source.read(), source.path, profile)
            except CompileError:
                await self.log(f"✗ Failed to compile {source.relative_path}")
                raise
            results.append((dest / source.relative_path, code))

        written = []
        for target, code in results:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(code, encoding="utf-8")
            written.append(target)

        await self.log(f"✓ {len(written)} file(s) compiled to {dest} ({profile.value})")
        return written


class ModuleCompiler(TreeCompiler):
    """Produces the commonjs and es-module copies of the source tree"""

    name = "ModuleCompiler"

    async def compile_legacy(self) -> List[Path]:
        """
        Compile to lib/cjs with the legacy profile.

        The commonjs marker is written before any compiled file. The entry
        subtree is left to the EntryCompiler.
        """
        write_commonjs_marker(self.config.cjs_dir)

        files = collect_sources(self.config.src_dir, exclude=self.config.entry_src_dir)
        return await self.compile_tree(files, TransformProfile.LEGACY, self.config.cjs_dir)

    async def compile_native(self) -> List[Path]:
        """
        Compile to lib/esm with the native profile.

        Includes the generated entry files, so it must run after entry
        generation.
        """
        files = collect_sources(self.config.src_dir)
        return await self.compile_tree(files, TransformProfile.NATIVE, self.config.esm_dir)


class EntryCompiler(TreeCompiler):
    """Compiles the generated entry files to lib/cjs/entry"""

    name = "EntryCompiler"

    async def compile_entries(self) -> List[Path]:
        entry_dir = self.config.entry_src_dir
        if not entry_dir.is_dir():
            raise CompileError(
                f"Entry files not found in {entry_dir}. Generate the entry files first."
            )

        files = collect_sources(entry_dir, suffixes=(".js",))
        return await self.compile_tree(files, TransformProfile.LEGACY, self.config.entry_lib_dir)
