"""
Browser bundle for math.js.

The bundle is produced by one long-lived webpack compiler (WebpackSession)
so its cache survives repeated runs in watch mode. Webpack writes into a
private staging directory; the artifact is copied to lib/browser only when
the run reports no errors.
"""

import json
import shutil
import asyncio
import logging
import tempfile
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional, Callable

from pydantic import ValidationError

from ..config import BuildConfig
from ..errors import CompileError
from ..models import BundleStats
from .banner import create_banner
from .module_compiler import write_commonjs_marker
from .node_tools import NodeSession
from .transpiler import TransformProfile, profile_options

logger = logging.getLogger(__name__)

SESSION_SCRIPT = Path(__file__).parent / "templates" / "webpack_session.cjs"


@dataclass(frozen=True)
class BuildContext:
    """Per-run input of the packaging engine."""

    banner: str


class PackagingEngine:
    """A packaging engine writing its assets into output_dir."""

    output_dir: Path = None

    async def run(self, context: BuildContext) -> BundleStats:
        raise NotImplementedError

    async def close(self):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


class WebpackSession(PackagingEngine):
    """
    One webpack compiler living in a node process for the whole build.

    Requests and results are exchanged as JSON lines over stdin/stdout. When
    the process dies the run reports a hard failure and the next run starts
    a fresh compiler.
    """

    def __init__(self, config: BuildConfig):
        self.config = config
        self.session = NodeSession(config.node_bin, SESSION_SCRIPT, config.root, name="WebpackSession")
        self._work_dir: Optional[Path] = None
        self._options_file: Optional[Path] = None
        self.output_dir: Optional[Path] = None

    def _session_options(self) -> dict:
        return {
            "root": str(self.config.root),
            "entry": str(self.config.bundle_entry),
            "outputPath": str(self.output_dir),
            "filename": self.config.bundle_file,
            "library": self.config.library_name,
            "libraryTarget": self.config.library_target,
            "libraryExport": self.config.library_export,
            "globalObject": self.config.global_object,
            "babel": profile_options(self.config, TransformProfile.LEGACY),
        }

    async def start(self):
        """Spawn the node process holding the webpack compiler."""
        if self._work_dir is None:
            self._work_dir = Path(tempfile.mkdtemp(prefix="mathbuild_webpack_"))
            self.output_dir = self._work_dir / "dist"
            self._options_file = self._work_dir / "options.json"
            self._options_file.write_text(json.dumps(self._session_options(), indent=2), encoding="utf-8")

        await self.session.start(str(self._options_file))

    async def run(self, context: BuildContext) -> BundleStats:
        await self.start()

        result = await self.session.request({"banner": context.banner})
        if result is None:
            return BundleStats(
                hard_failure=f"webpack session exited with code {self.session.last_returncode}"
            )

        try:
            return BundleStats.model_validate(result)
        except ValidationError as e:
            return BundleStats(hard_failure=f"Unreadable webpack result: {e}")

    async def close(self):
        """Stop the node process and drop the staging directory."""
        await self.session.close()

        if self._work_dir is not None:
            shutil.rmtree(self._work_dir, ignore_errors=True)
            self._work_dir = None
            self._options_file = None


class Bundler:
    """
    Produces lib/browser/math.js with a fresh banner on every run.

    Runs against the shared engine are serialized by a lock.
    """

    def __init__(
        self,
        config: BuildConfig,
        engine: PackagingEngine,
        log_callback: Optional[Callable] = None,
    ):
        self.config = config
        self.engine = engine
        self.log_callback = log_callback
        self._lock = asyncio.Lock()

    async def log(self, message: str, callback: Optional[Callable] = None):
        """Log message and call callback if provided"""
        logger.info(f"[Bundler] {message}")
        callback = callback or self.log_callback
        if callback:
            await callback(message)

    async def bundle(self, today: Optional[date] = None) -> Path:
        """
        Run the packaging engine and publish the bundle.

        Returns:
            Path to the bundle

        Raises:
            CompileError: on a hard failure or when webpack reports errors
        """
        async with self._lock:
            # the banner has a date in it which should stay up to date
            context = BuildContext(banner=create_banner(self.config, today))
            stats = await self.engine.run(context)

            if stats.hard_failure:
                await self.log(f"✗ Webpack failed: {stats.hard_failure}")
                raise CompileError(stats.hard_failure)

            if stats.has_warnings:
                logger.warning("Webpack warnings:\n" + "\n".join(stats.warnings))

            if stats.has_errors:
                logger.error("Webpack errors:\n" + "\n".join(stats.errors))
                raise CompileError("Compile failed")

            self._publish(stats)

        await self.log(f"bundled {self.config.bundle_path}")
        return self.config.bundle_path

    def _publish(self, stats: BundleStats):
        """Copy the staged assets to lib/browser and mark it commonjs."""
        self.config.browser_dir.mkdir(parents=True, exist_ok=True)

        assets = stats.assets or [self.config.bundle_file]
        for name in assets:
            source = self.engine.output_dir / name
            target = self.config.browser_dir / name
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)

        write_commonjs_marker(self.config.browser_dir)
