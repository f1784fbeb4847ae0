"""
Build pipeline for math.js
Sequences the build stages: clean → version → entries → cjs → entry cjs →
esm → header → bundle → docs

Each stage declares the stages it requires. The default pipeline runs them
one at a time in dependency order; the first failure stops the run.
"""

import time
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Callable, Awaitable, Any, Dict, List, Tuple

from .config import BuildConfig
from .collaborators import EntryFileGenerator, DocGenerator
from .compilers.banner import update_version_file, write_compiled_header
from .compilers.bundler import Bundler, PackagingEngine, WebpackSession
from .compilers.cleaner import clean
from .compilers.module_compiler import ModuleCompiler, EntryCompiler
from .compilers.transpiler import Transformer, BabelTransformer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stage:
    """A pipeline step and the names of the steps it depends on"""

    name: str
    action: Callable[[], Awaitable[Any]]
    requires: Tuple[str, ...] = ()


@dataclass
class PipelineReport:
    completed: List[str] = field(default_factory=list)
    durations: Dict[str, float] = field(default_factory=dict)


def order_stages(stages: List[Stage]) -> List[Stage]:
    """
    Order stages so every stage follows its requirements.

    Ties are broken by declaration order.

    Raises:
        ValueError: on an unknown requirement or a dependency cycle
    """
    by_name = {stage.name: stage for stage in stages}
    for stage in stages:
        for required in stage.requires:
            if required not in by_name:
                raise ValueError(f"Stage '{stage.name}' requires unknown stage '{required}'")

    ordered = []
    done = set()
    pending = list(stages)
    while pending:
        ready = next((s for s in pending if all(r in done for r in s.requires)), None)
        if ready is None:
            names = ", ".join(s.name for s in pending)
            raise ValueError(f"Dependency cycle between stages: {names}")
        ordered.append(ready)
        done.add(ready.name)
        pending.remove(ready)

    return ordered


class BuildPipeline:
    """
    Orchestrates the complete build of math.js

    Owns the long-lived packaging engine; use it as an async context
    manager so the engine is released at shutdown.
    """

    def __init__(
        self,
        config: BuildConfig,
        transformer: Optional[Transformer] = None,
        engine: Optional[PackagingEngine] = None,
        entry_generator: Optional[EntryFileGenerator] = None,
        doc_generator: Optional[DocGenerator] = None,
        log_callback: Optional[Callable] = None,
    ):
        self.config = config
        self.log_callback = log_callback
        self.transformer = transformer or BabelTransformer(config)
        self.engine = engine or WebpackSession(config)
        self.entry_generator = entry_generator or EntryFileGenerator(config, log_callback)
        self.doc_generator = doc_generator or DocGenerator(config, log_callback)

        self.module_compiler = ModuleCompiler(config, self.transformer, log_callback)
        self.entry_compiler = EntryCompiler(config, self.transformer, log_callback)
        self.bundler = Bundler(config, self.engine, log_callback)

    async def log(self, message: str, callback: Optional[Callable] = None):
        """Log message and call callback if provided"""
        logger.info(f"[BuildPipeline] {message}")
        callback = callback or self.log_callback
        if callback:
            await callback(message)

    # =========================================================================
    # Stages
    # =========================================================================

    async def _clean(self):
        clean(self.config)

    async def _update_version(self):
        update_version_file(self.config)

    async def _write_header(self):
        write_compiled_header(self.config)

    def stages(self) -> List[Stage]:
        return [
            Stage("clean", self._clean),
            Stage("version", self._update_version, ("clean",)),
            Stage("entries", self.entry_generator.generate, ("version",)),
            Stage("cjs", self.module_compiler.compile_legacy, ("version",)),
            Stage("entry-cjs", self.entry_compiler.compile_entries, ("entries", "cjs")),
            Stage("esm", self.module_compiler.compile_native, ("entries",)),
            Stage("header", self._write_header, ("cjs",)),
            Stage("bundle", self.bundler.bundle, ("version", "header")),
            Stage("docs", self.doc_generator.generate, ("entry-cjs", "esm", "bundle")),
        ]

    def stage(self, name: str) -> Stage:
        for stage in self.stages():
            if stage.name == name:
                return stage
        raise KeyError(f"Unknown stage: {name}")

    # =========================================================================
    # Running
    # =========================================================================

    async def _run(self, stage: Stage, report: PipelineReport):
        await self.log(f"Starting '{stage.name}'...")
        started = time.monotonic()
        try:
            await stage.action()
        except Exception as e:
            await self.log(f"✗ '{stage.name}' errored: {e}")
            raise
        elapsed = time.monotonic() - started
        report.completed.append(stage.name)
        report.durations[stage.name] = elapsed
        await self.log(f"Finished '{stage.name}' after {elapsed * 1000:.0f} ms")

    async def run_default(self) -> PipelineReport:
        """
        Run the full build, one stage after the other.

        Raises:
            The first stage failure (ConfigError, CompileError or OSError)
        """
        report = PipelineReport()
        for stage in order_stages(self.stages()):
            missing = [r for r in stage.requires if r not in report.completed]
            if missing:
                raise RuntimeError(f"Stage '{stage.name}' is missing {', '.join(missing)}")
            await self._run(stage, report)

        await self.log(f"✅ Build complete ({len(report.completed)} stages)")
        return report

    async def run_stage(self, name: str) -> PipelineReport:
        """Run a single stage on its own, without its requirements."""
        report = PipelineReport()
        await self._run(self.stage(name), report)
        return report

    async def rebuild(self) -> List[Any]:
        """
        Watch-mode rebuild: bundle and commonjs compile run concurrently.

        Failures are returned, not raised, so one failing half does not
        hide the other.
        """
        return await asyncio.gather(
            self.bundler.bundle(),
            self.module_compiler.compile_legacy(),
            return_exceptions=True,
        )

    async def close(self):
        await self.engine.close()
        await self.transformer.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
