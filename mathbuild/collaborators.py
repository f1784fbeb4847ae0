"""
External collaborators of the build: the entry file generator and the
documentation generator (both node scripts under tools/), and the
non-ascii character scanner.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Callable, List

from .config import BuildConfig
from .errors import CompileError
from .models import AsciiFinding
from .compilers.node_tools import run_node_tool

logger = logging.getLogger(__name__)


_GENERATE_ENTRIES_JS = """
const generator = require(process.argv[1])
Promise.resolve(generator.generateEntryFiles()).then(
  () => process.exit(0),
  (err) => { console.error((err && err.stack) || err); process.exit(1) }
)
"""

_LIST_FUNCTIONS_JS = """
const { pathToFileURL } = require('url')
import(pathToFileURL(process.argv[1]).href).then(
  (all) => {
    const names = Object.keys(all).filter((key) => typeof all[key] === 'function')
    process.stdout.write(JSON.stringify(names))
  },
  (err) => { console.error((err && err.stack) || err); process.exit(1) }
)
"""

_DOCGEN_JS = """
const docgenerator = require(process.argv[1])
const args = JSON.parse(process.argv[2])
docgenerator[args.call](...args.params)
"""


class NodeCollaborator:
    name = "Node"

    def __init__(self, config: BuildConfig, log_callback: Optional[Callable] = None):
        self.config = config
        self.log_callback = log_callback

    async def log(self, message: str, callback: Optional[Callable] = None):
        """Log message and call callback if provided"""
        logger.info(f"[{self.name}] {message}")
        callback = callback or self.log_callback
        if callback:
            await callback(message)

    async def _node(self, script: str, *args: str):
        try:
            return await run_node_tool(
                [self.config.node_bin, "-e", script, *args],
                cwd=self.config.root,
                log_callback=self.log_callback,
                label=self.name,
            )
        except FileNotFoundError:
            raise CompileError(f"{self.config.node_bin} not found. Please install Node.js first.")


class EntryFileGenerator(NodeCollaborator):
    """Materializes the entry files under src/entry"""

    name = "EntryFileGenerator"

    async def generate(self):
        script = self.config.tools_dir / "entryGenerator"
        returncode, _, err = await self._node(_GENERATE_ENTRIES_JS, str(script))
        if returncode != 0:
            raise CompileError(f"Entry file generation failed: {err.strip()}")
        await self.log("✓ Entry files generated")


class DocGenerator(NodeCollaborator):
    """Drives tools/docgenerator.js over the exported functions of math.js"""

    name = "DocGenerator"

    async def list_function_names(self) -> List[str]:
        """Names of the functions exported by the default instance"""
        returncode, out, err = await self._node(_LIST_FUNCTIONS_JS, str(self.config.bundle_entry))
        if returncode != 0:
            raise CompileError(f"Could not load {self.config.bundle_entry}: {err.strip()}")
        try:
            return json.loads(out)
        except json.JSONDecodeError as e:
            raise CompileError(f"Unexpected function list from {self.config.bundle_entry}: {e}")

    async def _call(self, call: str, params: list):
        script = str(self.config.tools_dir / "docgenerator")
        payload = json.dumps({"call": call, "params": params})
        returncode, _, err = await self._node(_DOCGEN_JS, script, payload)
        if returncode != 0:
            # documentation problems are reported, never fatal
            logger.warning(f"[DocGenerator] {call} failed: {err.strip()}")

    async def cleanup(self, ref_dest: Path, ref_root: Path):
        await self._call("cleanup", [str(ref_dest), str(ref_root)])

    async def iterate_path(self, function_names: List[str], ref_src: Path, ref_dest: Path, ref_root: Path):
        # docgenerator expects a trailing separator on the source dir
        await self._call(
            "iteratePath",
            [function_names, str(ref_src) + "/", str(ref_dest), str(ref_root)],
        )

    async def generate(self) -> List[str]:
        names = await self.list_function_names()
        await self.cleanup(self.config.ref_dest, self.config.ref_root)
        await self.iterate_path(names, self.config.ref_src, self.config.ref_dest, self.config.ref_root)
        await self.log(f"✓ Reference docs generated for {len(names)} functions")
        return names


class AsciiValidator:
    """Finds non-ascii characters in the sources."""

    suffixes = (".js", ".cjs")

    def scan(self, src_dir: Path) -> List[List[AsciiFinding]]:
        """Return the findings of every source file, one list per file."""
        return [
            self.validate_chars(path)
            for path in sorted(src_dir.rglob("*"))
            if path.is_file() and path.suffix in self.suffixes
        ]

    def validate_chars(self, path: Path) -> List[AsciiFinding]:
        text = path.read_text(encoding="utf-8", errors="replace")
        return self.validate_text(text, str(path))

    def validate_text(self, text: str, filename: str) -> List[AsciiFinding]:
        findings = []
        in_block = False

        # only \n ends a line: U+2028, U+0085 and friends are findings, not breaks
        for ln, line in enumerate(text.split("\n"), start=1):
            line = line.rstrip("\r")
            in_line_comment = False
            i = 0
            while i < len(line):
                pair = line[i:i + 2]
                if in_block:
                    if pair == "*/":
                        in_block = False
                        i += 2
                        continue
                elif not in_line_comment:
                    if pair == "//":
                        in_line_comment = True
                    elif pair == "/*":
                        in_block = True
                        i += 2
                        continue

                c = ord(line[i])
                if c > 127:
                    findings.append(AsciiFinding(
                        filename=filename,
                        ln=ln,
                        col=i + 1,
                        c=c,
                        inside_comment=in_block or in_line_comment,
                    ))
                i += 1

        return findings
