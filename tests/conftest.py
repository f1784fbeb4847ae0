"""
Shared fixtures: a throwaway math.js project and in-process stand-ins for
babel, webpack and the node collaborators.
"""

import sys
import json
import asyncio
import dataclasses
from pathlib import Path

import pytest

from mathbuild.config import load_build_config
from mathbuild.errors import CompileError
from mathbuild.models import BundleStats
from mathbuild.compilers.bundler import PackagingEngine
from mathbuild.compilers.node_tools import RESULT_PREFIX
from mathbuild.compilers.transpiler import Transformer


HEADER_TEMPLATE = """/**
 * math.js
 *
 * @version @@version
 * @date    @@date
 */
"""


class FakeTransformer(Transformer):
    """Prefixes the source with the profile name; can fail on chosen files."""

    def __init__(self, fail_on=None, on_transform=None):
        self.fail_on = set(fail_on or [])
        self.on_transform = on_transform
        self.calls = []
        self.closed = False

    async def transform(self, code, filename, profile):
        self.calls.append((Path(filename).name, profile))
        if self.on_transform:
            self.on_transform(filename, profile)
        if Path(filename).name in self.fail_on:
            raise CompileError(f"SyntaxError in {filename}")
        return f"// {profile.value}\n{code}"

    async def close(self):
        self.closed = True


class FakeEngine(PackagingEngine):
    """Packaging engine writing the banner plus a stub into a staging dir."""

    def __init__(self, staging: Path, stats=None, delay=0.0):
        self.output_dir = staging
        self.stats = stats or BundleStats(assets=["math.js"])
        self.delay = delay
        self.contexts = []
        self.active = 0
        self.max_active = 0
        self.closed = False

    async def run(self, context):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            self.contexts.append(context)
            if self.delay:
                await asyncio.sleep(self.delay)
            self.output_dir.mkdir(parents=True, exist_ok=True)
            (self.output_dir / "math.js").write_text(context.banner + "\n/* bundle */\n")
            return self.stats
        finally:
            self.active -= 1

    async def close(self):
        self.closed = True


class FakeEntryGenerator:
    def __init__(self, config):
        self.config = config
        self.calls = 0

    async def generate(self):
        self.calls += 1
        self.config.entry_src_dir.mkdir(parents=True, exist_ok=True)
        (self.config.entry_src_dir / "pureFunctionsAny.generated.js").write_text(
            "export { add } from '../add.js'\n"
        )


class FakeDocGenerator:
    def __init__(self, config):
        self.config = config
        self.calls = 0
        self.saw_bundle = False

    async def generate(self):
        self.calls += 1
        self.saw_bundle = self.config.bundle_path.exists()
        return ["add"]


@pytest.fixture
def project(tmp_path):
    """A minimal math.js source tree."""
    (tmp_path / "package.json").write_text(json.dumps({"name": "mathjs", "version": "12.0.0"}))
    (tmp_path / ".babelrc").write_text(json.dumps({"plugins": ["@babel/plugin-transform-runtime"]}))
    src = tmp_path / "src"
    src.mkdir()
    (src / "header.js").write_text(HEADER_TEMPLATE)
    (src / "defaultInstance.js").write_text("export * from './add.js'\n")
    (src / "add.js").write_text("export function add (a, b) { return a + b }\n")
    return tmp_path


@pytest.fixture
def config(project, monkeypatch):
    monkeypatch.delenv("MATHBUILD_ROOT", raising=False)
    monkeypatch.delenv("MATHBUILD_WATCH_DELAY_MS", raising=False)
    return load_build_config(project)


@pytest.fixture
def transformer():
    return FakeTransformer()


@pytest.fixture
def engine(tmp_path):
    return FakeEngine(tmp_path / "staging")


FAKE_NODE = '''#!{python}
"""Stands in for node running one of the mathbuild session scripts."""
import json
import os
import sys

RESULT_PREFIX = {prefix!r}

mode = os.environ.get("FAKE_NODE_MODE", "ok")
launches = os.path.join(os.environ["FAKE_NODE_STATE"], "launches")
count = int(open(launches).read()) if os.path.exists(launches) else 0
with open(launches, "w") as f:
    f.write(str(count + 1))

if mode == "crash" or (mode == "crash-once" and count == 0):
    sys.exit(3)

with open(sys.argv[2]) as f:
    options = json.load(f)

for line in sys.stdin:
    if not line.strip():
        continue
    request = json.loads(line)
    print("loader output that is not a result", flush=True)
    if "profiles" in options:
        if mode == "babel-error":
            result = {{"error": "SyntaxError: Unexpected token (1:4)"}}
        else:
            result = {{"code": "// " + request["profile"] + "\\n" + request["code"]}}
    else:
        os.makedirs(options["outputPath"], exist_ok=True)
        with open(os.path.join(options["outputPath"], options["filename"]), "w") as f:
            f.write(request["banner"] + "\\n/* bundle */\\n")
        errors = ["Module not found: ./missing.js"] if mode == "errors" else []
        result = {{"warnings": [], "errors": errors, "assets": [options["filename"]]}}
    print(RESULT_PREFIX + json.dumps(result), flush=True)
'''


@pytest.fixture
def fake_node(tmp_path, monkeypatch, config):
    """
    Returns a factory for a config whose node binary is a python script
    speaking the session protocol. The mode selects its behaviour.
    """
    if sys.platform == "win32":
        pytest.skip("fake node executable needs a posix shebang")

    state = tmp_path / "fake_node_state"
    state.mkdir()
    script = tmp_path / "fake-node"
    script.write_text(FAKE_NODE.format(python=sys.executable, prefix=RESULT_PREFIX))
    script.chmod(0o755)
    monkeypatch.setenv("FAKE_NODE_STATE", str(state))

    def make(mode="ok"):
        monkeypatch.setenv("FAKE_NODE_MODE", mode)
        return dataclasses.replace(config, node_bin=str(script))

    make.launches = lambda: int((state / "launches").read_text())
    return make
