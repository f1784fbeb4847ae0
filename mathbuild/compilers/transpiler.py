"""
Source-to-source transformation of the JavaScript sources with Babel.

Two profiles are applied to the same source set:
- LEGACY: widest compatibility, commonjs modules, core-js polyfills on demand
- NATIVE: keeps import/export syntax, targets engines with native es-modules
"""

import json
import logging
import shutil
import tempfile
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any

from ..config import BuildConfig
from ..errors import ConfigError, CompileError
from .node_tools import NodeSession

logger = logging.getLogger(__name__)

SESSION_SCRIPT = Path(__file__).parent / "templates" / "babel_session.cjs"


class TransformProfile(str, Enum):
    LEGACY = "legacy"
    NATIVE = "native"


def load_babelrc(config: BuildConfig) -> Dict[str, Any]:
    """Read the project's .babelrc. A missing file means no base options."""
    if not config.babelrc.exists():
        return {}
    try:
        data = json.loads(config.babelrc.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Malformed {config.babelrc}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"{config.babelrc} must contain an object")
    return data


def profile_options(
    config: BuildConfig, profile: TransformProfile, base: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Merge the .babelrc options with the preset override of a profile."""
    options = dict(load_babelrc(config) if base is None else base)

    if profile == TransformProfile.LEGACY:
        preset_env = {"useBuiltIns": "usage", "corejs": config.corejs}
    else:
        preset_env = {"modules": False, "targets": {"esmodules": True}}

    options["presets"] = [["@babel/preset-env", preset_env]]
    return options


class Transformer:
    """Transforms the text of one source file under a profile."""

    async def transform(self, code: str, filename: Path, profile: TransformProfile) -> str:
        raise NotImplementedError

    async def close(self):
        pass


class BabelTransformer(Transformer):
    """
    Transforms sources with @babel/core loaded once in a node session.

    The options of both profiles are handed to the session at startup. The
    project's .babelrc is already merged into them, so babel is told not to
    look for config files itself.
    """

    def __init__(self, config: BuildConfig):
        self.config = config
        self.session = NodeSession(config.node_bin, SESSION_SCRIPT, config.root, name="BabelSession")
        self._work_dir: Optional[Path] = None
        self._options_file: Optional[Path] = None

    def _session_options(self) -> Dict[str, Any]:
        return {
            "root": str(self.config.root),
            "profiles": {
                profile.value: profile_options(self.config, profile) for profile in TransformProfile
            },
        }

    async def start(self):
        if self._work_dir is None:
            self._work_dir = Path(tempfile.mkdtemp(prefix="mathbuild_babel_"))
            self._options_file = self._work_dir / "options.json"
            self._options_file.write_text(json.dumps(self._session_options(), indent=2), encoding="utf-8")

        await self.session.start(str(self._options_file))

    async def transform(self, code: str, filename: Path, profile: TransformProfile) -> str:
        await self.start()
        logger.debug(f"[BabelSession] {profile.value}: {filename}")

        result = await self.session.request(
            {"filename": str(filename), "code": code, "profile": profile.value}
        )
        if result is None:
            raise CompileError(
                f"babel session exited with code {self.session.last_returncode} on {filename}"
            )
        if "error" in result:
            raise CompileError(f"babel failed on {filename}: {result['error']}")
        if not isinstance(result.get("code"), str):
            raise CompileError(f"babel returned no code for {filename}")
        return result["code"]

    async def close(self):
        """Stop the babel session and remove its options file."""
        await self.session.close()
        if self._work_dir is not None:
            shutil.rmtree(self._work_dir, ignore_errors=True)
            self._work_dir = None
            self._options_file = None
