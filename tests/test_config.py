"""
Tests for configuration loading and profile options.
"""

import os
import json
import dataclasses

import pytest

from mathbuild.config import load_build_config, PACKAGE_JSON_COMMONJS
from mathbuild.compilers.transpiler import TransformProfile, profile_options, load_babelrc
from mathbuild.errors import ConfigError


class TestBuildConfig:
    def test_paths(self, config, project):
        assert config.root == project.resolve()
        assert config.bundle_entry == config.src_dir / "defaultInstance.js"
        assert config.bundle_path == config.lib_dir / "browser" / "math.js"
        assert config.entry_lib_dir == config.cjs_dir / "entry"
        assert config.compiled_header == config.cjs_dir / "header.js"
        assert config.ref_dest == config.root / "docs" / "reference" / "functions"
        assert config.legacy_dirs == (config.root / "es",)

    def test_frozen(self, config):
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.src_dir = config.root

    def test_environment_overrides(self, project, monkeypatch):
        monkeypatch.setenv("MATHBUILD_WATCH_DELAY_MS", "250")
        monkeypatch.setenv("MATHBUILD_NODE", "/opt/node/bin/node")
        config = load_build_config(project)
        assert config.watch_delay_ms == 250
        assert config.node_bin == "/opt/node/bin/node"

    def test_dotenv_file(self, project, monkeypatch):
        monkeypatch.delenv("MATHBUILD_WATCH_DELAY_MS", raising=False)
        (project / ".env").write_text("MATHBUILD_WATCH_DELAY_MS=300\n")
        try:
            assert load_build_config(project).watch_delay_ms == 300
        finally:
            os.environ.pop("MATHBUILD_WATCH_DELAY_MS", None)

    def test_commonjs_marker(self):
        assert json.loads(PACKAGE_JSON_COMMONJS) == {"type": "commonjs"}


class TestProfileOptions:
    def test_legacy_profile(self, config):
        options = profile_options(config, TransformProfile.LEGACY)
        assert options["plugins"] == ["@babel/plugin-transform-runtime"]
        assert options["presets"] == [
            ["@babel/preset-env", {"useBuiltIns": "usage", "corejs": "3.15"}]
        ]

    def test_native_profile(self, config):
        options = profile_options(config, TransformProfile.NATIVE)
        assert options["presets"] == [
            ["@babel/preset-env", {"modules": False, "targets": {"esmodules": True}}]
        ]

    def test_babelrc_is_not_mutated(self, config):
        base = {"presets": ["keep"], "comments": False}
        profile_options(config, TransformProfile.LEGACY, base)
        assert base == {"presets": ["keep"], "comments": False}

    def test_missing_babelrc(self, config):
        config.babelrc.unlink()
        assert load_babelrc(config) == {}

    def test_malformed_babelrc(self, config):
        config.babelrc.write_text("{ presets: ")
        with pytest.raises(ConfigError):
            load_babelrc(config)
