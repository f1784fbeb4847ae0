"""
Tests for removal of generated files.
"""

from mathbuild.compilers.cleaner import clean


class TestClean:
    def test_removes_outputs_and_generated_sources(self, config):
        (config.root / "es").mkdir()
        config.esm_dir.mkdir(parents=True)
        (config.esm_dir / "add.js").write_text("x")
        config.entry_src_dir.mkdir()
        generated = config.entry_src_dir / "pureFunctionsAny.generated.js"
        generated.write_text("x")

        removed = clean(config)

        assert not (config.root / "es").exists()
        assert not config.lib_dir.exists()
        assert not generated.exists()
        assert generated in removed
        # hand-written sources stay
        assert (config.src_dir / "add.js").exists()

    def test_missing_targets_are_fine(self, config):
        assert clean(config) == []
        assert clean(config) == []

    def test_missing_source_tree(self, config, tmp_path):
        import shutil
        shutil.rmtree(config.src_dir)
        assert clean(config) == []
