"""
Removal of generated files.
"""

import shutil
import logging
from pathlib import Path
from typing import List

from ..config import BuildConfig

logger = logging.getLogger(__name__)


def clean(config: BuildConfig) -> List[Path]:
    """
    Remove generated files: legacy compiled files, the whole lib/ tree
    (browser bundle, esm code and commonjs code) and generated source files.

    Missing paths are skipped.

    Returns:
        The paths that were removed
    """
    removed = []

    for directory in (*config.legacy_dirs, config.lib_dir):
        if directory.exists():
            shutil.rmtree(directory)
            removed.append(directory)

    if config.src_dir.is_dir():
        for generated in sorted(config.src_dir.rglob(f"*{config.generated_suffix}")):
            if generated.is_file():
                generated.unlink()
                removed.append(generated)

    for path in removed:
        logger.info(f"[Cleaner] Removed {path}")
    return removed
