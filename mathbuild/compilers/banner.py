"""
Version and banner handling.

The banner is the license/version/date header prepended to the browser
bundle and copied to lib/cjs/header.js. It is recomputed on every use,
because a long watch session may outlive the date or the version.
"""

import json
import logging
from datetime import date, datetime, timezone
from typing import Optional

from pydantic import ValidationError

from ..config import BuildConfig, AUTOGENERATED_WARNING
from ..errors import ConfigError
from ..models import PackageMetadata

logger = logging.getLogger(__name__)


def get_version(config: BuildConfig) -> str:
    """Read the version number from package.json"""
    try:
        raw = config.package_json.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Package metadata not found: {config.package_json}")
    except UnicodeDecodeError as e:
        raise ConfigError(f"Malformed package metadata {config.package_json}: {e}")

    try:
        metadata = PackageMetadata.model_validate(json.loads(raw))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Malformed package metadata {config.package_json}: {e}")
    except ValidationError as e:
        raise ConfigError(f"Invalid version in {config.package_json}: {e}")

    return metadata.version


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def create_banner(config: BuildConfig, today: Optional[date] = None) -> str:
    """
    Generate the banner with today's date and the current version.

    Only the first occurrence of each placeholder is replaced.
    """
    today = today or today_utc()
    version = get_version(config)

    try:
        template = config.header_template.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Header template not found: {config.header_template}")
    except UnicodeDecodeError as e:
        raise ConfigError(f"Header template {config.header_template} is not utf-8: {e}")

    return (
        template
        .replace("@@date", today.isoformat(), 1)
        .replace("@@version", version, 1)
    )


def update_version_file(config: BuildConfig) -> str:
    """Generate a js file containing the version number"""
    version = get_version(config)

    config.version_file.write_text(
        f"export const version = '{version}'{AUTOGENERATED_WARNING}", encoding="utf-8"
    )
    logger.info(f"[VersionBanner] Wrote {config.version_file.name} ({version})")
    return version


def write_compiled_header(config: BuildConfig, today: Optional[date] = None):
    """Write a snapshot of the banner next to the commonjs output"""
    config.compiled_header.parent.mkdir(parents=True, exist_ok=True)
    config.compiled_header.write_text(create_banner(config, today), encoding="utf-8")
    logger.info(f"[VersionBanner] Wrote {config.compiled_header}")
