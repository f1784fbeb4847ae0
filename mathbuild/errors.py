"""
Error types raised by the build pipeline.

Filesystem failures are not wrapped: they surface as the OSError raised by
the platform.
"""


class BuildError(Exception):
    """Base class for failures of a build stage."""
    pass


class ConfigError(BuildError):
    """Raised when package metadata or the header template is missing or malformed."""
    pass


class CompileError(BuildError):
    """Raised when a transformation or the packaging engine fails."""
    pass
