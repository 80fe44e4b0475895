"""
Build metadata for version reporting.

The version comes from the installed distribution metadata. The commit is
injected by the build environment through ``BSRESTORE_BUILD_COMMIT``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from importlib import metadata

DISTRIBUTION_NAME = "bsrestore"
COMMIT_ENV_VAR = "BSRESTORE_BUILD_COMMIT"


@dataclass(frozen=True, slots=True)
class BuildInfo:
    """Version and commit of the running build."""

    version: str
    commit: str

    def render(self) -> str:
        """Render the two-line ``--version`` report."""
        return f"Version: {self.version}\nCommit: {self.commit}"


def current_build_info() -> BuildInfo:
    """
    Resolve build metadata for the running interpreter.

    Returns
    -------
    BuildInfo
        ``dev`` / ``none`` when the package is not installed or no commit was injected.
    """
    try:
        version = metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        version = "dev"
    commit = os.environ.get(COMMIT_ENV_VAR, "").strip() or "none"
    return BuildInfo(version=version, commit=commit)
