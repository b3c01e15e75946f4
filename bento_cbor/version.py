"""
bento_cbor version.

- __version__: base semantic version, overridable with BENTO_CBOR_VERSION
  (release tooling sets it when building from a tag).
"""

from __future__ import annotations

import os

# Bump this when making a release.
_BASE_SEMVER = "0.1.0"

__version__ = os.environ.get("BENTO_CBOR_VERSION") or _BASE_SEMVER


def get_version() -> str:
    return __version__


__all__ = ["__version__", "get_version"]
