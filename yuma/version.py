"""
Yuma package versioning.

- __version__: semantic base version for the yuma package
- ENGINE_REVISION: bumped whenever a change alters epoch output for the same
  input snapshot (executors on different revisions will disagree)
"""

from __future__ import annotations

# Bump this when making incompatible changes to yuma/ APIs or behavior.
__version__ = "0.1.0"

# Consensus-affecting revision of the epoch math. Embedded in output digests.
ENGINE_REVISION: int = 2

__all__ = ["__version__", "ENGINE_REVISION"]
