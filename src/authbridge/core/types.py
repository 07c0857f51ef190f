"""Type aliases used across AuthBridge."""

from __future__ import annotations

from typing import Any

JsonDict = dict[str, Any]
LockOwner = str
