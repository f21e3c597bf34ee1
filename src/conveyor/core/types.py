"""Type aliases used across Conveyor."""

from __future__ import annotations

from typing import Any

JsonDict = dict[str, Any]
RunId = str
CredentialId = str
EnvMap = dict[str, str]
