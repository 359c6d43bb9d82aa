"""
Map a requested model name onto a channel's provider deployment.

Exact keys always win; otherwise keys containing `*` are tried in the
mapper's own order as case-insensitive globs.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class DeploymentMapping:
    pattern: str
    deployment: str


def wildcard_match(pattern: str, value: str) -> bool:
    """
    `*` matches any run of characters (including none); everything else is
    literal. Matching is case-insensitive and anchored at both ends.
    """
    if pattern == value:
        return True
    if "*" not in pattern:
        return False
    regex = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.fullmatch(regex, value, flags=re.IGNORECASE | re.DOTALL) is not None


def find_deployment_mapping(
    mapper: Mapping[str, str] | None, model: str
) -> DeploymentMapping | None:
    if not mapper or not model:
        return None

    exact = mapper.get(model)
    if exact:
        return DeploymentMapping(pattern=model, deployment=exact)

    for pattern, deployment in mapper.items():
        if "*" in pattern and deployment and wildcard_match(pattern, model):
            return DeploymentMapping(pattern=pattern, deployment=deployment)
    return None


__all__ = ["DeploymentMapping", "find_deployment_mapping", "wildcard_match"]
