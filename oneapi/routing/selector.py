from __future__ import annotations

import random
from collections.abc import Collection, Sequence
from dataclasses import dataclass

from oneapi.schemas import Channel

from .deployment import DeploymentMapping, find_deployment_mapping


@dataclass
class ChannelCandidate:
    channel: Channel
    mapping: DeploymentMapping

    @property
    def key(self) -> str:
        return self.channel.key

    @property
    def deployment(self) -> str:
        return self.mapping.deployment


def eligible_channels(
    channels: Sequence[Channel],
    model: str,
    *,
    allowed_types: Collection[str] | None = None,
) -> list[ChannelCandidate]:
    """
    Keep channels whose deployment mapper resolves `model`, optionally
    restricted to a set of channel types.
    """
    candidates: list[ChannelCandidate] = []
    for channel in channels:
        if allowed_types is not None and channel.config.type not in allowed_types:
            continue
        mapping = find_deployment_mapping(channel.config.deployment_mapper, model)
        if mapping is not None:
            candidates.append(ChannelCandidate(channel=channel, mapping=mapping))
    return candidates


def choose_channel(
    candidates: Sequence[ChannelCandidate], rng: random.Random | None = None
) -> ChannelCandidate:
    """Uniform random choice; no weighting and no health awareness."""
    if not candidates:
        raise ValueError("choose_channel() requires at least one candidate")
    return (rng or random).choice(list(candidates))


__all__ = ["ChannelCandidate", "choose_channel", "eligible_channels"]
