from .deployment import DeploymentMapping, find_deployment_mapping, wildcard_match
from .selector import ChannelCandidate, choose_channel, eligible_channels

__all__ = [
    "ChannelCandidate",
    "DeploymentMapping",
    "choose_channel",
    "eligible_channels",
    "find_deployment_mapping",
    "wildcard_match",
]
