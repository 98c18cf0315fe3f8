"""Collaborator gateways: version control, review requests, descriptor I/O."""

from patchforge.gateway.descriptor_io import DescriptorIO, YamlDescriptorIO
from patchforge.gateway.review import (
    DryRunReviewClient,
    GitHubReviewClient,
    ReviewRequestClient,
    ReviewRequestError,
)
from patchforge.gateway.subprocess_utils import GatewayError
from patchforge.gateway.vcs import GitVcsGateway, VcsError, VcsGateway

__all__ = [
    "DescriptorIO",
    "YamlDescriptorIO",
    "ReviewRequestClient",
    "GitHubReviewClient",
    "DryRunReviewClient",
    "ReviewRequestError",
    "GatewayError",
    "VcsGateway",
    "GitVcsGateway",
    "VcsError",
]
