"""Provisioning services for white-labeled storefronts.

This package resolves storefront templates from the source repository,
applies branding, publishes the result as one commit and provisions a
hosting project for it.
"""

from .branding import apply_branding
from .github_client import GitHubClient
from .pipeline import StorefrontPipeline
from .provisioner import DeploymentProvisioner
from .publisher import RepositoryPublisher
from .template_inspect import TemplateInspector
from .template_resolver import TemplateResolver
from .vercel_client import VercelClient

__all__ = [
    "DeploymentProvisioner",
    "GitHubClient",
    "RepositoryPublisher",
    "StorefrontPipeline",
    "TemplateInspector",
    "TemplateResolver",
    "VercelClient",
    "apply_branding",
]
