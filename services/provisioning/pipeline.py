"""Pipeline orchestrator for the storefront tools.

``create_store_and_deploy`` runs allowlist, resolve, brand, publish and
provision in order and stops at the first failing stage. ``plan_storefront``
is its side-effect free counterpart: it only reads from the source
repository.
"""

import asyncio
from typing import Any

from app.config import Settings
from app.core.audit import audit_event
from app.core.auth import Gatekeeper
from app.core.logging import get_context_logger
from app.core.metrics import gatekeeper_decisions_total
from app.utils.exceptions import Misconfigured, PipelineError
from services.provisioning.branding import apply_branding
from services.provisioning.github_client import GitHubClient
from services.provisioning.models import BrandingSpec, StorefrontOrder, TemplateKind
from services.provisioning.provisioner import DeploymentProvisioner
from services.provisioning.publisher import RepositoryPublisher
from services.provisioning.template_inspect import (
    TemplateInspector,
    extract_uno_color_tokens,
    package_names,
)
from services.provisioning.template_resolver import TemplateResolver
from services.provisioning.vercel_client import VercelClient

CREATE_TOOL = "create_store_and_deploy"
DEFAULT_COMMIT_MESSAGE = "Initial commit: Shopware Frontends storefront"


def _branding_arguments(branding: BrandingSpec, brand_name: str) -> dict[str, Any]:
    arguments: dict[str, Any] = {"name": brand_name, "colors": dict(branding.colors)}
    if branding.logo_svg:
        arguments["logoSvg"] = branding.logo_svg
    return arguments


class StorefrontPipeline:
    """
    Orchestrates the provisioning services for one tool invocation.

    Example:
        ```python
        async with GitHubClient.from_settings(settings) as github, \\
                VercelClient.from_settings(settings) as vercel:
            pipeline = StorefrontPipeline(github, vercel, settings, gatekeeper)
            result = await pipeline.create_store_and_deploy(order, request_id)
        ```
    """

    def __init__(
        self,
        github: GitHubClient,
        vercel: VercelClient,
        settings: Settings,
        gatekeeper: Gatekeeper,
    ):
        self.github = github
        self.vercel = vercel
        self.gatekeeper = gatekeeper
        self.resolver = TemplateResolver(github, settings)
        self.inspector = TemplateInspector(github, settings)
        self.publisher = RepositoryPublisher(github, settings)
        self.provisioner = DeploymentProvisioner(vercel, settings)
        self.logger = get_context_logger(__name__)

    def _require_credentials(self, request_id: str | None, tool: str) -> None:
        missing = []
        if not self.github.has_token:
            missing.append("GITHUB_TOKEN")
        if not self.vercel.has_token:
            missing.append("VERCEL_TOKEN")
        if missing:
            error = Misconfigured(
                f"{', '.join(missing)} not set on the server",
                meta={"missing": missing},
            )
            gatekeeper_decisions_total.labels(outcome="denied", reason=error.reason).inc()
            audit_event(
                "mcp.config.denied",
                request_id,
                tool=tool,
                status=error.status_code,
                reason=error.reason,
                missing=missing,
            )
            raise error

    async def create_store_and_deploy(
        self, order: StorefrontOrder, request_id: str | None
    ) -> dict[str, Any]:
        """
        Create a branded storefront repository and deploy it.

        The owner allowlist and the server credentials are checked before
        any external call. Pipeline failures are audited and re-raised;
        the caller turns them into a tool-level error.

        Args:
            order: Store, branding, destination repository and hosting project
            request_id: Correlation id for the audit trail

        Returns:
            dict: Repository, commit, hosting and branding outcome

        Raises:
            Forbidden: If the destination owner is not allowlisted
            Misconfigured: If the allowlist or an outbound credential is missing
            PipelineError: Stage-specific failure (resolve, publish, provision)
        """
        target = order.target
        self.gatekeeper.check_owner(target.owner, request_id, CREATE_TOOL)
        self._require_credentials(request_id, CREATE_TOOL)

        audit_context = {
            "tool": CREATE_TOOL,
            "store_id": order.store_id,
            "owner": target.owner,
            "repo": target.repo,
            "project_name": order.project.project_name,
        }
        audit_event(
            "mcp.tool.start",
            request_id,
            template=order.template.value,
            template_ref=order.template_ref,
            **audit_context,
        )

        try:
            resolved = await self.resolver.resolve(order.template_ref, order.template)
            branding = apply_branding(resolved.files, order.branding)
            published = await self.publisher.publish(
                target,
                resolved.files,
                order.commit_message or DEFAULT_COMMIT_MESSAGE,
                order.branch,
            )
            provisioned = await self.provisioner.ensure_and_deploy(order.project, target, order.branch)
        except PipelineError as e:
            audit_event(
                "mcp.tool.error",
                request_id,
                stage=e.stage,
                error=e.message,
                error_type=type(e).__name__,
                **audit_context,
            )
            raise

        warnings = [*branding.warnings, *provisioned.warnings]
        if not resolved.files.is_complete:
            warnings.append(
                f"{len(resolved.fetch_failures)} template file(s) could not be fetched and were skipped"
            )

        audit_event(
            "mcp.tool.success",
            request_id,
            commit_sha=published.commit_sha,
            files_committed=published.files_committed,
            deployment_id=provisioned.deployment.deployment_id if provisioned.deployment else None,
            **audit_context,
        )

        deployment = provisioned.deployment
        project = provisioned.project
        return {
            "ok": True,
            "storeId": order.store_id,
            "brand": order.brand_name,
            "template": order.template.value,
            "templateRef": order.template_ref,
            "repo": {
                "owner": target.owner,
                "name": target.repo,
                "url": published.repo.repo_url,
                "cloneUrl": published.repo.clone_url,
                "created": published.repo.created,
                "private": target.private,
            },
            "commit": {
                "sha": published.commit_sha,
                "url": published.commit_url,
                "filesCommitted": published.files_committed,
                "treeSha": published.tree_sha,
                "baseCommitSha": published.base_commit_sha,
                "branch": published.branch,
            },
            "vercel": {
                "projectId": project.project_id,
                "projectName": project.project_name,
                "projectUrl": project.project_url,
                "linkedRepo": project.linked_repo,
                "created": project.created,
                "deployment": {
                    "deploymentId": deployment.deployment_id,
                    "deploymentUrl": deployment.deployment_url,
                    "inspectorUrl": deployment.inspector_url,
                    "status": deployment.status,
                }
                if deployment
                else None,
            },
            "branding": {
                "modifiedPaths": sorted(branding.modified_paths),
                "warnings": branding.warnings,
            },
            "fetchFailures": [
                {"path": failure.path, "reason": failure.reason} for failure in resolved.fetch_failures
            ],
            "warnings": warnings,
        }

    async def plan_storefront(
        self,
        order: StorefrontOrder,
        i18n: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Dry run of ``create_store_and_deploy``.

        Inspects the base template, the packages and the theme tokens,
        resolves the template and previews branding on an in-memory copy.
        Nothing is written to the repository or hosting provider.

        Raises:
            PipelineError: If the source repository cannot be read
        """
        ref = order.template_ref
        base_template, packages, uno_source, resolved = await asyncio.gather(
            self.inspector.describe_base_template(ref),
            self.inspector.describe_packages(ref),
            self.inspector.fetch_uno_config(ref),
            self.resolver.resolve(ref, order.template),
        )
        color_tokens = extract_uno_color_tokens(uno_source)

        preview = apply_branding(resolved.files.copy(), order.branding)

        unknown_tokens = [token for token in order.branding.colors if token not in color_tokens]
        warnings = list(preview.warnings)
        if i18n is not None and (not i18n.get("locales") or not i18n.get("domains")):
            warnings.append(
                "i18n provided but locales/domains are empty; multi-domain config is not supported"
            )
        if not color_tokens:
            warnings.append("Could not extract UnoCSS color tokens from the template theme")
        elif unknown_tokens:
            warnings.append(f"Color tokens not defined by the theme: {', '.join(unknown_tokens)}")
        if resolved.fetch_failures:
            warnings.append(
                f"{len(resolved.fetch_failures)} template file(s) could not be fetched and would be skipped"
            )

        steps = [
            {
                "id": "inspect",
                "title": "Inspect templates and packages",
                "details": [
                    "Use describe_base_template to understand base structure and nuxt config defaults.",
                    "Use describe_packages to see available packages and their package.json/README.",
                    "Use describe_uno_theme to get allowed UnoCSS color tokens.",
                ],
            },
            {
                "id": "prepare-branding",
                "title": "Prepare branding inputs",
                "details": [
                    "Provide brand colors only using allowed UnoCSS tokens.",
                    "Provide logoSvg (optional) that will be written to public/logo.svg.",
                ],
                "allowedColorTokens": color_tokens,
                "previewModifiedPaths": sorted(preview.modified_paths),
            },
            {
                "id": "execute",
                "title": "Execute store creation and deploy",
                "details": [
                    f"Call {CREATE_TOOL} with the prepared inputs.",
                    "The server resolves the template, publishes one commit and deploys it.",
                ],
                "toolCall": {
                    "tool": CREATE_TOOL,
                    "arguments": {
                        "storeId": order.store_id,
                        "templateRef": ref,
                        "template": order.template.value,
                        "brand": _branding_arguments(order.branding, order.brand_name),
                        "git": {
                            "owner": order.target.owner,
                            "repo": order.target.repo,
                            "private": order.target.private,
                        },
                        "vercel": {"projectName": order.project.project_name},
                        "branch": order.branch,
                    },
                },
            },
            {
                "id": "verify",
                "title": "Verify outputs",
                "details": [
                    "Confirm the repository exists and the deployment is reachable.",
                    "Use get_deployment_status to follow the deployment.",
                ],
            },
        ]

        self.logger.info(
            "Storefront planned",
            store_id=order.store_id,
            template=order.template.value,
            ref=ref,
            file_count=len(resolved.files),
            warning_count=len(warnings),
        )
        return {
            "ok": True,
            "ref": ref,
            "storeId": order.store_id,
            "template": order.template.value,
            "baseTemplateSummary": {
                "capabilities": base_template["capabilities"],
                "nuxtConfigSummary": base_template["nuxtConfigSummary"],
            },
            "packagesSummary": {
                "packageCount": packages["packageCount"],
                "packageNames": package_names(packages),
            },
            "unoTheme": {"colorTokens": color_tokens, "unoConfigRef": ref},
            "resolvedTemplate": {
                "fileCount": len(resolved.files),
                "fetchFailures": [
                    {"path": failure.path, "reason": failure.reason}
                    for failure in resolved.fetch_failures
                ],
            },
            "steps": steps,
            "warnings": warnings,
        }
