"""Deployment provisioner: ensure a hosting project and trigger one deployment."""

from typing import Any

from app.config import Settings
from app.core.logging import get_context_logger
from app.core.metrics import deployment_triggers_total
from app.utils.exceptions import HostingError, UpstreamAPIError
from services.provisioning.models import (
    Deployment,
    DeploymentProject,
    ProjectSpec,
    ProvisionResult,
    RepoTarget,
)
from services.provisioning.vercel_client import VercelClient


def _dashboard_scope(team_id: str | None, account_id: str | None = None) -> str:
    return team_id or account_id or "~"


class DeploymentProvisioner:
    """Links destination repositories to Vercel projects and deploys them."""

    def __init__(self, vercel: VercelClient, settings: Settings):
        self.vercel = vercel
        self.team_id = settings.vercel_team_id
        self.default_framework = settings.vercel_framework
        self.logger = get_context_logger(__name__)

    async def ensure_project(self, spec: ProjectSpec, target: RepoTarget) -> DeploymentProject:
        """
        Reuse the project named ``spec.project_name`` or create it.

        Existing projects are returned as-is; their settings, link and
        environment variables are never changed. ``linked_repo`` reports the
        project's actual git link, which may differ from ``target``.

        Raises:
            HostingError: If the lookup or creation fails
        """
        linked_repo = target.full_name if spec.link_repository else None

        try:
            existing = await self.vercel.get_project(spec.project_name)
            if existing is not None:
                self.logger.info("Hosting project exists", project=spec.project_name)
                link = existing.get("link") or {}
                existing_repo = (
                    f"{link['org']}/{link['repo']}" if link.get("org") and link.get("repo") else None
                )
                return DeploymentProject(
                    project_id=existing["id"],
                    project_name=spec.project_name,
                    project_url=f"https://vercel.com/{_dashboard_scope(self.team_id)}/{spec.project_name}",
                    linked_repo=existing_repo,
                    created=False,
                )

            created = await self.vercel.create_project(
                name=spec.project_name,
                framework=spec.framework or self.default_framework,
                git_repository={"type": "github", "repo": linked_repo} if linked_repo else None,
                environment_variables=[
                    {"key": var.key, "value": var.value, "target": list(var.target)}
                    for var in spec.environment_variables
                ],
            )
        except UpstreamAPIError as e:
            raise HostingError(
                f"Failed to ensure hosting project {spec.project_name}: {e.message}",
                details={"project": spec.project_name, "status_code": e.status_code},
            ) from e

        project_name = created.get("name", spec.project_name)
        scope = _dashboard_scope(self.team_id, created.get("accountId"))
        self.logger.info("Hosting project created", project=project_name, linked_repo=linked_repo)
        return DeploymentProject(
            project_id=created["id"],
            project_name=project_name,
            project_url=f"https://vercel.com/{scope}/{project_name}",
            linked_repo=linked_repo,
            created=True,
        )

    def _deployment_from_response(self, data: dict[str, Any], project_name: str) -> Deployment:
        deployment_id = data["id"]
        return Deployment(
            deployment_id=deployment_id,
            deployment_url=f"https://{data['url']}" if data.get("url") else "",
            inspector_url=data.get("inspectorUrl")
            or f"https://vercel.com/{_dashboard_scope(self.team_id)}/{project_name}/{deployment_id}",
            status=data.get("readyState") or data.get("status") or "QUEUED",
        )

    async def ensure_and_deploy(
        self, spec: ProjectSpec, target: RepoTarget, branch: str = "main"
    ) -> ProvisionResult:
        """
        Ensure the project and trigger exactly one deployment of ``branch``.

        The deployment always references ``target``. A failed trigger does
        not fail provisioning: the project is reported with
        ``deployment=None`` and a warning, as is a reused project whose link
        points at a different repository.

        Raises:
            HostingError: If the project cannot be found or created
        """
        project = await self.ensure_project(spec, target)
        result = ProvisionResult(project=project, deployment=None)

        if not spec.link_repository or not project.linked_repo:
            result.warnings.append("No git repository linked - deployment not triggered")
            return result
        if project.linked_repo != target.full_name:
            self.logger.warning(
                "Hosting project linked to another repository",
                project=project.project_name,
                linked_repo=project.linked_repo,
                published_repo=target.full_name,
            )
            result.warnings.append(
                f"Project {project.project_name} is linked to {project.linked_repo}, "
                f"not {target.full_name} - deployment not triggered"
            )
            return result

        try:
            data = await self.vercel.trigger_deployment(
                project.project_id, project.project_name, target.full_name, branch
            )
        except UpstreamAPIError as e:
            deployment_triggers_total.labels(outcome="failed").inc()
            self.logger.warning(
                "Deployment trigger failed",
                project=project.project_name,
                status_code=e.status_code,
                error=e.message,
            )
            result.warnings.append(f"Deployment trigger failed: {e.message}")
            return result

        deployment_triggers_total.labels(outcome="triggered").inc()
        result.deployment = self._deployment_from_response(data, project.project_name)
        self.logger.info(
            "Deployment triggered",
            project=project.project_name,
            deployment_id=result.deployment.deployment_id,
            branch=branch,
        )
        return result

    async def get_deployment_status(self, deployment_id: str) -> dict[str, Any]:
        """
        Current state of a deployment.

        Raises:
            HostingError: If the hosting provider rejects the lookup
        """
        try:
            data = await self.vercel.get_deployment(deployment_id)
        except UpstreamAPIError as e:
            raise HostingError(
                f"Failed to get deployment status: {e.message}",
                stage="deployment_status",
                details={"deployment_id": deployment_id, "status_code": e.status_code},
            ) from e

        return {
            "deploymentId": deployment_id,
            "status": data.get("readyState") or data.get("status") or "UNKNOWN",
            "url": f"https://{data['url']}" if data.get("url") else None,
            "error": data.get("errorMessage"),
        }
