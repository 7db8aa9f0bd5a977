"""Storefront tool schemas.

Tool arguments use camelCase on the wire (``storeId``, ``logoSvg``); the
models expose snake_case attributes.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from services.provisioning.models import (
    BrandingSpec,
    EnvironmentVariable,
    ProjectSpec,
    RepoTarget,
    StorefrontOrder,
    TemplateKind,
)

# GitHub owner and repository names
GITHUB_NAME_PATTERN = r"^[A-Za-z0-9_.-]+$"
BRANCH_PATTERN = r"^[A-Za-z0-9._/-]+$"

DeploymentTarget = Literal["production", "preview", "development"]


class ToolModel(BaseModel):
    """Base for tool argument models."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class BrandInput(ToolModel):
    """Brand name, color token overrides and optional SVG logo."""

    name: str = Field(..., min_length=1)
    colors: dict[str, str] = Field(default_factory=dict)
    logo_svg: str | None = None

    def to_spec(self) -> BrandingSpec:
        return BrandingSpec(colors=dict(self.colors), logo_svg=self.logo_svg)


class GitInput(ToolModel):
    """Destination repository."""

    owner: str = Field(..., min_length=1, max_length=100, pattern=GITHUB_NAME_PATTERN)
    repo: str = Field(..., min_length=1, max_length=100, pattern=GITHUB_NAME_PATTERN)
    private: bool = True


class EnvironmentVariableInput(ToolModel):
    key: str = Field(..., min_length=1)
    value: str
    target: list[DeploymentTarget] = Field(
        default_factory=lambda: ["production", "preview", "development"]
    )


class VercelInput(ToolModel):
    """Hosting project to ensure."""

    project_name: str = Field(..., min_length=1, max_length=100)
    environment_variables: list[EnvironmentVariableInput] = Field(default_factory=list)

    def to_spec(self) -> ProjectSpec:
        return ProjectSpec(
            project_name=self.project_name,
            environment_variables=tuple(
                EnvironmentVariable(key=var.key, value=var.value, target=tuple(var.target))
                for var in self.environment_variables
            ),
        )


class CreateStoreRequest(ToolModel):
    """Arguments of ``create_store_and_deploy``."""

    store_id: str = Field(..., min_length=2)
    template_ref: str = Field(default="main", min_length=1)
    template: TemplateKind = TemplateKind.EXTENDED
    brand: BrandInput
    git: GitInput
    vercel: VercelInput
    branch: str = Field(default="main", min_length=1, pattern=BRANCH_PATTERN)
    commit_message: str | None = Field(default=None, min_length=1)

    def to_order(self) -> StorefrontOrder:
        return StorefrontOrder(
            store_id=self.store_id,
            brand_name=self.brand.name,
            target=RepoTarget(
                owner=self.git.owner,
                repo=self.git.repo,
                private=self.git.private,
                description=f"{self.brand.name} storefront ({self.store_id})",
            ),
            project=self.vercel.to_spec(),
            branding=self.brand.to_spec(),
            template=self.template,
            template_ref=self.template_ref,
            branch=self.branch,
            commit_message=self.commit_message,
        )


class I18nInput(ToolModel):
    locales: list[str] = Field(default_factory=list)
    domains: dict[str, str] = Field(default_factory=dict)


class PlanStorefrontRequest(ToolModel):
    """Arguments of ``plan_storefront``."""

    ref: str = Field(default="main", min_length=1)
    store_id: str = Field(..., min_length=2)
    template: TemplateKind = TemplateKind.EXTENDED
    git: GitInput
    vercel: VercelInput
    brand: BrandInput = Field(default_factory=lambda: BrandInput(name="Brand"))
    i18n: I18nInput | None = None
    branch: str = Field(default="main", min_length=1, pattern=BRANCH_PATTERN)

    def to_order(self) -> StorefrontOrder:
        return StorefrontOrder(
            store_id=self.store_id,
            brand_name=self.brand.name,
            target=RepoTarget(owner=self.git.owner, repo=self.git.repo, private=self.git.private),
            project=self.vercel.to_spec(),
            branding=self.brand.to_spec(),
            template=self.template,
            template_ref=self.ref,
            branch=self.branch,
        )


class RefRequest(ToolModel):
    """Arguments of the read-only inspection tools."""

    ref: str = Field(default="main", min_length=1)


class DescribeTemplateRequest(RefRequest):
    template: TemplateKind


class DeploymentStatusRequest(ToolModel):
    deployment_id: str = Field(..., min_length=1)


class ToolError(BaseModel):
    """Tool-level failure; ``stage`` names the pipeline stage that failed."""

    type: str
    stage: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ToolResponse(BaseModel):
    """Envelope returned by every tool endpoint."""

    ok: bool
    tool: str
    request_id: str | None = None
    result: dict[str, Any] | None = None
    error: ToolError | None = None


class ToolInfo(BaseModel):
    """Catalogue entry for one tool."""

    name: str
    description: str
    mutating: bool
    path: str
    input_schema: dict[str, Any]
