"""Storefront tool endpoints.

Each tool is a POST endpoint taking its JSON arguments as the body. Tool
failures inside the pipeline are returned as ``ok: false`` with the failing
stage; only gatekeeper denials produce a non-2xx status.
"""

from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.deps import get_auth_context, get_pipeline
from app.core.auth import AuthContext
from app.core.logging import bind_tool_context, get_context_logger
from app.schemas.storefront import (
    CreateStoreRequest,
    DeploymentStatusRequest,
    DescribeTemplateRequest,
    PlanStorefrontRequest,
    RefRequest,
    ToolError,
    ToolInfo,
    ToolResponse,
)
from app.utils.exceptions import PipelineError
from services.provisioning import StorefrontPipeline

router = APIRouter()


@dataclass(frozen=True)
class ToolSpec:
    description: str
    arguments: type[BaseModel]
    mutating: bool = False


TOOLS: dict[str, ToolSpec] = {
    "create_store_and_deploy": ToolSpec(
        "Generate a new store from a Shopware Frontends template, apply branding "
        "(colors and logo), publish it to GitHub and deploy it on Vercel.",
        CreateStoreRequest,
        mutating=True,
    ),
    "plan_storefront": ToolSpec(
        "Return a plan for creating a storefront, including a branding preview. "
        "No repository or deployment is created.",
        PlanStorefrontRequest,
    ),
    "describe_uno_theme": ToolSpec(
        "Return available UnoCSS color tokens from the extended template's uno.config.ts.",
        RefRequest,
    ),
    "describe_base_template": ToolSpec(
        "Inspect the base template: structure, package.json deps, nuxt.config.ts summary "
        "and inferred capabilities.",
        RefRequest,
    ),
    "describe_template": ToolSpec(
        "Describe a template: structure, package.json, nuxt.config.ts summary, README excerpt.",
        DescribeTemplateRequest,
    ),
    "compare_templates": ToolSpec(
        "Compare the base and extended templates: structure and nuxt config differences.",
        RefRequest,
    ),
    "describe_packages": ToolSpec(
        "Inspect the monorepo packages: package.json summary and README excerpt per package.",
        RefRequest,
    ),
    "get_deployment_status": ToolSpec(
        "Return the current state of a Vercel deployment.",
        DeploymentStatusRequest,
    ),
}


async def run_tool(tool: str, auth: AuthContext, call: Awaitable[dict[str, Any]]) -> ToolResponse:
    """Await a tool call and wrap its outcome in a ToolResponse."""
    bind_tool_context(tool)
    logger = get_context_logger(__name__)
    try:
        result = await call
    except PipelineError as e:
        logger.warning("Tool failed", stage=e.stage, error=e.message)
        return ToolResponse(
            ok=False,
            tool=tool,
            request_id=auth.request_id,
            error=ToolError(**e.to_dict()),
        )
    logger.info("Tool completed")
    return ToolResponse(ok=True, tool=tool, request_id=auth.request_id, result=result)


@router.get("", response_model=list[ToolInfo])
async def list_tools() -> list[ToolInfo]:
    """Catalogue of available tools with their argument schemas."""
    return [
        ToolInfo(
            name=name,
            description=spec.description,
            mutating=spec.mutating,
            path=f"/tools/{name}",
            input_schema=spec.arguments.model_json_schema(by_alias=True),
        )
        for name, spec in TOOLS.items()
    ]


@router.post("/create_store_and_deploy", response_model=ToolResponse)
async def create_store_and_deploy(
    arguments: CreateStoreRequest,
    auth: AuthContext = Depends(get_auth_context),
    pipeline: StorefrontPipeline = Depends(get_pipeline),
) -> ToolResponse:
    """
    Create a branded storefront repository and deploy it.

    The destination owner must be on the allowlist (403 otherwise).
    """
    return await run_tool(
        "create_store_and_deploy",
        auth,
        pipeline.create_store_and_deploy(arguments.to_order(), auth.request_id),
    )


@router.post("/plan_storefront", response_model=ToolResponse)
async def plan_storefront(
    arguments: PlanStorefrontRequest,
    auth: AuthContext = Depends(get_auth_context),
    pipeline: StorefrontPipeline = Depends(get_pipeline),
) -> ToolResponse:
    i18n = arguments.i18n.model_dump() if arguments.i18n else None
    return await run_tool("plan_storefront", auth, pipeline.plan_storefront(arguments.to_order(), i18n))


@router.post("/describe_uno_theme", response_model=ToolResponse)
async def describe_uno_theme(
    arguments: RefRequest,
    auth: AuthContext = Depends(get_auth_context),
    pipeline: StorefrontPipeline = Depends(get_pipeline),
) -> ToolResponse:
    return await run_tool(
        "describe_uno_theme", auth, pipeline.inspector.describe_uno_theme(arguments.ref)
    )


@router.post("/describe_base_template", response_model=ToolResponse)
async def describe_base_template(
    arguments: RefRequest,
    auth: AuthContext = Depends(get_auth_context),
    pipeline: StorefrontPipeline = Depends(get_pipeline),
) -> ToolResponse:
    return await run_tool(
        "describe_base_template", auth, pipeline.inspector.describe_base_template(arguments.ref)
    )


@router.post("/describe_template", response_model=ToolResponse)
async def describe_template(
    arguments: DescribeTemplateRequest,
    auth: AuthContext = Depends(get_auth_context),
    pipeline: StorefrontPipeline = Depends(get_pipeline),
) -> ToolResponse:
    return await run_tool(
        "describe_template",
        auth,
        pipeline.inspector.describe_template(arguments.template, arguments.ref),
    )


@router.post("/compare_templates", response_model=ToolResponse)
async def compare_templates(
    arguments: RefRequest,
    auth: AuthContext = Depends(get_auth_context),
    pipeline: StorefrontPipeline = Depends(get_pipeline),
) -> ToolResponse:
    return await run_tool(
        "compare_templates", auth, pipeline.inspector.compare_templates(arguments.ref)
    )


@router.post("/describe_packages", response_model=ToolResponse)
async def describe_packages(
    arguments: RefRequest,
    auth: AuthContext = Depends(get_auth_context),
    pipeline: StorefrontPipeline = Depends(get_pipeline),
) -> ToolResponse:
    return await run_tool(
        "describe_packages", auth, pipeline.inspector.describe_packages(arguments.ref)
    )


@router.post("/get_deployment_status", response_model=ToolResponse)
async def get_deployment_status(
    arguments: DeploymentStatusRequest,
    auth: AuthContext = Depends(get_auth_context),
    pipeline: StorefrontPipeline = Depends(get_pipeline),
) -> ToolResponse:
    return await run_tool(
        "get_deployment_status",
        auth,
        pipeline.provisioner.get_deployment_status(arguments.deployment_id),
    )
