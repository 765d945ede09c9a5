"""
Argo tools.

Argo Rollouts (through the ``kubectl argo rollouts`` plugin):
  argo_verify_argo_rollouts_controller_install  — controller pods are Running
  argo_verify_kubectl_plugin_install            — plugin answers ``version``
  argo_rollouts_list                            — list rollouts or experiments
  argo_promote_rollout, argo_pause_rollout      — drive a rollout
  argo_set_rollout_image                        — change a container image

ArgoCD (REST API at ``$ARGOCD_BASE_URL/api/v1`` with ``$ARGOCD_API_TOKEN``):
  argocd_list_applications, argocd_get_application,
  argocd_get_application_resource_tree, argocd_get_application_managed_resources,
  argocd_get_application_workload_logs, argocd_get_application_events,
  argocd_get_resource_events, argocd_get_resource_actions     (read-only)
  argocd_create_application, argocd_update_application,
  argocd_delete_application, argocd_sync_application,
  argocd_run_resource_action                                   (write)
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field, ValidationError

from ops_mcp.commands import run_command
from ops_mcp.errors import ArgumentError, BackendError, CommandError, ToolError
from ops_mcp.formatters import json_result
from ops_mcp.httpclient import http_client
from ops_mcp.params import (
    DESTRUCTIVE,
    MUTATING,
    READ_ONLY,
    Flag,
    NoParams,
    RequiredStr,
    ToolDefinition,
    ToolParams,
    define_tool,
)

logger = logging.getLogger(__name__)

ROLLOUTS_NAMESPACE = "argo-rollouts"
CONTROLLER_LABEL = "app.kubernetes.io/component=rollouts-controller"


# ---------------------------------------------------------------------------
# Argo Rollouts
# ---------------------------------------------------------------------------

async def run_rollouts(args: list[str]) -> str:
    return await run_command("kubectl", args)


class VerifyControllerParams(ToolParams):
    namespace: str = Field("", description="The namespace of the Argo Rollouts controller")
    label: str = Field("", description="The label selector of the controller pods")


class RolloutsListParams(ToolParams):
    namespace: str = Field("", description="The namespace of the rollout")
    type: str = Field("", description="What to list: rollouts or experiments")


class PromoteParams(ToolParams):
    rollout_name: RequiredStr = Field(description="The name of the rollout to promote")
    namespace: str = Field("", description="The namespace of the rollout")
    full: Flag = Field(False, description="Promote the rollout to the final step")


class PauseParams(ToolParams):
    rollout_name: RequiredStr = Field(description="The name of the rollout to pause")
    namespace: str = Field("", description="The namespace of the rollout")


class SetImageParams(ToolParams):
    rollout_name: RequiredStr = Field(description="The name of the rollout")
    container_image: RequiredStr = Field(description="The container image, e.g. 'main=nginx:1.25'")
    namespace: str = Field("", description="The namespace of the rollout")


@define_tool(
    "argo_verify_argo_rollouts_controller_install",
    "Verify that the Argo Rollouts controller is installed and running",
    VerifyControllerParams,
    error_prefix="Error",
    annotations=READ_ONLY,
)
async def verify_controller_install(p: VerifyControllerParams) -> str:
    output = await run_rollouts([
        "get", "pods",
        "-n", p.namespace or ROLLOUTS_NAMESPACE,
        "-l", p.label or CONTROLLER_LABEL,
        "-o", "jsonpath={.items[*].status.phase}",
    ])
    if not output:
        return "Error: No pods found"
    phases = output.split()
    if all(phase == "Running" for phase in phases):
        return "All pods are running"
    return f"Error: Not all pods are running ({' '.join(phases)})"


@define_tool(
    "argo_verify_kubectl_plugin_install",
    "Verify that the kubectl Argo Rollouts plugin is installed",
    NoParams,
    annotations=READ_ONLY,
)
async def verify_plugin_install(p: NoParams) -> str:
    try:
        output = await run_rollouts(["argo", "rollouts", "version"])
    except CommandError as e:
        return f"Kubectl Argo Rollouts plugin is not installed: {e}"
    return output


@define_tool(
    "argo_rollouts_list",
    "List rollouts or experiments",
    RolloutsListParams,
    error_prefix="Error listing rollouts",
    annotations=READ_ONLY,
)
async def rollouts_list(p: RolloutsListParams) -> str:
    return await run_rollouts([
        "argo", "rollouts", "list", p.type or "rollouts",
        "-n", p.namespace or ROLLOUTS_NAMESPACE,
    ])


def _namespaced(args: list[str], namespace: str) -> list[str]:
    return args + ["-n", namespace] if namespace else args


@define_tool(
    "argo_promote_rollout",
    "Promote a paused rollout to the next step",
    PromoteParams,
    error_prefix="Error promoting rollout",
    annotations=MUTATING,
)
async def promote_rollout(p: PromoteParams) -> str:
    args = _namespaced(["argo", "rollouts", "promote"], p.namespace) + [p.rollout_name]
    if p.full:
        args.append("--full")
    return await run_rollouts(args)


@define_tool(
    "argo_pause_rollout",
    "Pause a rollout",
    PauseParams,
    error_prefix="Error pausing rollout",
    annotations=MUTATING,
)
async def pause_rollout(p: PauseParams) -> str:
    return await run_rollouts(_namespaced(["argo", "rollouts", "pause"], p.namespace) + [p.rollout_name])


@define_tool(
    "argo_set_rollout_image",
    "Set the image of a rollout",
    SetImageParams,
    error_prefix="Error setting rollout image",
    annotations=MUTATING,
)
async def set_rollout_image(p: SetImageParams) -> str:
    args = ["argo", "rollouts", "set", "image", p.rollout_name, p.container_image]
    return await run_rollouts(_namespaced(args, p.namespace))


# ---------------------------------------------------------------------------
# ArgoCD REST client
# ---------------------------------------------------------------------------

class ResourceRef(BaseModel):
    uid: str = ""
    version: str = ""
    group: str = ""
    kind: str = ""
    name: str = ""
    namespace: str = ""

    def query(self) -> dict[str, str]:
        params = {
            "namespace": self.namespace,
            "resourceName": self.name,
            "resourceKind": self.kind,
        }
        for key in ("group", "version", "uid"):
            if getattr(self, key):
                params[key] = getattr(self, key)
        return params


def _resource_ref(raw: dict[str, Any], field: str = "resourceRef") -> ResourceRef:
    try:
        return ResourceRef.model_validate(raw)
    except ValidationError as e:
        raise ArgumentError(f"{field} parameter is invalid: {e.errors()[0]['msg']}", field=field) from e


class ArgoCDClient:
    """Thin client over the ArgoCD v1 REST API."""

    def __init__(self, base_url: str, api_token: str) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token

    @classmethod
    def from_env(cls) -> ArgoCDClient:
        base_url = os.environ.get("ARGOCD_BASE_URL", "").strip()
        api_token = os.environ.get("ARGOCD_API_TOKEN", "").strip()
        if not base_url:
            raise ToolError("ARGOCD_BASE_URL environment variable is required",
                            operation="failed to create ArgoCD client")
        if not base_url.startswith(("http://", "https://")):
            raise ToolError(f"invalid ArgoCD base URL: {base_url}", operation="failed to create ArgoCD client")
        if not api_token:
            raise ToolError("ARGOCD_API_TOKEN environment variable is required",
                            operation="failed to create ArgoCD client")
        return cls(base_url, api_token)

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        body: Any = None,
    ) -> Any:
        url = f"{self.base_url}/api/v1/{endpoint.lstrip('/')}"
        headers = {"Content-Type": "application/json", "Authorization": f"Bearer {self.api_token}"}
        logger.info("ArgoCD API request", extra={"method": method, "url": url})
        async with http_client() as client:
            try:
                resp = await client.request(method, url, params=params, json=body, headers=headers)
            except httpx.HTTPError as e:
                raise BackendError(f"failed to execute request: {e}") from e
        if not resp.is_success:
            raise BackendError(
                f"ArgoCD API error (status {resp.status_code}): {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )
        if not resp.content or resp.text.strip() == "{}":
            return {}
        try:
            return resp.json()
        except json.JSONDecodeError as e:
            raise BackendError(f"failed to unmarshal response: {e}", status_code=resp.status_code) from e


def _app(name: str) -> str:
    return f"applications/{quote(name, safe='')}"


def _present(**params: Any) -> dict[str, Any]:
    """Drop unset query parameters; booleans render as 'true'/'false'."""
    out: dict[str, Any] = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        out[key] = str(value).lower() if isinstance(value, bool) else value
    return out


def argocd_tool(name: str, description: str, params: type[ToolParams], operation: str, annotations):
    """Decorate ``async fn(client, params) -> data``; ``data`` is returned as JSON."""

    def decorator(fn) -> ToolDefinition:
        async def run(p):
            client = ArgoCDClient.from_env()
            try:
                data = await fn(client, p)
            except BackendError as e:
                e.operation = operation
                raise
            return json_result(data)

        run.__name__ = fn.__name__
        run.__qualname__ = fn.__qualname__
        return define_tool(name, description, params, annotations=annotations)(run)

    return decorator


# ---------------------------------------------------------------------------
# ArgoCD parameter tables
# ---------------------------------------------------------------------------

class ListApplicationsParams(ToolParams):
    search: str = Field("", description="Search applications by name (partial match, no glob patterns)")
    limit: int | None = Field(None, description="Maximum number of applications to return")
    offset: int | None = Field(None, description="Number of applications to skip before returning results")


class ApplicationParams(ToolParams):
    application_name: RequiredStr = Field(alias="applicationName", description="The name of the application")


class GetApplicationParams(ApplicationParams):
    application_namespace: str = Field(
        "", alias="applicationNamespace", description="The namespace where the application is located"
    )


class ManagedResourcesParams(ApplicationParams):
    kind: str = Field("", description="Filter by Kubernetes resource kind")
    namespace: str = Field("", description="Filter by Kubernetes namespace")
    name: str = Field("", description="Filter by resource name")
    version: str = Field("", description="Filter by resource API version")
    group: str = Field("", description="Filter by API group")
    app_namespace: str = Field("", alias="appNamespace", description="Filter by Argo CD application namespace")
    project: str = Field("", description="Filter by Argo CD project")


class ScopedApplicationParams(ApplicationParams):
    application_namespace: RequiredStr = Field(
        alias="applicationNamespace", description="The namespace where the application is located"
    )


class WorkloadLogsParams(ScopedApplicationParams):
    resource_ref: dict[str, Any] = Field(
        alias="resourceRef", description="Resource reference: uid, version, group, kind, name, namespace"
    )
    container: RequiredStr = Field(description="The container name")


class ResourceEventsParams(ScopedApplicationParams):
    resource_uid: RequiredStr = Field(alias="resourceUID", description="The UID of the resource")
    resource_namespace: RequiredStr = Field(alias="resourceNamespace", description="The namespace of the resource")
    resource_name: RequiredStr = Field(alias="resourceName", description="The name of the resource")


class ResourceActionsParams(ScopedApplicationParams):
    resource_ref: dict[str, Any] = Field(
        alias="resourceRef", description="Resource reference: uid, version, group, kind, name, namespace"
    )


class RunResourceActionParams(ResourceActionsParams):
    action: RequiredStr = Field(description="The action to run on the resource")


class CreateApplicationParams(ToolParams):
    application: dict[str, Any] = Field(description="The application definition")


class UpdateApplicationParams(ApplicationParams):
    application: dict[str, Any] = Field(description="The updated application definition")


class DeleteApplicationParams(GetApplicationParams):
    cascade: Flag | None = Field(None, description="Delete the application's resources as well")
    propagation_policy: str = Field(
        "", alias="propagationPolicy", description="Deletion propagation policy (foreground, background)"
    )


class SyncApplicationParams(GetApplicationParams):
    dry_run: Flag | None = Field(None, alias="dryRun", description="Simulate the sync")
    prune: Flag | None = Field(None, description="Prune resources that are no longer in git")
    revision: str = Field("", description="The revision to sync to")
    sync_options: list[str] = Field(default_factory=list, alias="syncOptions", description="Sync options")


# ---------------------------------------------------------------------------
# ArgoCD handlers
# ---------------------------------------------------------------------------

@argocd_tool("argocd_list_applications",
             "List ArgoCD applications with optional search, limit, and offset parameters",
             ListApplicationsParams, "failed to list applications", READ_ONLY)
async def list_applications(client: ArgoCDClient, p: ListApplicationsParams) -> Any:
    return await client.request("GET", "applications", params=_present(search=p.search, limit=p.limit, offset=p.offset))


@argocd_tool("argocd_get_application",
             "Get ArgoCD application by application name",
             GetApplicationParams, "failed to get application", READ_ONLY)
async def get_application(client: ArgoCDClient, p: GetApplicationParams) -> Any:
    return await client.request("GET", _app(p.application_name),
                                params=_present(appNamespace=p.application_namespace))


@argocd_tool("argocd_get_application_resource_tree",
             "Get resource tree for ArgoCD application by application name",
             ApplicationParams, "failed to get application resource tree", READ_ONLY)
async def get_resource_tree(client: ArgoCDClient, p: ApplicationParams) -> Any:
    return await client.request("GET", f"{_app(p.application_name)}/resource-tree")


@argocd_tool("argocd_get_application_managed_resources",
             "Get managed resources for ArgoCD application by application name with optional filtering",
             ManagedResourcesParams, "failed to get application managed resources", READ_ONLY)
async def get_managed_resources(client: ArgoCDClient, p: ManagedResourcesParams) -> Any:
    filters = _present(kind=p.kind, namespace=p.namespace, name=p.name, version=p.version,
                       group=p.group, appNamespace=p.app_namespace, project=p.project)
    return await client.request("GET", f"{_app(p.application_name)}/managed-resources", params=filters)


@argocd_tool("argocd_get_application_workload_logs",
             "Get logs for ArgoCD application workload by application name, resource ref and container name",
             WorkloadLogsParams, "failed to get workload logs", READ_ONLY)
async def get_workload_logs(client: ArgoCDClient, p: WorkloadLogsParams) -> Any:
    ref = _resource_ref(p.resource_ref)
    params = {"appNamespace": p.application_namespace, **ref.query(), "container": p.container}
    return await client.request("GET", f"{_app(p.application_name)}/logs", params=params)


@argocd_tool("argocd_get_application_events",
             "Get events for ArgoCD application by application name",
             ApplicationParams, "failed to get application events", READ_ONLY)
async def get_application_events(client: ArgoCDClient, p: ApplicationParams) -> Any:
    return await client.request("GET", f"{_app(p.application_name)}/events")


@argocd_tool("argocd_get_resource_events",
             "Get events for a resource that is managed by an ArgoCD application",
             ResourceEventsParams, "failed to get resource events", READ_ONLY)
async def get_resource_events(client: ArgoCDClient, p: ResourceEventsParams) -> Any:
    params = {
        "appNamespace": p.application_namespace,
        "uid": p.resource_uid,
        "resourceNamespace": p.resource_namespace,
        "resourceName": p.resource_name,
    }
    return await client.request("GET", f"{_app(p.application_name)}/resource-events", params=params)


@argocd_tool("argocd_get_resource_actions",
             "Get actions for a resource that is managed by an ArgoCD application",
             ResourceActionsParams, "failed to get resource actions", READ_ONLY)
async def get_resource_actions(client: ArgoCDClient, p: ResourceActionsParams) -> Any:
    params = {"appNamespace": p.application_namespace, **_resource_ref(p.resource_ref).query()}
    return await client.request("GET", f"{_app(p.application_name)}/resource/actions", params=params)


@argocd_tool("argocd_create_application",
             "Create a new ArgoCD application. application.metadata.namespace decides where it is created.",
             CreateApplicationParams, "failed to create application", MUTATING)
async def create_application(client: ArgoCDClient, p: CreateApplicationParams) -> Any:
    return await client.request("POST", "applications", body=p.application)


@argocd_tool("argocd_update_application",
             "Update an existing ArgoCD application",
             UpdateApplicationParams, "failed to update application", MUTATING)
async def update_application(client: ArgoCDClient, p: UpdateApplicationParams) -> Any:
    return await client.request("PUT", _app(p.application_name), body=p.application)


@argocd_tool("argocd_delete_application",
             "Delete an ArgoCD application",
             DeleteApplicationParams, "failed to delete application", DESTRUCTIVE)
async def delete_application(client: ArgoCDClient, p: DeleteApplicationParams) -> Any:
    params = _present(appNamespace=p.application_namespace, cascade=p.cascade,
                      propagationPolicy=p.propagation_policy)
    return await client.request("DELETE", _app(p.application_name), params=params)


@argocd_tool("argocd_sync_application",
             "Sync an ArgoCD application",
             SyncApplicationParams, "failed to sync application", MUTATING)
async def sync_application(client: ArgoCDClient, p: SyncApplicationParams) -> Any:
    body = _present(appNamespace=p.application_namespace, dryRun=p.dry_run, prune=p.prune, revision=p.revision)
    if p.sync_options:
        body["syncOptions"] = p.sync_options
    return await client.request("POST", f"{_app(p.application_name)}/sync", body=body or None)


@argocd_tool("argocd_run_resource_action",
             "Run an action on a resource managed by an ArgoCD application",
             RunResourceActionParams, "failed to run resource action", MUTATING)
async def run_resource_action(client: ArgoCDClient, p: RunResourceActionParams) -> Any:
    params = {"appNamespace": p.application_namespace, **_resource_ref(p.resource_ref).query(), "action": p.action}
    return await client.request("POST", f"{_app(p.application_name)}/resource/actions", params=params)


ROLLOUTS_TOOLS: list[ToolDefinition] = [
    verify_controller_install,
    verify_plugin_install,
    rollouts_list,
    promote_rollout,
    pause_rollout,
    set_rollout_image,
]

ARGOCD_READ_TOOLS: list[ToolDefinition] = [
    list_applications,
    get_application,
    get_resource_tree,
    get_managed_resources,
    get_workload_logs,
    get_application_events,
    get_resource_events,
    get_resource_actions,
]

ARGOCD_WRITE_TOOLS: list[ToolDefinition] = [
    create_application,
    update_application,
    delete_application,
    sync_application,
    run_resource_action,
]

ARGO_TOOLS: list[ToolDefinition] = ROLLOUTS_TOOLS + ARGOCD_READ_TOOLS + ARGOCD_WRITE_TOOLS
