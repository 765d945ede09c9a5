"""
Kubernetes tools (kubectl).

Tools:
  k8s_get_resources                — kubectl get (read-only)
  k8s_get_pod_logs                 — kubectl logs --tail (read-only)
  k8s_describe                     — kubectl describe (read-only)
  k8s_get_events                   — cluster or namespace events (read-only)
  k8s_get_available_api_resources  — kubectl api-resources (read-only, cached)
  k8s_apply_manifest               — apply YAML through a private temp file
  k8s_scale                        — scale a deployment
  k8s_delete_resource              — delete a resource
  k8s_execute_command              — run a command inside a pod

Mutating tools clear the command cache so cached reads never outlive a write.
"""

from __future__ import annotations

import logging
import os
import re
import shlex
import tempfile

import yaml
from pydantic import Field

from ops_mcp.cache import command_cache
from ops_mcp.commands import run_command
from ops_mcp.errors import ArgumentError
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

API_RESOURCES_TTL = 300  # seconds

# RFC 1123 label/subdomain, as accepted by the API server for pod and namespace names.
_NAME_RE = re.compile(r"^[a-z0-9]([-a-z0-9.]{0,251}[a-z0-9])?$")


async def run_kubectl(args: list[str], *, cache_ttl: float | None = None) -> str:
    return await run_command("kubectl", args, cache_ttl=cache_ttl)


async def run_kubectl_mutation(args: list[str]) -> str:
    try:
        return await run_kubectl(args)
    finally:
        command_cache.clear()


def _check_name(value: str, field: str) -> None:
    if not _NAME_RE.match(value):
        raise ArgumentError(f"Invalid {field.replace('_', ' ')}: {value!r} is not a valid Kubernetes name", field=field)


# ---------------------------------------------------------------------------
# Parameter tables
# ---------------------------------------------------------------------------

class GetResourcesParams(ToolParams):
    resource_type: RequiredStr = Field(description="Type of resource (pod, service, deployment, etc.)")
    resource_name: str = Field("", description="Name of a specific resource")
    namespace: str = Field("", description="Namespace to query")
    all_namespaces: Flag = Field(False, description="Query all namespaces")
    output: str = Field("wide", description="Output format (json, yaml, wide)")


class PodLogsParams(ToolParams):
    pod_name: RequiredStr = Field(description="Name of the pod")
    namespace: str = Field("default", description="Namespace of the pod")
    container: str = Field("", description="Container name (for multi-container pods)")
    tail_lines: int = Field(50, description="Number of lines to show from the end")


class ApplyManifestParams(ToolParams):
    manifest: RequiredStr = Field(description="YAML manifest content")


class ScaleParams(ToolParams):
    name: RequiredStr = Field(description="Name of the deployment")
    namespace: str = Field("default", description="Namespace of the deployment")
    replicas: int = Field(1, description="Number of replicas")


class ResourceParams(ToolParams):
    resource_type: RequiredStr = Field(description="Type of resource")
    resource_name: RequiredStr = Field(description="Name of the resource")


class DeleteResourceParams(ResourceParams):
    namespace: str = Field("default", description="Namespace of the resource")


class DescribeParams(ResourceParams):
    namespace: str = Field("", description="Namespace of the resource")


class EventsParams(ToolParams):
    namespace: str = Field("", description="Namespace to get events from (default: all namespaces)")
    output: str = Field("wide", description="Output format")


class ExecParams(ToolParams):
    pod_name: RequiredStr = Field(description="Name of the pod to execute in")
    namespace: str = Field("default", description="Namespace of the pod")
    command: RequiredStr = Field(description="Command to execute; split into words, not run through a shell")


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

@define_tool(
    "k8s_get_resources",
    "Get Kubernetes resources using kubectl",
    GetResourcesParams,
    error_prefix="kubectl get failed",
    annotations=READ_ONLY,
)
async def get_resources(p: GetResourcesParams) -> str:
    args = ["get", p.resource_type]
    if p.resource_name:
        args.append(p.resource_name)
    if p.all_namespaces:
        args.append("--all-namespaces")
    elif p.namespace:
        args += ["-n", p.namespace]
    args += ["-o", p.output or "json"]
    return await run_kubectl(args)


@define_tool(
    "k8s_get_pod_logs",
    "Get logs from a Kubernetes pod",
    PodLogsParams,
    error_prefix="kubectl logs failed",
    annotations=READ_ONLY,
)
async def get_pod_logs(p: PodLogsParams) -> str:
    args = ["logs", p.pod_name, "-n", p.namespace or "default"]
    if p.container:
        args += ["-c", p.container]
    if p.tail_lines > 0:
        args += ["--tail", str(p.tail_lines)]
    return await run_kubectl(args)


@define_tool(
    "k8s_apply_manifest",
    "Apply a YAML manifest to the Kubernetes cluster",
    ApplyManifestParams,
    error_prefix="kubectl apply failed",
    annotations=MUTATING,
)
async def apply_manifest(p: ApplyManifestParams) -> str:
    try:
        docs = [d for d in yaml.safe_load_all(p.manifest) if d is not None]
    except yaml.YAMLError as e:
        raise ArgumentError(f"Invalid manifest content: {e}", field="manifest") from e
    if not docs or not all(isinstance(d, dict) for d in docs):
        raise ArgumentError("Invalid manifest content: expected one or more YAML mappings", field="manifest")

    fd, path = tempfile.mkstemp(prefix="k8s-manifest-", suffix=".yaml")
    try:
        os.chmod(path, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(p.manifest)
        return await run_kubectl_mutation(["apply", "-f", path])
    finally:
        try:
            os.remove(path)
        except OSError as e:
            logger.error("failed to remove temporary manifest", extra={"file": path, "error": str(e)})


@define_tool(
    "k8s_scale",
    "Scale a Kubernetes deployment",
    ScaleParams,
    error_prefix="kubectl scale failed",
    annotations=MUTATING,
)
async def scale(p: ScaleParams) -> str:
    if p.replicas < 0:
        raise ArgumentError("replicas must be non-negative", field="replicas")
    return await run_kubectl_mutation(
        ["scale", "deployment", p.name, "--replicas", str(p.replicas), "-n", p.namespace or "default"]
    )


@define_tool(
    "k8s_delete_resource",
    "Delete a Kubernetes resource",
    DeleteResourceParams,
    error_prefix="kubectl delete failed",
    annotations=DESTRUCTIVE,
)
async def delete_resource(p: DeleteResourceParams) -> str:
    return await run_kubectl_mutation(
        ["delete", p.resource_type, p.resource_name, "-n", p.namespace or "default"]
    )


@define_tool(
    "k8s_get_events",
    "Get events from a Kubernetes namespace or the whole cluster",
    EventsParams,
    error_prefix="kubectl get events failed",
    annotations=READ_ONLY,
)
async def get_events(p: EventsParams) -> str:
    args = ["get", "events"]
    args += ["-n", p.namespace] if p.namespace else ["--all-namespaces"]
    if p.output:
        args += ["-o", p.output]
    return await run_kubectl(args)


@define_tool(
    "k8s_execute_command",
    "Execute a command in a Kubernetes pod",
    ExecParams,
    error_prefix="kubectl exec failed",
    annotations=DESTRUCTIVE,
)
async def execute_command(p: ExecParams) -> str:
    namespace = p.namespace or "default"
    _check_name(p.pod_name, "pod_name")
    _check_name(namespace, "namespace")
    try:
        words = shlex.split(p.command)
    except ValueError as e:
        raise ArgumentError(f"Invalid command: {e}", field="command") from e
    return await run_kubectl(["exec", p.pod_name, "-n", namespace, "--", *words])


@define_tool(
    "k8s_describe",
    "Describe a Kubernetes resource in detail",
    DescribeParams,
    error_prefix="kubectl describe failed",
    annotations=READ_ONLY,
)
async def describe(p: DescribeParams) -> str:
    args = ["describe", p.resource_type, p.resource_name]
    if p.namespace:
        args += ["-n", p.namespace]
    return await run_kubectl(args)


@define_tool(
    "k8s_get_available_api_resources",
    "Get available Kubernetes API resources",
    NoParams,
    error_prefix="kubectl api-resources failed",
    annotations=READ_ONLY,
)
async def get_available_api_resources(p: NoParams) -> str:
    return await run_kubectl(["api-resources"], cache_ttl=API_RESOURCES_TTL)


K8S_TOOLS: list[ToolDefinition] = [
    get_resources,
    get_pod_logs,
    apply_manifest,
    scale,
    delete_resource,
    get_events,
    execute_command,
    describe,
    get_available_api_resources,
]
