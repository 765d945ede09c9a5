"""
Helm tools.

Tools:
  helm_list_releases  — list releases (read-only)
  helm_get_release    — release details: values, manifest, notes, ... (read-only)
  helm_upgrade        — upgrade or install a release (30 s hard timeout)
  helm_uninstall      — uninstall a release
  helm_repo_add       — add a chart repository
  helm_repo_update    — refresh chart repository indexes
  helm_template       — render chart templates locally (read-only)

Failures carry ``helm_operation``, ``helm_args`` and, where known,
``namespace`` context in the error text.
"""

from __future__ import annotations

from pydantic import Field

from ops_mcp.commands import run_command
from ops_mcp.errors import CommandError
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

UPGRADE_TIMEOUT = 30  # seconds


async def run_helm(args: list[str], *, namespace: str = "") -> str:
    timeout = UPGRADE_TIMEOUT if args and args[0] == "upgrade" else None
    try:
        return await run_command("helm", args, timeout=timeout)
    except CommandError as e:
        if args:
            e.with_context("helm_operation", args[0])
        e.with_context("helm_args", args)
        if namespace:
            e.with_context("namespace", namespace)
        raise


def _set_values(raw: str) -> list[str]:
    argv: list[str] = []
    for value in raw.split(","):
        if value.strip():
            argv += ["--set", value.strip()]
    return argv


# ---------------------------------------------------------------------------
# Parameter tables
# ---------------------------------------------------------------------------

class ListParams(ToolParams):
    namespace: str = Field("", description="The namespace to list releases from")
    all_namespaces: Flag = Field(False, description="List releases from all namespaces")
    all: Flag = Field(False, description="Show all releases without any filter applied")
    uninstalled: Flag = Field(False, description="List uninstalled releases")
    uninstalling: Flag = Field(False, description="List uninstalling releases")
    failed: Flag = Field(False, description="List failed releases")
    deployed: Flag = Field(False, description="List deployed releases")
    pending: Flag = Field(False, description="List pending releases")
    filter: str = Field("", description="A regular expression to filter releases by")
    output: str = Field("", description="The output format (e.g., 'json', 'yaml', 'table')")


class GetParams(ToolParams):
    name: RequiredStr = Field(description="The name of the release")
    namespace: RequiredStr = Field(description="The namespace of the release")
    resource: str = Field("all", description="The resource to get (all, hooks, manifest, notes, values)")


class UpgradeParams(ToolParams):
    name: RequiredStr = Field(description="The name of the release")
    chart: RequiredStr = Field(description="The chart to install or upgrade to")
    namespace: str = Field("", description="The namespace of the release")
    version: str = Field("", description="The version of the chart")
    values: str = Field("", description="Path to a values file")
    set: str = Field("", description="Comma-separated key=value pairs passed as --set")
    install: Flag = Field(False, description="Run an install if the release does not exist")
    dry_run: Flag = Field(False, description="Simulate the upgrade")
    wait: Flag = Field(False, description="Wait for resources to be ready")


class UninstallParams(ToolParams):
    name: RequiredStr = Field(description="The name of the release")
    namespace: RequiredStr = Field(description="The namespace of the release")
    dry_run: Flag = Field(False, description="Simulate the uninstall")
    wait: Flag = Field(False, description="Wait for resources to be deleted")


class RepoAddParams(ToolParams):
    name: RequiredStr = Field(description="The name of the repository")
    url: RequiredStr = Field(description="The URL of the repository")


class TemplateParams(ToolParams):
    name: RequiredStr = Field(description="The name of the release")
    chart: RequiredStr = Field(description="The chart to render")
    namespace: str = Field("", description="The namespace to render for")
    version: str = Field("", description="The version of the chart")
    values: str = Field("", description="Path to a values file")
    set: str = Field("", description="Comma-separated key=value pairs passed as --set")


_LIST_FLAGS = [
    ("all_namespaces", "-A"),
    ("all", "-a"),
    ("uninstalled", "--uninstalled"),
    ("uninstalling", "--uninstalling"),
    ("failed", "--failed"),
    ("deployed", "--deployed"),
    ("pending", "--pending"),
]


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

@define_tool(
    "helm_list_releases",
    "List Helm releases in a namespace",
    ListParams,
    error_prefix="Helm list command failed",
    annotations=READ_ONLY,
)
async def list_releases(p: ListParams) -> str:
    args = ["list"]
    if p.namespace:
        args += ["-n", p.namespace]
    args += [flag for field, flag in _LIST_FLAGS if getattr(p, field)]
    if p.filter:
        args += ["-f", p.filter]
    if p.output:
        args += ["-o", p.output]
    return await run_helm(args, namespace=p.namespace)


@define_tool(
    "helm_get_release",
    "Get extended information about a Helm release",
    GetParams,
    error_prefix="Helm get command failed",
    annotations=READ_ONLY,
)
async def get_release(p: GetParams) -> str:
    return await run_helm(["get", p.resource or "all", p.name, "-n", p.namespace], namespace=p.namespace)


@define_tool(
    "helm_upgrade",
    "Upgrade or install a Helm release",
    UpgradeParams,
    error_prefix="Helm upgrade command failed",
    annotations=MUTATING,
)
async def upgrade(p: UpgradeParams) -> str:
    args = ["upgrade", p.name, p.chart]
    if p.namespace:
        args += ["-n", p.namespace]
    if p.version:
        args += ["--version", p.version]
    if p.values:
        args += ["-f", p.values]
    args += _set_values(p.set)
    if p.install:
        args.append("--install")
    if p.dry_run:
        args.append("--dry-run")
    if p.wait:
        args.append("--wait")
    return await run_helm(args, namespace=p.namespace)


@define_tool(
    "helm_uninstall",
    "Uninstall a Helm release",
    UninstallParams,
    error_prefix="Helm uninstall command failed",
    annotations=DESTRUCTIVE,
)
async def uninstall(p: UninstallParams) -> str:
    args = ["uninstall", p.name, "-n", p.namespace]
    if p.dry_run:
        args.append("--dry-run")
    if p.wait:
        args.append("--wait")
    return await run_helm(args, namespace=p.namespace)


@define_tool(
    "helm_repo_add",
    "Add a Helm chart repository",
    RepoAddParams,
    error_prefix="Helm repo add command failed",
    annotations=MUTATING,
)
async def repo_add(p: RepoAddParams) -> str:
    return await run_helm(["repo", "add", p.name, p.url])


@define_tool(
    "helm_repo_update",
    "Update information of available charts locally from chart repositories",
    NoParams,
    error_prefix="Helm repo update command failed",
    annotations=MUTATING,
)
async def repo_update(p: NoParams) -> str:
    return await run_helm(["repo", "update"])


@define_tool(
    "helm_template",
    "Render Helm chart templates locally",
    TemplateParams,
    error_prefix="Helm template command failed",
    annotations=READ_ONLY,
)
async def template(p: TemplateParams) -> str:
    args = ["template", p.name, p.chart]
    if p.namespace:
        args += ["-n", p.namespace]
    if p.version:
        args += ["--version", p.version]
    if p.values:
        args += ["-f", p.values]
    args += _set_values(p.set)
    return await run_helm(args, namespace=p.namespace)


HELM_TOOLS: list[ToolDefinition] = [
    list_releases,
    get_release,
    upgrade,
    uninstall,
    repo_add,
    repo_update,
    template,
]
