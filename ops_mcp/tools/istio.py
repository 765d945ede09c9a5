"""
Istio tools (istioctl).

Tools:
  istio_proxy_status, istio_proxy_config            — Envoy sync state and config
  istio_install_istio, istio_generate_manifest      — install / render a profile
  istio_analyze_cluster_configuration               — istioctl analyze
  istio_version, istio_remote_clusters              — versions, multicluster state
  istio_list_waypoints, istio_generate_waypoint,
  istio_apply_waypoint, istio_delete_waypoint,
  istio_waypoint_status                             — ambient waypoints
  istio_ztunnel_config                              — ambient ztunnel config
"""

from __future__ import annotations

from mcp.types import ToolAnnotations
from pydantic import Field

from ops_mcp.params import (
    DESTRUCTIVE,
    MUTATING,
    READ_ONLY,
    Flag,
    NoParams,
    RequiredStr,
    ToolDefinition,
    ToolParams,
    cli_tool,
)


class ProxyStatusParams(ToolParams):
    pod_name: str = Field("", description="Name of the pod to get proxy status for")
    namespace: str = Field("", description="Namespace of the pod")


class ProxyConfigParams(ToolParams):
    pod_name: RequiredStr = Field(description="Name of the pod to get proxy configuration for")
    namespace: str = Field("", description="Namespace of the pod")
    config_type: str = Field(
        "all", description="Type of configuration (all, bootstrap, cluster, ecds, listener, log, route, secret)"
    )


class ProfileParams(ToolParams):
    profile: str = Field("default", description="Istio configuration profile (ambient, default, demo, minimal, empty)")


class ScopeParams(ToolParams):
    namespace: str = Field("", description="Namespace to operate on")
    all_namespaces: Flag = Field(False, description="Operate on all namespaces")


class VersionParams(ToolParams):
    short: Flag = Field(False, description="Show short version information")


class GenerateWaypointParams(ToolParams):
    namespace: RequiredStr = Field(description="Namespace to generate the waypoint for")
    name: str = Field("waypoint", description="Name of the waypoint")
    traffic_type: str = Field("all", description="Traffic type for the waypoint (all, none, service, workload)")


class ApplyWaypointParams(ToolParams):
    namespace: RequiredStr = Field(description="Namespace to apply the waypoint to")
    enroll_namespace: Flag = Field(False, description="Label the namespace to use the waypoint")


class DeleteWaypointParams(ToolParams):
    namespace: RequiredStr = Field(description="Namespace of the waypoints")
    names: str = Field("", description="Comma-separated waypoint names to delete")
    all: Flag = Field(False, description="Delete all waypoints in the namespace")


class WaypointStatusParams(ToolParams):
    namespace: RequiredStr = Field(description="Namespace of the waypoint")
    name: str = Field("", description="Name of the waypoint")


class ZtunnelConfigParams(ToolParams):
    namespace: str = Field("", description="Namespace of the ztunnel")
    config_type: str = Field("all", description="Type of configuration (all, certificates, connections, policies, services, workloads)")


# ---------------------------------------------------------------------------
# argv builders
# ---------------------------------------------------------------------------

def _proxy_status_argv(p: ProxyStatusParams) -> list[str]:
    argv = ["proxy-status"]
    if p.namespace:
        argv += ["-n", p.namespace]
    if p.pod_name:
        argv.append(p.pod_name)
    return argv


def _proxy_config_argv(p: ProxyConfigParams) -> list[str]:
    target = f"{p.pod_name}.{p.namespace}" if p.namespace else p.pod_name
    return ["proxy-config", p.config_type or "all", target]


def _scoped(argv: list[str], p: ScopeParams) -> list[str]:
    if p.all_namespaces:
        return argv + ["-A"]
    if p.namespace:
        return argv + ["-n", p.namespace]
    return argv


def _generate_waypoint_argv(p: GenerateWaypointParams) -> list[str]:
    argv = ["waypoint", "generate"]
    if p.name:
        argv.append(p.name)
    argv += ["-n", p.namespace]
    if p.traffic_type:
        argv += ["--for", p.traffic_type]
    return argv


def _delete_waypoint_argv(p: DeleteWaypointParams) -> list[str]:
    argv = ["waypoint", "delete"]
    if p.all:
        argv.append("--all")
    elif p.names:
        argv += [n.strip() for n in p.names.split(",") if n.strip()]
    return argv + ["-n", p.namespace]


def _waypoint_status_argv(p: WaypointStatusParams) -> list[str]:
    argv = ["waypoint", "status"]
    if p.name:
        argv.append(p.name)
    return argv + ["-n", p.namespace]


def _ztunnel_argv(p: ZtunnelConfigParams) -> list[str]:
    argv = ["ztunnel", "config", p.config_type or "all"]
    if p.namespace:
        argv += ["-n", p.namespace]
    return argv


def _istioctl(
    name: str,
    description: str,
    params: type[ToolParams],
    argv,
    operation: str,
    annotations: ToolAnnotations = READ_ONLY,
) -> ToolDefinition:
    return cli_tool(
        name,
        description,
        params,
        command="istioctl",
        argv=argv,
        error_prefix=f"istioctl {operation} failed",
        annotations=annotations,
    )


ISTIO_TOOLS: list[ToolDefinition] = [
    _istioctl("istio_proxy_status", "Get Envoy proxy status for pods, retrieves last sent and acknowledged xDS sync from Istiod to each Envoy in the mesh",
              ProxyStatusParams, _proxy_status_argv, "proxy-status"),
    _istioctl("istio_proxy_config", "Get specific proxy configuration for a single pod",
              ProxyConfigParams, _proxy_config_argv, "proxy-config"),
    _istioctl("istio_install_istio", "Install Istio with a specified configuration profile",
              ProfileParams, lambda p: ["install", "--set", f"profile={p.profile}", "-y"], "install", MUTATING),
    _istioctl("istio_generate_manifest", "Generate Istio manifest for a given profile",
              ProfileParams, lambda p: ["manifest", "generate", "--set", f"profile={p.profile}"],
              "manifest generate"),
    _istioctl("istio_analyze_cluster_configuration", "Analyze live cluster configuration for potential issues",
              ScopeParams, lambda p: _scoped(["analyze"], p), "analyze"),
    _istioctl("istio_version", "Get Istio CLI client version, control plane and data plane versions",
              VersionParams, lambda p: ["version", *(["--short"] if p.short else [])], "version"),
    _istioctl("istio_remote_clusters", "List remote clusters each istiod instance is connected to",
              NoParams, lambda p: ["remote-clusters"], "remote-clusters"),
    _istioctl("istio_list_waypoints", "List managed waypoint configurations in the cluster",
              ScopeParams, lambda p: _scoped(["waypoint", "list"], p), "waypoint list"),
    _istioctl("istio_generate_waypoint", "Generate a waypoint configuration as YAML",
              GenerateWaypointParams, _generate_waypoint_argv, "waypoint generate"),
    _istioctl("istio_apply_waypoint", "Apply a waypoint configuration to a cluster",
              ApplyWaypointParams,
              lambda p: ["waypoint", "apply", "-n", p.namespace,
                         *(["--enroll-namespace"] if p.enroll_namespace else [])],
              "waypoint apply", MUTATING),
    _istioctl("istio_delete_waypoint", "Delete waypoint configuration from a cluster",
              DeleteWaypointParams, _delete_waypoint_argv, "waypoint delete", DESTRUCTIVE),
    _istioctl("istio_waypoint_status", "Get the status of a waypoint",
              WaypointStatusParams, _waypoint_status_argv, "waypoint status"),
    _istioctl("istio_ztunnel_config", "Get ztunnel configuration",
              ZtunnelConfigParams, _ztunnel_argv, "ztunnel config"),
]
