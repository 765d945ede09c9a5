"""
Cilium tools.

Cluster-level operations run the ``cilium`` CLI. Agent-level debug tools run
``cilium-dbg`` inside the Cilium agent pod of a node, which takes two
sequential commands:

  1. resolve — ``kubectl get pods -n kube-system --selector=k8s-app=cilium
     --field-selector=spec.nodeName=<node>`` → CiliumPod
  2. act     — ``kubectl exec <pod> -n kube-system -- cilium-dbg <argv>``

The second command is built from the typed result of the first; if either
fails the tool fails.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from mcp.types import CallToolResult, ToolAnnotations
from pydantic import Field

from ops_mcp.commands import run_command
from ops_mcp.errors import ArgumentError, CommandError
from ops_mcp.formatters import error_result
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
    define_tool,
)

CILIUM_NAMESPACE = "kube-system"
CILIUM_SELECTOR = "k8s-app=cilium"

_DATAPATH_HELP = "The datapath mode to use for Cilium (tunnel, native, aws-eni, gke, azure, aks-byocni)"


# ---------------------------------------------------------------------------
# Cluster-level tools (cilium CLI)
# ---------------------------------------------------------------------------

@define_tool(
    "cilium_status_and_version",
    "Get the status and version of Cilium installation",
    annotations=READ_ONLY,
)
async def status_and_version(p: NoParams) -> str | CallToolResult:
    try:
        status = await run_command("cilium", ["status"])
    except CommandError as e:
        return error_result(f"Error getting Cilium status: {e}")
    try:
        version = await run_command("cilium", ["version"])
    except CommandError as e:
        return error_result(f"Error getting Cilium version: {e}")
    return status + "\n" + version


class UpgradeParams(ToolParams):
    cluster_name: str = Field("", description="The name of the cluster to upgrade Cilium on")
    datapath_mode: str = Field("", description=_DATAPATH_HELP)


class InstallParams(ToolParams):
    cluster_name: str = Field("", description="The name of the cluster to install Cilium on")
    cluster_id: str = Field("", description="The ID of the cluster to install Cilium on")
    datapath_mode: str = Field("", description=_DATAPATH_HELP)


class ConnectParams(ToolParams):
    cluster_name: RequiredStr = Field(description="The name of the destination cluster")
    context: str = Field("", description="The kubectl context for the destination cluster")


class DisconnectParams(ToolParams):
    cluster_name: RequiredStr = Field(description="The name of the destination cluster")


class ToggleParams(ToolParams):
    enable: Flag = Field(True, description="Set to 'true' to enable, 'false' to disable")


def _upgrade_argv(p: UpgradeParams) -> list[str]:
    argv = ["upgrade"]
    if p.cluster_name:
        argv += ["--cluster-name", p.cluster_name]
    if p.datapath_mode:
        argv += ["--datapath-mode", p.datapath_mode]
    return argv


def _install_argv(p: InstallParams) -> list[str]:
    argv = ["install"]
    if p.cluster_name:
        argv += ["--set", f"cluster.name={p.cluster_name}"]
    if p.cluster_id:
        argv += ["--set", f"cluster.id={p.cluster_id}"]
    if p.datapath_mode:
        argv += ["--datapath-mode", p.datapath_mode]
    return argv


def _connect_argv(p: ConnectParams) -> list[str]:
    argv = ["clustermesh", "connect", "--destination-cluster", p.cluster_name]
    if p.context:
        argv += ["--destination-context", p.context]
    return argv


def _cilium(
    name: str,
    description: str,
    params: type[ToolParams],
    argv: Callable,
    error_prefix: str,
    annotations: ToolAnnotations = READ_ONLY,
) -> ToolDefinition:
    return cli_tool(
        name,
        description,
        params,
        command="cilium",
        argv=argv,
        error_prefix=error_prefix,
        annotations=annotations,
    )


CLUSTER_TOOLS: list[ToolDefinition] = [
    status_and_version,
    _cilium("cilium_upgrade_cilium", "Upgrade Cilium on the cluster", UpgradeParams,
            _upgrade_argv, "Error upgrading Cilium", MUTATING),
    _cilium("cilium_install_cilium", "Install Cilium on the cluster", InstallParams,
            _install_argv, "Error installing Cilium", MUTATING),
    _cilium("cilium_uninstall_cilium", "Uninstall Cilium from the cluster", NoParams,
            lambda p: ["uninstall"], "Error uninstalling Cilium", DESTRUCTIVE),
    _cilium("cilium_connect_to_remote_cluster", "Connect to a remote cluster for cluster mesh",
            ConnectParams, _connect_argv, "Error connecting to remote cluster", MUTATING),
    _cilium("cilium_disconnect_remote_cluster", "Disconnect from a remote cluster", DisconnectParams,
            lambda p: ["clustermesh", "disconnect", "--destination-cluster", p.cluster_name],
            "Error disconnecting from remote cluster", MUTATING),
    _cilium("cilium_list_bgp_peers", "List BGP peers", NoParams,
            lambda p: ["bgp", "peers"], "Error listing BGP peers"),
    _cilium("cilium_list_bgp_routes", "List BGP routes", NoParams,
            lambda p: ["bgp", "routes"], "Error listing BGP routes"),
    _cilium("cilium_show_cluster_mesh_status", "Show cluster mesh status", NoParams,
            lambda p: ["clustermesh", "status"], "Error getting cluster mesh status"),
    _cilium("cilium_show_features_status", "Show Cilium features status", NoParams,
            lambda p: ["features", "status"], "Error getting features status"),
    _cilium("cilium_toggle_hubble", "Enable or disable Hubble", ToggleParams,
            lambda p: ["hubble", "enable" if p.enable else "disable"], "Error toggling Hubble", MUTATING),
    _cilium("cilium_toggle_cluster_mesh", "Enable or disable cluster mesh", ToggleParams,
            lambda p: ["clustermesh", "enable" if p.enable else "disable"],
            "Error toggling cluster mesh", MUTATING),
]


# ---------------------------------------------------------------------------
# Agent debug tools (cilium-dbg inside the agent pod)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CiliumPod:
    name: str
    node: str


async def resolve_cilium_pod(node_name: str) -> CiliumPod:
    """Find the Cilium agent pod on ``node_name`` (any agent when empty)."""
    argv = ["get", "pods", "-n", CILIUM_NAMESPACE, f"--selector={CILIUM_SELECTOR}"]
    if node_name:
        argv.append(f"--field-selector=spec.nodeName={node_name}")
    argv += ["-o", "jsonpath={.items[0].metadata.name}"]
    name = await run_command("kubectl", argv)
    if not name:
        where = f" on node {node_name}" if node_name else ""
        raise CommandError(f"no Cilium agent pod found{where}", command="kubectl", argv=argv)
    return CiliumPod(name=name, node=node_name)


async def exec_cilium_dbg(pod: CiliumPod, argv: list[str]) -> str:
    return await run_command(
        "kubectl", ["exec", pod.name, "-n", CILIUM_NAMESPACE, "--", "cilium-dbg", *argv]
    )


class NodeParams(ToolParams):
    node_name: str = Field("", description="The name of the node whose Cilium agent to query")


def _dbg(
    name: str,
    description: str,
    params: type[NodeParams],
    argv: Callable,
    error_prefix: str,
    annotations: ToolAnnotations = READ_ONLY,
) -> ToolDefinition:
    async def run(p: NodeParams) -> str:
        args = argv(p)  # validated before anything runs
        pod = await resolve_cilium_pod(p.node_name)
        return await exec_cilium_dbg(pod, args)

    run.__name__ = name
    return define_tool(name, description, params, error_prefix=error_prefix, annotations=annotations)(run)


def _words(value: str) -> list[str]:
    return value.replace(",", " ").split()


def _flags(p: ToolParams, table: list[tuple[str, str]]) -> list[str]:
    """Append ``flag`` for every true Flag field in ``table``, in table order."""
    return [flag for field, flag in table if getattr(p, field)]


# -- parameter tables -------------------------------------------------------

class DaemonStatusParams(NodeParams):
    show_all_addresses: Flag = Field(False, description="Whether to show all addresses")
    show_all_clusters: Flag = Field(False, description="Whether to show all clusters")
    show_all_controllers: Flag = Field(False, description="Whether to show all controllers")
    show_health: Flag = Field(False, description="Whether to show health")
    show_all_nodes: Flag = Field(False, description="Whether to show all nodes")
    show_all_redirects: Flag = Field(False, description="Whether to show all redirects")
    brief: Flag = Field(False, description="Whether to show a brief status")


_DAEMON_STATUS_FLAGS = [
    ("show_all_addresses", "--all-addresses"),
    ("show_all_clusters", "--all-clusters"),
    ("show_all_controllers", "--all-controllers"),
    ("show_health", "--health"),
    ("show_all_nodes", "--all-nodes"),
    ("show_all_redirects", "--all-redirects"),
    ("brief", "--brief"),
]


class EndpointDetailsParams(NodeParams):
    endpoint_id: str = Field("", description="The ID of the endpoint")
    labels: str = Field("", description="The labels of the endpoint")
    output_format: str = Field("json", description="The output format (json, yaml, jsonpath)")


def _endpoint_details_argv(p: EndpointDetailsParams) -> list[str]:
    if p.labels:
        return ["endpoint", "get", "-l", p.labels, "-o", p.output_format]
    if p.endpoint_id:
        return ["endpoint", "get", p.endpoint_id, "-o", p.output_format]
    raise ArgumentError("either endpoint_id or labels must be provided")


class EndpointParams(NodeParams):
    endpoint_id: RequiredStr = Field(description="The ID of the endpoint")


class EndpointLabelsParams(NodeParams):
    endpoint_id: RequiredStr = Field(description="The ID of the endpoint")
    labels: RequiredStr = Field(description="Space-separated labels to add or delete")
    action: RequiredStr = Field(description="The action to perform on the labels (add, delete)")


class EndpointConfigParams(NodeParams):
    endpoint_id: RequiredStr = Field(description="The ID of the endpoint")
    config: RequiredStr = Field(description="The configuration to set, e.g. PolicyAuditMode=enabled")


class ConfigOptionsParams(NodeParams):
    list_all: Flag = Field(False, description="Whether to list all configuration options")
    list_read_only: Flag = Field(False, description="Whether to list read-only configuration options")
    list_options: Flag = Field(False, description="Whether to list options")


def _config_options_argv(p: ConfigOptionsParams) -> list[str]:
    if p.list_all:
        return ["endpoint", "config", "--all"]
    if p.list_read_only:
        return ["endpoint", "config", "-r"]
    if p.list_options:
        return ["endpoint", "config", "--list-options"]
    return ["endpoint", "config"]


class ToggleOptionParams(NodeParams):
    option: RequiredStr = Field(description="The option to toggle")
    value: RequiredStr = Field(description="'true' to enable, 'false' to disable")


class ListServicesParams(NodeParams):
    show_cluster_mesh_affinity: Flag = Field(False, description="Whether to show cluster mesh affinity")


class ServiceParams(NodeParams):
    service_id: RequiredStr = Field(description="The ID of the service")


class DeleteServiceParams(NodeParams):
    service_id: str = Field("", description="The ID of the service to delete")
    all: Flag = Field(False, description="Whether to delete all services")


def _delete_service_argv(p: DeleteServiceParams) -> list[str]:
    if p.all:
        return ["service", "delete", "--all"]
    if p.service_id:
        return ["service", "delete", p.service_id]
    raise ArgumentError("either service_id or all=true must be provided")


class UpdateServiceParams(NodeParams):
    id: RequiredStr = Field(description="The ID of the service")
    frontend: RequiredStr = Field(description="The frontend address, e.g. 10.0.0.1:80")
    backends: RequiredStr = Field(description="Comma-separated backend addresses")
    backend_weights: str = Field("", description="Comma-separated backend weights")
    k8s_cluster_internal: str = Field("", description="Whether the service is cluster internal")
    k8s_ext_traffic_policy: str = Field("", description="External traffic policy (Cluster, Local)")
    k8s_external: str = Field("", description="Whether the service is an external service")
    k8s_host_port: str = Field("", description="Whether the service is a host port service")
    k8s_int_traffic_policy: str = Field("", description="Internal traffic policy (Cluster, Local)")
    k8s_load_balancer: str = Field("", description="Whether the service is a load balancer")
    k8s_node_port: str = Field("", description="Whether the service is a node port service")
    local_redirect: str = Field("", description="Whether the service is a local redirect")
    protocol: str = Field("", description="The protocol (TCP, UDP)")
    states: str = Field("", description="Backend states")


def _update_service_argv(p: UpdateServiceParams) -> list[str]:
    argv = ["service", "update", "--id", p.id, "--frontend", p.frontend, "--backends", p.backends]
    if p.backend_weights:
        argv += ["--backend-weights", p.backend_weights]
    if p.k8s_cluster_internal:
        argv.append(f"--k8s-cluster-internal={p.k8s_cluster_internal}")
    if p.k8s_ext_traffic_policy:
        argv += ["--k8s-ext-traffic-policy", p.k8s_ext_traffic_policy]
    if p.k8s_external:
        argv.append(f"--k8s-external={p.k8s_external}")
    if p.k8s_host_port:
        argv.append(f"--k8s-host-port={p.k8s_host_port}")
    if p.k8s_int_traffic_policy:
        argv += ["--k8s-int-traffic-policy", p.k8s_int_traffic_policy]
    if p.k8s_load_balancer:
        argv.append(f"--k8s-load-balancer={p.k8s_load_balancer}")
    if p.k8s_node_port:
        argv.append(f"--k8s-node-port={p.k8s_node_port}")
    if p.local_redirect:
        argv.append(f"--local-redirect={p.local_redirect}")
    if p.protocol:
        argv += ["--protocol", p.protocol]
    if p.states:
        argv += ["--states", p.states]
    return argv


class IdentityParams(NodeParams):
    identity_id: RequiredStr = Field(description="The ID of the identity")


class EnvoyParams(NodeParams):
    resource_name: RequiredStr = Field(description="The Envoy admin resource (clusters, config, listeners, ...)")


class FqdnCacheParams(NodeParams):
    command: RequiredStr = Field(description="'list' to show the cache, 'clean' to flush it")


class IpCacheParams(NodeParams):
    cidr: str = Field("", description="The CIDR to look up")
    labels: str = Field("", description="The labels to filter by")


def _ip_cache_argv(p: IpCacheParams) -> list[str]:
    if p.labels:
        return ["ip", "get", "--labels", p.labels]
    if p.cidr:
        return ["ip", "get", p.cidr]
    raise ArgumentError("either cidr or labels must be provided")


class KvKeyParams(NodeParams):
    key: RequiredStr = Field(description="The kvstore key")


class KvSetParams(NodeParams):
    key: RequiredStr = Field(description="The kvstore key")
    value: RequiredStr = Field(description="The value to store")


class BpfMapParams(NodeParams):
    map_name: RequiredStr = Field(description="The name of the BPF map")


class MetricsParams(NodeParams):
    match_pattern: str = Field("", description="Regular expression the metric names must match")


class PolicyGetParams(NodeParams):
    labels: str = Field("", description="Labels selecting the policy rules to show")


class PolicyDeleteParams(NodeParams):
    labels: str = Field("", description="Labels selecting the policy rules to delete")
    all: Flag = Field(False, description="Whether to delete all policy rules")


def _policy_delete_argv(p: PolicyDeleteParams) -> list[str]:
    if p.all:
        return ["policy", "delete", "--all"]
    if p.labels:
        return ["policy", "delete", *_words(p.labels)]
    raise ArgumentError("either labels or all=true must be provided")


class PrefilterParams(NodeParams):
    cidr_prefixes: RequiredStr = Field(description="Space or comma separated CIDR prefixes")
    revision: str = Field("", description="The revision to update against")


def _prefilter_argv(action: str) -> Callable[[PrefilterParams], list[str]]:
    def argv(p: PrefilterParams) -> list[str]:
        args = ["prefilter", action, *_words(p.cidr_prefixes)]
        if p.revision:
            args += ["--revision", p.revision]
        return args

    return argv


class PolicyValidateParams(NodeParams):
    enable_k8s: Flag = Field(False, description="Enable Kubernetes policy validation")
    enable_k8s_api_discovery: Flag = Field(False, description="Enable Kubernetes API discovery")


class RecorderParams(NodeParams):
    recorder_id: RequiredStr = Field(description="The ID of the PCAP recorder")


class RecorderUpdateParams(NodeParams):
    recorder_id: RequiredStr = Field(description="The ID of the PCAP recorder")
    filters: RequiredStr = Field(description="The filters, e.g. '10.0.0.0/8 0 10.1.0.0/16 80 TCP'")
    caplen: str = Field("", description="Maximum capture length")
    id: str = Field("", description="Recorder ID override")


def _recorder_update_argv(p: RecorderUpdateParams) -> list[str]:
    argv = ["recorder", "update", p.recorder_id, "--filters", p.filters]
    if p.caplen:
        argv += ["--caplen", p.caplen]
    if p.id:
        argv += ["--id", p.id]
    return argv


DEBUG_TOOLS: list[ToolDefinition] = [
    _dbg("cilium_get_daemon_status", "Get the status of the Cilium daemon for the cluster",
         DaemonStatusParams, lambda p: ["status", *_flags(p, _DAEMON_STATUS_FLAGS)],
         "Error getting daemon status"),
    _dbg("cilium_get_endpoints_list", "Get the list of all endpoints in the cluster", NodeParams,
         lambda p: ["endpoint", "list"], "Error getting endpoints list"),
    _dbg("cilium_get_endpoint_details", "List the details of an endpoint in the cluster",
         EndpointDetailsParams, _endpoint_details_argv, "Error getting endpoint details"),
    _dbg("cilium_show_configuration_options", "Show Cilium configuration options", ConfigOptionsParams,
         _config_options_argv, "Error showing configuration options"),
    _dbg("cilium_toggle_configuration_option", "Toggle a Cilium configuration option", ToggleOptionParams,
         lambda p: ["endpoint", "config",
                    f"{p.option}={'enable' if p.value.lower() == 'true' else 'disable'}"],
         "Error toggling configuration option", MUTATING),
    _dbg("cilium_list_services", "List services for the cluster", ListServicesParams,
         lambda p: ["service", "list", *(["--clustermesh-affinity"] if p.show_cluster_mesh_affinity else [])],
         "Error listing services"),
    _dbg("cilium_get_service_information", "Get information about a service in the cluster", ServiceParams,
         lambda p: ["service", "get", p.service_id], "Error getting service information"),
    _dbg("cilium_update_service", "Update a service in the cluster", UpdateServiceParams,
         _update_service_argv, "Error updating service", MUTATING),
    _dbg("cilium_delete_service", "Delete a service from the cluster", DeleteServiceParams,
         _delete_service_argv, "Error deleting service", DESTRUCTIVE),
    _dbg("cilium_get_endpoint_logs", "Get the logs of an endpoint in the cluster", EndpointParams,
         lambda p: ["endpoint", "logs", p.endpoint_id], "Error getting endpoint logs"),
    _dbg("cilium_get_endpoint_health", "Get the health of an endpoint in the cluster", EndpointParams,
         lambda p: ["endpoint", "health", p.endpoint_id], "Error getting endpoint health"),
    _dbg("cilium_manage_endpoint_labels", "Manage the labels (add or delete) of an endpoint",
         EndpointLabelsParams,
         lambda p: ["endpoint", "labels", p.endpoint_id, f"--{p.action}", *_words(p.labels)],
         "Error managing endpoint labels", MUTATING),
    _dbg("cilium_manage_endpoint_config", "Manage the configuration of an endpoint", EndpointConfigParams,
         lambda p: ["endpoint", "config", p.endpoint_id, *p.config.split()],
         "Error managing endpoint configuration", MUTATING),
    _dbg("cilium_disconnect_endpoint", "Disconnect an endpoint from the network", EndpointParams,
         lambda p: ["endpoint", "disconnect", p.endpoint_id], "Error disconnecting endpoint", DESTRUCTIVE),
    _dbg("cilium_list_identities", "List all identities in the cluster", NodeParams,
         lambda p: ["identity", "list"], "Error listing identities"),
    _dbg("cilium_get_identity_details", "Get the details of an identity in the cluster", IdentityParams,
         lambda p: ["identity", "get", p.identity_id], "Error getting identity details"),
    _dbg("cilium_request_debugging_information", "Request debugging information for the cluster",
         NodeParams, lambda p: ["debuginfo"], "Error requesting debugging information"),
    _dbg("cilium_display_encryption_state", "Display the encryption state for the cluster", NodeParams,
         lambda p: ["encrypt", "status"], "Error displaying encryption state"),
    _dbg("cilium_flush_ipsec_state", "Flush the IPsec state for the cluster", NodeParams,
         lambda p: ["encrypt", "flush", "-f"], "Error flushing IPsec state", DESTRUCTIVE),
    _dbg("cilium_list_envoy_config", "List the Envoy configuration for a resource", EnvoyParams,
         lambda p: ["envoy", "admin", p.resource_name], "Error listing Envoy config"),
    _dbg("cilium_fqdn_cache", "Manage the FQDN cache for the cluster", FqdnCacheParams,
         lambda p: ["fqdn", "cache", "clean" if p.command == "clean" else "list"],
         "Error managing FQDN cache", MUTATING),
    _dbg("cilium_show_dns_names", "Show the DNS names for the cluster", NodeParams,
         lambda p: ["dns", "names"], "Error showing DNS names"),
    _dbg("cilium_list_ip_addresses", "List the IP addresses for the cluster", NodeParams,
         lambda p: ["ip", "list"], "Error listing IP addresses"),
    _dbg("cilium_show_ip_cache_information", "Show the IP cache information for the cluster",
         IpCacheParams, _ip_cache_argv, "Error showing IP cache information"),
    _dbg("cilium_delete_key_from_kv_store", "Delete a key from the kvstore", KvKeyParams,
         lambda p: ["kvstore", "delete", p.key], "Error deleting key from kvstore", DESTRUCTIVE),
    _dbg("cilium_get_kv_store_key", "Get a key from the kvstore", KvKeyParams,
         lambda p: ["kvstore", "get", p.key], "Error getting key from kvstore"),
    _dbg("cilium_set_kv_store_key", "Set a key in the kvstore", KvSetParams,
         lambda p: ["kvstore", "set", f"{p.key}={p.value}"], "Error setting key in kvstore", MUTATING),
    _dbg("cilium_show_load_information", "Show load information for the cluster", NodeParams,
         lambda p: ["loadinfo"], "Error showing load information"),
    _dbg("cilium_list_local_redirect_policies", "List local redirect policies", NodeParams,
         lambda p: ["lrp", "list"], "Error listing local redirect policies"),
    _dbg("cilium_list_bpf_map_events", "List events of a BPF map", BpfMapParams,
         lambda p: ["bpf", "map", "events", p.map_name], "Error listing BPF map events"),
    _dbg("cilium_get_bpf_map", "Get the contents of a BPF map", BpfMapParams,
         lambda p: ["bpf", "map", "get", p.map_name], "Error getting BPF map"),
    _dbg("cilium_list_bpf_maps", "List all open BPF maps", NodeParams,
         lambda p: ["bpf", "map", "list"], "Error listing BPF maps"),
    _dbg("cilium_list_metrics", "List metrics for the cluster", MetricsParams,
         lambda p: ["metrics", "list", *(["--pattern", p.match_pattern] if p.match_pattern else [])],
         "Error listing metrics"),
    _dbg("cilium_list_cluster_nodes", "List the nodes in the cluster", NodeParams,
         lambda p: ["nodes", "list"], "Error listing cluster nodes"),
    _dbg("cilium_list_node_ids", "List node IDs and their IP addresses", NodeParams,
         lambda p: ["nodeid", "list"], "Error listing node IDs"),
    _dbg("cilium_display_policy_node_information", "Display policy node information for the cluster",
         PolicyGetParams, lambda p: ["policy", "get", *_words(p.labels)],
         "Error displaying policy node information"),
    _dbg("cilium_delete_policy_rules", "Delete policy rules", PolicyDeleteParams,
         _policy_delete_argv, "Error deleting policy rules", DESTRUCTIVE),
    _dbg("cilium_display_selectors", "Display the policy selectors for the cluster", NodeParams,
         lambda p: ["policy", "selectors"], "Error displaying selectors"),
    _dbg("cilium_list_xdp_cidr_filters", "List the XDP CIDR filters for the cluster", NodeParams,
         lambda p: ["prefilter", "list"], "Error listing XDP CIDR filters"),
    _dbg("cilium_update_xdp_cidr_filters", "Update the XDP CIDR filters for the cluster", PrefilterParams,
         _prefilter_argv("update"), "Error updating XDP CIDR filters", MUTATING),
    _dbg("cilium_delete_xdp_cidr_filters", "Delete XDP CIDR filters", PrefilterParams,
         _prefilter_argv("delete"), "Error deleting XDP CIDR filters", DESTRUCTIVE),
    _dbg("cilium_validate_cilium_network_policies", "Validate the Cilium network policies",
         PolicyValidateParams,
         lambda p: ["policy", "validate",
                    *_flags(p, [("enable_k8s", "--enable-k8s"),
                                ("enable_k8s_api_discovery", "--enable-k8s-api-discovery")])],
         "Error validating Cilium network policies"),
    _dbg("cilium_list_pcap_recorders", "List PCAP recorders", NodeParams,
         lambda p: ["recorder", "list"], "Error listing PCAP recorders"),
    _dbg("cilium_get_pcap_recorder", "Get a PCAP recorder", RecorderParams,
         lambda p: ["recorder", "get", p.recorder_id], "Error getting PCAP recorder"),
    _dbg("cilium_delete_pcap_recorder", "Delete a PCAP recorder", RecorderParams,
         lambda p: ["recorder", "delete", p.recorder_id], "Error deleting PCAP recorder", DESTRUCTIVE),
    _dbg("cilium_update_pcap_recorder", "Update a PCAP recorder", RecorderUpdateParams,
         _recorder_update_argv, "Error updating PCAP recorder", MUTATING),
]

CILIUM_TOOLS: list[ToolDefinition] = CLUSTER_TOOLS + DEBUG_TOOLS
