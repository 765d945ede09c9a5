"""
Unit tests for ops_mcp/tools/cilium.py
"""

from __future__ import annotations

from ops_mcp.tools import cilium
from tests.conftest import call

POD_LOOKUP = [
    "get", "pods", "-n", "kube-system", "--selector=k8s-app=cilium",
    "--field-selector=spec.nodeName=node-1", "-o", "jsonpath={.items[0].metadata.name}",
]


def _tool(name: str):
    return next(t for t in cilium.CILIUM_TOOLS if t.name == name)


def _exec(*argv: str) -> list[str]:
    return ["exec", "cilium-abc12", "-n", "kube-system", "--", "cilium-dbg", *argv]


# ---------------------------------------------------------------------------
# Cluster-level tools
# ---------------------------------------------------------------------------

async def test_status_and_version_joins_outputs(executor):
    executor.add_command("cilium", ["status"], "Cilium status: OK")
    executor.add_command("cilium", ["version"], "cilium version 1.14.0")
    result, text = await call(cilium.status_and_version)
    assert result.isError is False
    assert text == "Cilium status: OK\ncilium version 1.14.0"


async def test_status_failure_skips_version(executor):
    executor.add_command("cilium", ["status"], error="cilium exited with code 1: unreachable")
    result, text = await call(cilium.status_and_version)
    assert result.isError is True
    assert text.startswith("Error getting Cilium status: ")
    assert executor.call_count == 1


async def test_version_failure(executor):
    executor.add_command("cilium", ["status"], "ok")
    executor.add_command("cilium", ["version"], error="boom")
    result, text = await call(cilium.status_and_version)
    assert result.isError is True
    assert text == "Error getting Cilium version: boom"


async def test_connect_to_remote_cluster(executor):
    executor.add_partial_match("cilium", [], "connected")
    result, text = await call(_tool("cilium_connect_to_remote_cluster"), {"cluster_name": "my-cluster"})
    assert result.isError is False
    assert text == "connected"
    assert executor.calls[0].args == ["clustermesh", "connect", "--destination-cluster", "my-cluster"]


async def test_connect_with_context(executor):
    executor.add_partial_match("cilium", [], "connected")
    await call(_tool("cilium_connect_to_remote_cluster"), {"cluster_name": "east", "context": "kind-east"})
    assert executor.calls[0].args == [
        "clustermesh", "connect", "--destination-cluster", "east", "--destination-context", "kind-east",
    ]


async def test_connect_requires_cluster_name(executor):
    result, text = await call(_tool("cilium_connect_to_remote_cluster"), {})
    assert result.isError is True
    assert text == "cluster_name parameter is required"
    assert executor.call_count == 0


async def test_install_sets_cluster_values(executor):
    executor.add_partial_match("cilium", [], "installed")
    await call(_tool("cilium_install_cilium"), {"cluster_name": "c1", "cluster_id": "7", "datapath_mode": "native"})
    assert executor.calls[0].args == [
        "install", "--set", "cluster.name=c1", "--set", "cluster.id=7", "--datapath-mode", "native",
    ]


async def test_upgrade_without_options(executor):
    executor.add_partial_match("cilium", [], "upgraded")
    await call(_tool("cilium_upgrade_cilium"))
    assert executor.calls[0].args == ["upgrade"]


async def test_toggle_hubble(executor):
    executor.add_partial_match("cilium", [], "ok")
    await call(_tool("cilium_toggle_hubble"), {"enable": "false"})
    await call(_tool("cilium_toggle_hubble"), {})
    assert [c.args for c in executor.calls] == [["hubble", "disable"], ["hubble", "enable"]]


async def test_cluster_tool_error_prefix(executor):
    executor.add_command("cilium", ["bgp", "peers"], error="bgp control plane disabled")
    result, text = await call(_tool("cilium_list_bgp_peers"))
    assert result.isError is True
    assert text == "Error listing BGP peers: bgp control plane disabled"


# ---------------------------------------------------------------------------
# cilium-dbg tools: resolve the agent pod, then exec
# ---------------------------------------------------------------------------

async def test_debug_tool_resolves_pod_then_execs(executor):
    executor.add_command("kubectl", POD_LOOKUP, "cilium-abc12")
    executor.add_command("kubectl", _exec("endpoint", "list"), "ENDPOINT   POLICY")
    result, text = await call(_tool("cilium_get_endpoints_list"), {"node_name": "node-1"})
    assert result.isError is False
    assert text == "ENDPOINT   POLICY"
    assert [c.args for c in executor.calls] == [POD_LOOKUP, _exec("endpoint", "list")]


async def test_debug_tool_without_node_uses_any_agent(executor):
    executor.add_partial_match("kubectl", ["get", "pods"], "cilium-abc12")
    executor.add_partial_match("kubectl", ["exec"], "ok")
    await call(_tool("cilium_list_identities"))
    lookup = executor.calls[0].args
    assert not any(a.startswith("--field-selector") for a in lookup)
    assert executor.calls[1].args == _exec("identity", "list")


async def test_debug_tool_no_pod_found(executor):
    executor.add_command("kubectl", POD_LOOKUP, "")
    result, text = await call(_tool("cilium_list_metrics"), {"node_name": "node-1"})
    assert result.isError is True
    assert text == "Error listing metrics: no Cilium agent pod found on node node-1"
    assert executor.call_count == 1


async def test_debug_tool_exec_failure(executor):
    executor.add_command("kubectl", POD_LOOKUP, "cilium-abc12")
    executor.add_command("kubectl", _exec("kvstore", "get", "k"), error="key not found")
    result, text = await call(_tool("cilium_get_kv_store_key"), {"node_name": "node-1", "key": "k"})
    assert result.isError is True
    assert text == "Error getting key from kvstore: key not found"


async def test_daemon_status_flags_in_table_order(executor):
    executor.add_partial_match("kubectl", ["get"], "cilium-abc12")
    executor.add_partial_match("kubectl", ["exec"], "ok")
    args = {"brief": "true", "show_health": "true", "show_all_addresses": "true"}
    await call(_tool("cilium_get_daemon_status"), args)
    assert executor.calls[1].args == _exec("status", "--all-addresses", "--health", "--brief")


async def test_endpoint_details_needs_id_or_labels(executor):
    result, text = await call(_tool("cilium_get_endpoint_details"), {"node_name": "node-1"})
    assert result.isError is True
    assert text == "either endpoint_id or labels must be provided"
    assert executor.call_count == 0


async def test_endpoint_details_prefers_labels(executor):
    executor.add_partial_match("kubectl", ["get"], "cilium-abc12")
    executor.add_partial_match("kubectl", ["exec"], "{}")
    await call(_tool("cilium_get_endpoint_details"), {"endpoint_id": "42", "labels": "app=web"})
    assert executor.calls[1].args == _exec("endpoint", "get", "-l", "app=web", "-o", "json")


async def test_update_service_optional_flags(executor):
    executor.add_partial_match("kubectl", ["get"], "cilium-abc12")
    executor.add_partial_match("kubectl", ["exec"], "updated")
    await call(_tool("cilium_update_service"), {
        "id": "5",
        "frontend": "10.0.0.1:80",
        "backends": "10.0.1.1:8080,10.0.1.2:8080",
        "k8s_node_port": "true",
        "protocol": "TCP",
    })
    assert executor.calls[1].args == _exec(
        "service", "update", "--id", "5", "--frontend", "10.0.0.1:80",
        "--backends", "10.0.1.1:8080,10.0.1.2:8080", "--k8s-node-port=true", "--protocol", "TCP",
    )


async def test_delete_service_all(executor):
    executor.add_partial_match("kubectl", ["get"], "cilium-abc12")
    executor.add_partial_match("kubectl", ["exec"], "deleted")
    await call(_tool("cilium_delete_service"), {"all": "true", "service_id": "3"})
    assert executor.calls[1].args == _exec("service", "delete", "--all")


async def test_policy_delete_requires_selector(executor):
    result, text = await call(_tool("cilium_delete_policy_rules"), {})
    assert result.isError is True
    assert text == "either labels or all=true must be provided"
    assert executor.call_count == 0


async def test_prefilter_update_splits_prefixes(executor):
    executor.add_partial_match("kubectl", ["get"], "cilium-abc12")
    executor.add_partial_match("kubectl", ["exec"], "ok")
    await call(_tool("cilium_update_xdp_cidr_filters"), {
        "cidr_prefixes": "10.0.0.0/8, 192.168.0.0/16",
        "revision": "2",
    })
    assert executor.calls[1].args == _exec(
        "prefilter", "update", "10.0.0.0/8", "192.168.0.0/16", "--revision", "2",
    )


async def test_toggle_configuration_option(executor):
    executor.add_partial_match("kubectl", ["get"], "cilium-abc12")
    executor.add_partial_match("kubectl", ["exec"], "ok")
    await call(_tool("cilium_toggle_configuration_option"), {"option": "PolicyTracing", "value": "TRUE"})
    assert executor.calls[1].args == _exec("endpoint", "config", "PolicyTracing=enable")


async def test_fqdn_cache_defaults_to_list(executor):
    executor.add_partial_match("kubectl", ["get"], "cilium-abc12")
    executor.add_partial_match("kubectl", ["exec"], "ok")
    await call(_tool("cilium_fqdn_cache"), {"command": "show"})
    assert executor.calls[1].args == _exec("fqdn", "cache", "list")


async def test_pod_resolution_is_per_call(executor):
    executor.add_partial_match("kubectl", ["get"], "cilium-abc12")
    executor.add_partial_match("kubectl", ["exec"], "ok")
    for _ in range(2):
        await call(_tool("cilium_list_bpf_maps"))
    assert [c.args[0] for c in executor.calls] == ["get", "exec", "get", "exec"]
