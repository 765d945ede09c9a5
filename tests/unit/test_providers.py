"""
Unit tests for ops_mcp/providers.py
"""

from __future__ import annotations

import pytest
from prometheus_client import REGISTRY

from ops_mcp.params import NoParams, define_tool
from ops_mcp.providers import Provider, check_binaries, is_read_only, register_providers
from ops_mcp.registry import ToolRegistry


def test_parse_is_case_insensitive():
    assert Provider.parse(" Helm ") is Provider.HELM


def test_parse_unknown_lists_valid_names():
    with pytest.raises(ValueError, match="unknown provider 'linkerd' \\(valid: argo, cilium, helm"):
        Provider.parse("linkerd")


@pytest.mark.parametrize("provider", list(Provider))
def test_every_provider_has_tools(provider):
    tools = provider.tools()
    assert tools
    prefixes = {"argo": ("argo_", "argocd_"), "k8s": ("k8s_",), "utils": ("",)}
    expected = prefixes.get(provider.value, (f"{provider.value}_",))
    assert all(t.name.startswith(expected) for t in tools)


def test_all_tool_names_unique_across_providers():
    names = [t.name for p in Provider for t in p.tools()]
    assert len(names) == len(set(names))


def test_every_tool_is_annotated():
    for provider in Provider:
        for definition in provider.tools():
            annotations = definition.tool.annotations
            assert annotations is not None, definition.name
            assert annotations.readOnlyHint is not None, definition.name


def test_register_all_providers(registry):
    total = sum(len(p.tools()) for p in Provider)
    assert registry.count() == total
    assert "helm_list_releases" in registry
    assert "cilium_status_and_version" in registry
    assert "prometheus_query_tool" in registry


def test_register_selected_providers():
    reg = ToolRegistry()
    enabled = register_providers(reg, [Provider.HELM, Provider.UTILS])
    assert enabled == [Provider.HELM, Provider.UTILS]
    assert reg.count() == len(Provider.HELM.tools()) + len(Provider.UTILS.tools())
    assert "k8s_get_resources" not in reg


def test_registration_records_provider():
    reg = ToolRegistry()
    register_providers(reg, [Provider.HELM, Provider.UTILS], read_only=True)
    assert reg.provider_of("helm_list_releases") == "helm"
    assert reg.provider_of("echo") == "utils"
    assert reg.provider_of("missing") == ""
    read_only_helm = sum(1 for t in Provider.HELM.tools() if is_read_only(t))
    assert REGISTRY.get_sample_value("ops_mcp_registered_tools", {"provider": "helm"}) == read_only_helm


def test_read_only_registration_filters_write_tools():
    reg = ToolRegistry()
    register_providers(reg, [Provider.K8S, Provider.HELM, Provider.ARGO], read_only=True)
    names = {t.name for t in reg.list_tools()}
    assert "k8s_get_resources" in names
    assert "helm_list_releases" in names
    assert "argocd_get_application" in names
    assert "k8s_apply_manifest" not in names
    assert "helm_uninstall" not in names
    assert "argocd_sync_application" not in names
    assert all(is_read_only(reg.get(n)) for n in names)


def test_failing_provider_is_skipped(monkeypatch):
    def broken(self):
        raise ImportError("missing module")

    original = Provider.tools

    def tools(self):
        if self is Provider.ISTIO:
            return broken(self)
        return original(self)

    monkeypatch.setattr(Provider, "tools", tools)
    reg = ToolRegistry()
    enabled = register_providers(reg, [Provider.ISTIO, Provider.UTILS])
    assert enabled == [Provider.UTILS]
    assert reg.count() == len(Provider.UTILS.tools())


def test_duplicate_provider_registration_is_skipped():
    reg = ToolRegistry()
    register_providers(reg, [Provider.UTILS])
    enabled = register_providers(reg, [Provider.UTILS])
    assert enabled == []
    assert reg.count() == len(Provider.UTILS.tools())


def test_is_read_only_requires_explicit_hint():
    @define_tool("plain", "No annotations", NoParams)
    async def plain(p: NoParams) -> str:
        return ""

    assert is_read_only(plain) is False


def test_binaries():
    assert Provider.K8S.binaries == ("kubectl",)
    assert Provider.CILIUM.binaries == ("cilium", "kubectl")
    assert Provider.PROMETHEUS.binaries == ()


def test_check_binaries_reports_missing(monkeypatch):
    monkeypatch.setattr("shutil.which", lambda name: None if name == "istioctl" else f"/usr/bin/{name}")
    assert check_binaries([Provider.ISTIO, Provider.K8S, Provider.UTILS]) == ["istioctl"]
