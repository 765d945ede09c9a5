"""
Tool providers: named groups of tools enabled together with ``--tools``.
"""

from __future__ import annotations

import logging
import shutil
from enum import Enum

from ops_mcp.metrics import set_registered_tools
from ops_mcp.params import ToolDefinition
from ops_mcp.registry import ToolRegistry

logger = logging.getLogger(__name__)


class Provider(str, Enum):
    ARGO = "argo"
    CILIUM = "cilium"
    HELM = "helm"
    ISTIO = "istio"
    K8S = "k8s"
    PROMETHEUS = "prometheus"
    UTILS = "utils"

    @classmethod
    def parse(cls, name: str) -> Provider:
        try:
            return cls(name.strip().lower())
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise ValueError(f"unknown provider {name!r} (valid: {valid})") from None

    @property
    def binaries(self) -> tuple[str, ...]:
        """Collaborator CLIs the provider shells out to."""
        match self:
            case Provider.ARGO | Provider.K8S:
                return ("kubectl",)
            case Provider.CILIUM:
                return ("cilium", "kubectl")
            case Provider.HELM:
                return ("helm",)
            case Provider.ISTIO:
                return ("istioctl",)
            case _:
                return ()

    def tools(self) -> list[ToolDefinition]:
        # Imported lazily so a broken provider module only disables that provider.
        match self:
            case Provider.ARGO:
                from ops_mcp.tools.argo import ARGO_TOOLS
                return ARGO_TOOLS
            case Provider.CILIUM:
                from ops_mcp.tools.cilium import CILIUM_TOOLS
                return CILIUM_TOOLS
            case Provider.HELM:
                from ops_mcp.tools.helm import HELM_TOOLS
                return HELM_TOOLS
            case Provider.ISTIO:
                from ops_mcp.tools.istio import ISTIO_TOOLS
                return ISTIO_TOOLS
            case Provider.K8S:
                from ops_mcp.tools.k8s import K8S_TOOLS
                return K8S_TOOLS
            case Provider.PROMETHEUS:
                from ops_mcp.tools.prometheus import PROMETHEUS_TOOLS
                return PROMETHEUS_TOOLS
            case Provider.UTILS:
                from ops_mcp.tools.utils import UTILS_TOOLS
                return UTILS_TOOLS
        raise AssertionError(self)

    def register(self, registry: ToolRegistry, *, read_only: bool = False) -> int:
        """Register the provider's tools; with ``read_only`` only read-only tools. Returns how many were added."""
        tools = self.tools()
        if read_only:
            tools = [t for t in tools if is_read_only(t)]
        registry.register_all(tools, provider=self.value)
        set_registered_tools(self.value, len(tools))
        return len(tools)


def is_read_only(definition: ToolDefinition) -> bool:
    annotations = definition.tool.annotations
    return annotations is not None and annotations.readOnlyHint is True


def register_providers(
    registry: ToolRegistry,
    providers: list[Provider] | None = None,
    *,
    read_only: bool = False,
) -> list[Provider]:
    """Register ``providers`` (default: all). A provider that fails is logged and skipped."""
    registered: list[Provider] = []
    for provider in providers or list(Provider):
        try:
            count = provider.register(registry, read_only=read_only)
        except Exception as exc:  # noqa: BLE001
            logger.error("failed to register provider", extra={"provider": provider.value, "error": str(exc)})
            continue
        registered.append(provider)
        logger.info("registered provider", extra={"provider": provider.value, "tools": count})
    return registered


def check_binaries(providers: list[Provider]) -> list[str]:
    """Names of collaborator CLIs missing from PATH; tools that need them will fail until installed."""
    missing = sorted({b for p in providers for b in p.binaries if shutil.which(b) is None})
    for binary in missing:
        logger.warning("binary not found on PATH", extra={"binary": binary})
    return missing
