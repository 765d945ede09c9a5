"""
Startup configuration: command-line flags with environment fallbacks.

Environment variables (a ``.env`` file in the working directory is loaded
first and never overrides variables already set):
  OPS_MCP_LOG_LEVEL=debug|info|warn|error  — default for --log-level
  KUBECONFIG=/path                         — default for --kubeconfig
  MCP_READ_ONLY=true                       — default for --read-only
  ARGOCD_BASE_URL, ARGOCD_API_TOKEN        — ArgoCD REST backend
  PROMETHEUS_URL                           — default Prometheus server

Transport selection, resolved once: HTTP when ``--stdio=false`` is given, or
when ``--http-port`` is given with a value above zero; stdio otherwise.
"""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field

from ops_mcp.errors import ConfigError
from ops_mcp.providers import Provider

LOG_LEVELS = ("debug", "info", "warn", "warning", "error")


@dataclass(frozen=True)
class HTTPConfig:
    port: int = 8080
    read_timeout: float = 30.0
    write_timeout: float = 30.0
    shutdown_timeout: float = 10.0

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            raise ConfigError(f"http-port must be between 0-65535, got {self.port}")
        if self.read_timeout <= 0:
            raise ConfigError(f"http-read-timeout must be positive, got {self.read_timeout:g}")
        if self.write_timeout < 0:
            raise ConfigError(f"http-write-timeout must be non-negative, got {self.write_timeout:g}")
        if self.shutdown_timeout <= 0:
            raise ConfigError(f"http-shutdown-timeout must be positive, got {self.shutdown_timeout:g}")


@dataclass(frozen=True)
class Config:
    transport: str = "stdio"
    http: HTTPConfig = field(default_factory=HTTPConfig)
    providers: tuple[Provider, ...] = ()
    kubeconfig: str | None = None
    log_level: str = "info"
    read_only: bool = False
    show_version: bool = False
    warnings: tuple[str, ...] = ()

    @property
    def stdio(self) -> bool:
        return self.transport == "stdio"


def select_transport(stdio: bool | None, http_port: int | None) -> str:
    """``stdio``/``http_port`` are None when the flag was not given."""
    if stdio is False:
        return "http"
    if http_port is not None and http_port > 0:
        return "http"
    return "stdio"


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "t", "true", "yes", "on"):
        return True
    if lowered in ("0", "f", "false", "no", "off"):
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value: {value!r}")


def _env_bool(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ops-mcp",
        description="MCP tool server for Kubernetes, Helm, Istio, Cilium, Argo and Prometheus operations.",
    )
    parser.add_argument("--port", type=int, default=None,
                        help="deprecated: use --http-port")
    parser.add_argument("--http-port", type=int, default=None,
                        help="HTTP port; a value above 0 selects the HTTP transport (default 8080)")
    parser.add_argument("--http-read-timeout", type=float, default=30.0,
                        help="seconds allowed to read a request body (default 30)")
    parser.add_argument("--http-write-timeout", type=float, default=30.0,
                        help="seconds allowed to produce a response, 0 disables (default 30)")
    parser.add_argument("--http-shutdown-timeout", type=float, default=10.0,
                        help="seconds allowed for graceful HTTP shutdown (default 10)")
    parser.add_argument("--stdio", type=_parse_bool, nargs="?", const=True, default=None,
                        help="serve over stdin/stdout (default true); --stdio=false selects HTTP")
    parser.add_argument("--tools", action="append", default=[], metavar="PROVIDER[,PROVIDER...]",
                        help=f"providers to enable, repeatable (default all: {', '.join(p.value for p in Provider)})")
    parser.add_argument("--kubeconfig", default=os.environ.get("KUBECONFIG") or None,
                        help="kubeconfig file passed to kubectl, helm and friends")
    parser.add_argument("--log-level", default=os.environ.get("OPS_MCP_LOG_LEVEL", "info").lower(),
                        choices=LOG_LEVELS, help="log level (default info)")
    parser.add_argument("--read-only", action="store_true", default=_env_bool("MCP_READ_ONLY"),
                        help="register only read-only tools")
    parser.add_argument("--version", action="store_true", help="print version information and exit")
    return parser


def parse_providers(parser: argparse.ArgumentParser, values: list[str]) -> tuple[Provider, ...]:
    providers: list[Provider] = []
    for value in values:
        for name in value.split(","):
            if not name.strip():
                continue
            try:
                provider = Provider.parse(name)
            except ValueError as e:
                parser.error(str(e))
            if provider not in providers:
                providers.append(provider)
    return tuple(providers)


def load_config(argv: list[str] | None = None) -> Config:
    """Parse ``argv``. Usage errors exit with status 2; invalid values raise ConfigError."""
    parser = build_parser()
    args = parser.parse_args(argv)

    warnings: list[str] = []
    port = args.http_port
    if args.port is not None:
        warnings.append("--port is deprecated, use --http-port")
        if port is None:
            port = args.port

    http = HTTPConfig(
        port=8080 if port is None else port,
        read_timeout=args.http_read_timeout,
        write_timeout=args.http_write_timeout,
        shutdown_timeout=args.http_shutdown_timeout,
    )
    return Config(
        transport=select_transport(args.stdio, args.http_port),
        http=http,
        providers=parse_providers(parser, args.tools),
        kubeconfig=args.kubeconfig,
        log_level=args.log_level,
        read_only=args.read_only,
        show_version=args.version,
        warnings=tuple(warnings),
    )
