"""
Integration test fixtures — require the collaborator CLIs and a reachable cluster.
"""

from __future__ import annotations

import shutil
import subprocess

import pytest


def _cluster_reachable() -> bool:
    if shutil.which("kubectl") is None:
        return False
    try:
        result = subprocess.run(
            ["kubectl", "cluster-info", "--request-timeout=5s"],
            capture_output=True,
            timeout=10,
        )
        return result.returncode == 0
    except (OSError, subprocess.TimeoutExpired):
        return False


skip_no_cluster = pytest.mark.skipif(
    not _cluster_reachable(),
    reason="cluster not reachable, skipping integration tests",
)

skip_no_helm = pytest.mark.skipif(
    shutil.which("helm") is None,
    reason="helm not on PATH",
)
