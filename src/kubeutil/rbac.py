"""Idempotent ClusterRoleBinding apply.

The manifest is fed to ``kubectl apply -f -`` over stdin, so the call can be
repeated without checking whether the binding already exists.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import yaml

from .errors import ApplyError, CommandError
from .kubectl import Kubectl
from .logging import ensure_logger
from .utils import non_empty_lines


@dataclass(frozen=True)
class BindingTarget:
    """Binds a ServiceAccount to a ClusterRole."""

    name: str
    cluster_role: str
    namespace: str
    service_account: str


def cluster_role_binding_manifest(target: BindingTarget) -> dict[str, Any]:
    """Build the ClusterRoleBinding manifest for target."""
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "ClusterRoleBinding",
        "metadata": {"name": target.name},
        "roleRef": {
            "apiGroup": "rbac.authorization.k8s.io",
            "kind": "ClusterRole",
            "name": target.cluster_role,
        },
        "subjects": [
            {
                "kind": "ServiceAccount",
                "name": target.service_account,
                "namespace": target.namespace,
            }
        ],
    }


def render_manifest(manifest: dict[str, Any]) -> str:
    """Render a manifest as a single YAML document."""
    return yaml.safe_dump(manifest, default_flow_style=False, sort_keys=False)


async def apply_cluster_role_binding(
    name: str,
    cluster_role: str,
    namespace: str,
    service_account: str,
    *,
    kubectl: Kubectl | None = None,
    logger: Any | None = None,
) -> str:
    """Apply a ClusterRoleBinding for a ServiceAccount.

    Safe to call repeatedly: ``kubectl apply`` creates the binding the first
    time and is a no-op (or an in-place update) afterwards. No retry is done
    here.

    Args:
        name: ClusterRoleBinding name.
        cluster_role: ClusterRole to bind.
        namespace: ServiceAccount namespace.
        service_account: ServiceAccount name.
        kubectl: kubectl wrapper (plain ``kubectl`` with DefaultRunner if not given).
        logger: Optional structlog logger.

    Returns:
        kubectl stdout.

    Raises:
        ApplyError: kubectl apply failed.
    """
    log = ensure_logger(logger)
    kubectl = kubectl or Kubectl()
    target = BindingTarget(name, cluster_role, namespace, service_account)

    log.info(
        "apply ClusterRoleBinding",
        name=name,
        role=cluster_role,
        sa=f"{namespace}/{service_account}",
    )

    manifest = render_manifest(cluster_role_binding_manifest(target))

    try:
        stdout = await kubectl.run("apply", "-f", "-", stdin=manifest, logger=logger)
    except CommandError as e:
        for line in non_empty_lines(e.stdout):
            log.info(line)
        raise ApplyError(f"kubectl apply clusterrolebinding failed: {e}") from e

    for line in non_empty_lines(stdout):
        log.info(line)
    return stdout


def apply_cluster_role_binding_sync(
    name: str,
    cluster_role: str,
    namespace: str,
    service_account: str,
    *,
    kubectl: Kubectl | None = None,
    logger: Any | None = None,
) -> str:
    """Synchronous wrapper for apply_cluster_role_binding."""
    return asyncio.run(
        apply_cluster_role_binding(
            name,
            cluster_role,
            namespace,
            service_account,
            kubectl=kubectl,
            logger=logger,
        )
    )
