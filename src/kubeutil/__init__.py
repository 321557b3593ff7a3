"""kubeutil - kubectl helpers for e2e suites."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("kubeutil")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"  # Fallback for source checkouts without metadata

from .errors import (
    ApplyError,
    CommandError,
    EmptyTokenError,
    InvalidCommandError,
    KubeutilError,
    TokenDeadlineExceeded,
    TokenError,
    TokenParseError,
    TokenRequestCancelled,
    TokenRequestError,
    TokenUnavailableError,
)
from .kubectl import Kubectl
from .rbac import (
    BindingTarget,
    apply_cluster_role_binding,
    apply_cluster_role_binding_sync,
    cluster_role_binding_manifest,
)
from .runner import CommandRequest, CommandRunner, DefaultRunner, build_env
from .token import TokenPoller, parse_token_response, service_account_token

__all__ = [
    "__version__",
    # Runner
    "CommandRequest",
    "CommandRunner",
    "DefaultRunner",
    "build_env",
    "Kubectl",
    # RBAC
    "BindingTarget",
    "cluster_role_binding_manifest",
    "apply_cluster_role_binding",
    "apply_cluster_role_binding_sync",
    # Tokens
    "TokenPoller",
    "parse_token_response",
    "service_account_token",
    # Errors
    "KubeutilError",
    "InvalidCommandError",
    "CommandError",
    "ApplyError",
    "TokenError",
    "TokenRequestError",
    "TokenParseError",
    "EmptyTokenError",
    "TokenUnavailableError",
    "TokenDeadlineExceeded",
    "TokenRequestCancelled",
]
