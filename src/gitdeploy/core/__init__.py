"""Core utilities and shared components for gitdeploy."""

# Note: Import context lazily to avoid circular imports
# Use: from gitdeploy.core.context import GitDeployContext, pass_context
from gitdeploy.core.exceptions import (
    GitDeployError,
    ConfigError,
    GatewayConnectionError,
    RemoteCommandFailure,
    TagResolutionFailure,
    CompensationFailure,
    TransactionRolledBack,
)
from gitdeploy.core.output import OutputFormatter

__all__ = [
    "GitDeployError",
    "ConfigError",
    "GatewayConnectionError",
    "RemoteCommandFailure",
    "TagResolutionFailure",
    "CompensationFailure",
    "TransactionRolledBack",
    "OutputFormatter",
]
