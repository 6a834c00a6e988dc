"""Plan and apply engine for Azure resources."""

from azure_provisioner.engine.engine import AzureEngine
from azure_provisioner.engine.errors import (
    ApplyCanceled,
    ApplyError,
    ConvergenceTimeoutError,
    DependencyCycleError,
    DuplicateAddressError,
    EngineError,
    MalformedResponseError,
    ResourceAlreadyExistsError,
    ResourceIdParseError,
    ResourceImportError,
    StalePlanError,
    StateLockError,
    StateSubscriptionMismatchError,
    StateUpgradeError,
    UnknownResourceTypeError,
    ValidationError,
)
from azure_provisioner.engine.handlers import (
    EngineContext,
    PlanContext,
    ResourceHandler,
    Timeouts,
)
from azure_provisioner.engine.registry import ResourceTypeRegistration, ResourceTypeRegistry
from azure_provisioner.engine.types import Action, ApplyResult, Plan, PlanMetadata, ResourceChange

__all__ = [
    "Action",
    "ApplyCanceled",
    "ApplyError",
    "ApplyResult",
    "AzureEngine",
    "ConvergenceTimeoutError",
    "DependencyCycleError",
    "DuplicateAddressError",
    "EngineContext",
    "EngineError",
    "MalformedResponseError",
    "Plan",
    "PlanContext",
    "PlanMetadata",
    "ResourceAlreadyExistsError",
    "ResourceChange",
    "ResourceHandler",
    "ResourceIdParseError",
    "ResourceImportError",
    "ResourceTypeRegistration",
    "ResourceTypeRegistry",
    "StalePlanError",
    "StateLockError",
    "StateSubscriptionMismatchError",
    "StateUpgradeError",
    "Timeouts",
    "UnknownResourceTypeError",
    "ValidationError",
]
