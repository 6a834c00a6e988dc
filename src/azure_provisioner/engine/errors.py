"""Exceptions raised by the engine and the Azure resource handlers.

Everything derives from :class:`EngineError`. The CLI maps each family to a
one-line message in :mod:`azure_provisioner.cli.errors`.
"""

from __future__ import annotations

from typing import Any


class EngineError(Exception):
    """Base class for every azure-provisioner failure outside config loading."""


# Configuration / graph problems, detected before anything touches Azure.


class UnknownResourceTypeError(EngineError):
    def __init__(self, resource_type: str) -> None:
        self.resource_type = resource_type
        super().__init__(f"Unknown resource type: {resource_type}")


class DuplicateAddressError(EngineError):
    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"Duplicate resource address: {address}")


class DependencyCycleError(EngineError):
    """``depends_on`` forms a cycle; ``addresses`` lists the nodes left unsorted."""

    def __init__(self, addresses: list[str]) -> None:
        self.addresses = addresses
        detail = f": {', '.join(addresses)}" if addresses else ""
        super().__init__(f"Dependency cycle detected{detail}")


class ValidationError(EngineError):
    """Collects every per-resource validation message so they are reported together."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("Validation failed:\n" + "\n".join(f"  - {e}" for e in errors))


# State file.


class StateSubscriptionMismatchError(EngineError):
    def __init__(self, expected: str, got: str) -> None:
        self.expected = expected
        self.got = got
        super().__init__(f"State subscription_id mismatch: expected {expected}, got {got}")


class StateUpgradeError(EngineError):
    """A stored instance could not be migrated to its type's current schema version."""

    def __init__(self, address: str, from_version: int, message: str) -> None:
        self.address = address
        self.from_version = from_version
        super().__init__(
            f"Failed to upgrade {address} from schema version {from_version}: {message}"
        )


class StateLockError(EngineError):
    """The state lock file could not be acquired or released."""


class StalePlanError(EngineError):
    """The state file changed after the plan was computed."""


# Remote objects.


class ResourceAlreadyExistsError(EngineError):
    """Create found an object Azure already has; it must be imported first."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f'A resource with the ID "{resource_id}" already exists - to be managed '
            f"it needs to be imported into the state. Run "
            f"`azure-provisioner import {resource_type}.<name> {resource_id}`."
        )


class ResourceIdParseError(EngineError):
    def __init__(self, resource_id: str, reason: str) -> None:
        self.resource_id = resource_id
        self.reason = reason
        super().__init__(f"Cannot parse resource ID {resource_id!r}: {reason}")


class MalformedResponseError(EngineError):
    """An Azure response is missing a field the handler relies on."""


class ConvergenceTimeoutError(EngineError):
    def __init__(self, target: str, last_state: str, timeout: float) -> None:
        self.target = target
        self.last_state = last_state
        self.timeout = timeout
        super().__init__(
            f"timeout while waiting for state to become '{target}' "
            f"(last state: '{last_state}', timeout: {timeout:g}s)"
        )


class ResourceImportError(EngineError):
    """``import`` could not attach the remote object to an address."""


# Apply.


class ApplyError(EngineError):
    """An operation failed part-way through an apply.

    ``result`` holds the changes that completed (and were persisted) before
    the failure; the handler's exception is the ``__cause__``.
    """

    def __init__(self, *, applied: list[Any], address: str, message: str) -> None:
        from azure_provisioner.engine.types import ApplyResult

        self.address = address
        self.result = ApplyResult(applied=applied)
        super().__init__(f"Apply failed on {address}: {message}")


class ApplyCanceled(EngineError):
    """Apply was interrupted (Ctrl-C); completed changes are already in state."""
