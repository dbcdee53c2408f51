"""
Custom exceptions for Tollgate.

This module defines the exception hierarchy for the library. Structural
problems (configuration, malformed input, unmapped morph keys) are raised
early and loudly; a plain "not allowed" answer is never an exception,
except from the explicit authorize-or-raise entry points.
"""

from __future__ import annotations

from typing import Any


class TollgateError(Exception):
    """
    Base exception for all Tollgate errors.

    All Tollgate-specific exceptions inherit from this class,
    making it easy to catch any library-related error.

    Attributes:
        message: Human-readable error description.
        details: Additional context about the error.

    Example:
        >>> try:
        ...     tollgate.allow(user).to("edit", unsaved_post)
        ... except TollgateError as e:
        ...     logger.error(f"Tollgate error: {e}")
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class AuthorizationError(TollgateError):
    """
    Raised when an authority is not authorized to perform an ability.

    This is the only error that represents a normal business outcome.
    It is raised by ``Tollgate.authorize()`` and ``Gate.authorize()``,
    never by the boolean ``can``/``cannot`` checks.

    Attributes:
        ability: The ability that was checked (e.g., "edit").
        subject: The subject the ability was checked against, if any.
        authority: The authority that was checked, if known.
        reason: Explanation of why authorization was denied.

    Example:
        >>> raise AuthorizationError(
        ...     ability="delete",
        ...     subject=post,
        ...     authority=user,
        ...     reason="No ability grants 'delete' on this post",
        ... )
    """

    def __init__(
        self,
        ability: str,
        subject: Any = None,
        authority: Any = None,
        reason: str | None = None,
    ) -> None:
        self.ability = ability
        self.subject = subject
        self.authority = authority
        self.reason = reason or "This action is unauthorized."

        message = f"Authorization denied for '{ability}'"
        if subject is not None:
            message += f" on {_describe(subject)}"
        message += f". Reason: {self.reason}"

        details = {
            "ability": ability,
            "subject": _describe(subject) if subject is not None else None,
            "authority": _describe(authority) if authority is not None else None,
            "reason": self.reason,
        }
        super().__init__(message, details)


class ConfigurationError(TollgateError):
    """
    Raised when there's a configuration problem.

    Configuration errors are raised eagerly while the library is being
    set up, never deferred into a check call.

    Attributes:
        config_key: The configuration key with the problem.
        expected: What was expected.
        received: What was actually received.

    Example:
        >>> raise ConfigurationError(
        ...     config_key="morph_key_map",
        ...     expected="either morph_key_map or enforce_morph_key_map",
        ...     received="both",
        ... )
    """

    def __init__(
        self,
        config_key: str,
        expected: str | None = None,
        received: Any = None,
    ) -> None:
        self.config_key = config_key
        self.expected = expected
        self.received = received

        message = f"Configuration error for '{config_key}'"
        if expected:
            message += f": expected {expected}"
        if received is not None:
            message += f", got {received!r}"

        details = {
            "config_key": config_key,
            "expected": expected,
            "received": str(received) if received is not None else None,
        }
        super().__init__(message, details)


class MorphKeyViolation(TollgateError):
    """
    Raised when an entity type is missing from an enforced morph key map.

    Callers may catch it and fall back; the library never swallows it.

    Attributes:
        entity_type: The morph type that has no mapped key attribute.
    """

    def __init__(self, entity_type: str) -> None:
        self.entity_type = entity_type
        super().__init__(
            f"No morph key mapping is defined for [{entity_type}]",
            {"entity_type": entity_type},
        )


class PolicyNotFoundError(TollgateError):
    """
    Raised when a policy is requested for a subject type with none registered.

    Attributes:
        resource: The morph type that has no policy.
        available_policies: Registered morph types (for debugging).
    """

    def __init__(self, resource: str, available_policies: list[str] | None = None) -> None:
        self.resource = resource
        self.available_policies = available_policies or []

        message = f"No policy found for resource '{resource}'"
        if available_policies:
            message += f". Available policies: {', '.join(available_policies)}"

        super().__init__(message, {"resource": resource, "available_policies": self.available_policies})


class InvalidArgumentError(TollgateError, ValueError):
    """
    Raised immediately at the point of malformed input.

    Covers bad logical operators, malformed constraint data, unrecognized
    role identifiers and writes that target unsaved model instances.

    Attributes:
        argument: Name of the offending argument, if known.
    """

    def __init__(self, message: str, argument: str | None = None) -> None:
        self.argument = argument
        details = {"argument": argument} if argument else None
        super().__init__(message, details)


def _describe(value: Any) -> str:
    """Short, log-friendly description of an entity, class or literal."""
    if isinstance(value, str):
        return value
    if isinstance(value, type):
        return value.__name__
    key = getattr(value, "id", None)
    if key is not None:
        return f"{type(value).__name__}#{key}"
    return type(value).__name__
