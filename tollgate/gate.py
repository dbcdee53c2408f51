"""
A minimal authorization gate.

The gate runs, in order:

1. ``before`` hooks. The first one returning a non-None answer decides.
2. The policy registered for the first argument's type, or else the
   callback defined for the ability. Either may return None to abstain.
3. ``after`` hooks, which see the answer so far and may only fill in a
   missing one.

With no answer at all, the ability is denied.

Example:
    >>> gate = Gate(resolver)
    >>> gate.define("view-dashboard", lambda user: user.is_staff)
    >>> gate.for_user(user).allows("view-dashboard")
    True
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from tollgate.exceptions import AuthorizationError
from tollgate.policies import PolicyRegistry
from tollgate.types import AuthorizationResult

if TYPE_CHECKING:
    from tollgate.entities import EntityResolver
    from tollgate.policies import Policy

logger = logging.getLogger(__name__)

Hook = Callable[["GateCall"], Any]


@dataclass
class GateCall:
    """
    One ability check as seen by the gate's hooks.

    Attributes:
        user: The authority being checked.
        ability: The ability name.
        arguments: Positional arguments of the check; the first is
            usually the subject.
        context: Context entity the check runs within, if any.
        result: The answer so far; always None inside ``before`` hooks.
    """

    user: Any
    ability: str
    arguments: tuple[Any, ...] = ()
    context: Any = None
    result: AuthorizationResult | None = None
    evaluated: list[str] = field(default_factory=list)

    @property
    def subject(self) -> Any:
        return self.arguments[0] if self.arguments else None


class Gate:
    """
    Ability callbacks, policies and hooks.

    Attributes:
        policies: Registry of subject policies.
    """

    def __init__(self, resolver: EntityResolver, user_resolver: Callable[[], Any] | None = None) -> None:
        self.resolver = resolver
        self.policies = PolicyRegistry(resolver)
        self._abilities: dict[str, Callable[..., Any]] = {}
        self._before: list[Hook] = []
        self._after: list[Hook] = []
        self._user_resolver = user_resolver or (lambda: None)
        self._lock = threading.RLock()

    # ==================== Registration ====================

    def define(self, ability: str, callback: Callable[..., Any]) -> Gate:
        """
        Define an ability callback, called as ``callback(user, *arguments)``.

        The callback may return True, False or None (no opinion).
        """
        with self._lock:
            self._abilities[ability] = callback
        logger.debug(f"Defined gate ability '{ability}'")
        return self

    def has(self, ability: str) -> bool:
        return ability in self._abilities

    def policy(self, model: Any, policy_class: type[Policy]) -> Gate:
        self.policies.register(model, policy_class)
        return self

    def before(self, callback: Hook) -> Gate:
        with self._lock:
            self._before.append(callback)
        return self

    def after(self, callback: Hook) -> Gate:
        with self._lock:
            self._after.append(callback)
        return self

    def for_user(self, user: Any) -> Gate:
        """Return a gate sharing this one's rules but bound to ``user``."""
        gate = Gate.__new__(Gate)
        gate.resolver = self.resolver
        gate.policies = self.policies
        gate._abilities = self._abilities
        gate._before = self._before
        gate._after = self._after
        gate._user_resolver = lambda: user
        gate._lock = self._lock
        return gate

    # ==================== Checks ====================

    def inspect(self, ability: str, *arguments: Any, context: Any = None) -> AuthorizationResult:
        """Run the full check and return the decision with its reason."""
        user = self._user_resolver()
        if user is None:
            return AuthorizationResult.deny(reason="No authority to check.")

        call = GateCall(user=user, ability=ability, arguments=tuple(arguments), context=context)

        call.result = self._call_hooks(self._before, call, "before")
        if call.result is None:
            call.result = self._call_ability(call)
        for hook in list(self._after):
            name = _hook_name(hook)
            call.evaluated.append(name)
            answer = _normalize(hook(call), name)
            if call.result is None and answer is not None:
                call.result = answer

        if call.result is None:
            logger.debug(f"No rule answered '{ability}' for {user!r}; denying")
            return AuthorizationResult.deny(policies=call.evaluated)

        call.result.policies_evaluated = call.evaluated
        return call.result

    def allows(self, ability: str, *arguments: Any, context: Any = None) -> bool:
        return self.inspect(ability, *arguments, context=context).allowed

    def denies(self, ability: str, *arguments: Any, context: Any = None) -> bool:
        return not self.allows(ability, *arguments, context=context)

    def any(self, abilities: Iterable[str], *arguments: Any, context: Any = None) -> bool:
        return any(self.allows(ability, *arguments, context=context) for ability in abilities)

    def check(self, abilities: Iterable[str] | str, *arguments: Any, context: Any = None) -> bool:
        """True only if every ability is allowed."""
        if isinstance(abilities, str):
            abilities = [abilities]
        return all(self.allows(ability, *arguments, context=context) for ability in abilities)

    def authorize(self, ability: str, *arguments: Any, context: Any = None) -> AuthorizationResult:
        """
        Check an ability and raise if it is denied.

        Raises:
            AuthorizationError: If the ability is denied.
        """
        result = self.inspect(ability, *arguments, context=context)
        if not result.allowed:
            raise AuthorizationError(
                ability=ability,
                subject=arguments[0] if arguments else None,
                authority=self._user_resolver(),
                reason=result.reason,
            )
        return result

    # ==================== Internals ====================

    def _call_hooks(self, hooks: list[Hook], call: GateCall, stage: str) -> AuthorizationResult | None:
        for hook in list(hooks):
            name = _hook_name(hook)
            call.evaluated.append(name)
            answer = _normalize(hook(call), name)
            if answer is not None:
                logger.debug(f"{stage} hook {name} answered '{call.ability}': {answer.allowed}")
                return answer
        return None

    def _call_ability(self, call: GateCall) -> AuthorizationResult | None:
        policy_class = self.policies.policy_for(call.subject) if call.arguments else None
        if policy_class is not None:
            policy = policy_class(call.user, call.subject)
            call.evaluated.append(policy_class.__name__)
            answer = policy.authorize(
                call.ability.replace("-", "_"),
                {"arguments": call.arguments[1:], "context": call.context},
            )
            return _normalize(answer, policy_class.__name__)

        callback = self._abilities.get(call.ability)
        if callback is None:
            return None

        call.evaluated.append(call.ability)
        return _normalize(callback(call.user, *call.arguments), call.ability)


def _normalize(answer: Any, source: str) -> AuthorizationResult | None:
    if answer is None or isinstance(answer, AuthorizationResult):
        return answer
    if answer:
        return AuthorizationResult.allow(reason=f"Allowed by {source}")
    return AuthorizationResult.deny(reason=f"Denied by {source}")


def _hook_name(hook: Any) -> str:
    return getattr(hook, "__qualname__", None) or type(hook).__name__
