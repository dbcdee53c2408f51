"""
Ownership strategies.

An ability flagged ``only_owned`` only applies to subject instances owned
by the checking authority. Ownership is decided per subject type, then by
a global override, then by the default strategy: the subject's
``actor_id``/``actor_type`` pair must equal the authority's identity.

Example:
    >>> ownership = Ownership(resolver)
    >>> ownership.owned_via(Post, "author_id")
    >>> ownership.owned_via(lambda post, user: user.id in post.editor_ids)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from tollgate.entities import EntityResolver

logger = logging.getLogger(__name__)

OwnershipCheck = Callable[[Any, Any], bool]
_GLOBAL = "*"


class Ownership:
    """Registry of ownership overrides and the ownership check itself."""

    def __init__(self, resolver: EntityResolver) -> None:
        self._resolver = resolver
        self._lock = threading.RLock()
        self._strategies: dict[str, str | OwnershipCheck] = {}

    def owned_via(
        self,
        model_or_strategy: type | str | OwnershipCheck,
        strategy: str | OwnershipCheck | None = None,
    ) -> None:
        """
        Register an ownership override.

        With one argument, set the global override: either the subject
        attribute holding the owner's key, or a ``(model, authority)``
        callable. With two arguments, set the override for one subject type.
        """
        with self._lock:
            if strategy is None:
                self._strategies[_GLOBAL] = model_or_strategy  # type: ignore[assignment]
                logger.info(f"Global ownership strategy set to {model_or_strategy!r}")
                return

            morph_type = (
                model_or_strategy
                if isinstance(model_or_strategy, str)
                else self._resolver.type_of(model_or_strategy)
            )
            self._strategies[morph_type] = strategy
            logger.info(f"Ownership strategy for {morph_type} set to {strategy!r}")

    def reset(self) -> None:
        with self._lock:
            self._strategies.clear()

    def is_owned_by(self, authority: Any, model: Any) -> bool:
        """
        Check whether ``model`` is owned by ``authority``.

        Classes, wildcards and missing subjects are never owned.
        """
        if model is None or isinstance(model, (type, str)) or authority is None:
            return False

        strategy = self._strategies.get(self._resolver.type_of(model), self._strategies.get(_GLOBAL))

        if callable(strategy):
            return bool(strategy(model, authority))

        authority_key = self._resolver.key_of(authority)
        if authority_key is None:
            return False

        if isinstance(strategy, str):
            owner = EntityResolver.attribute(model, strategy)
            return owner is not None and str(owner) == str(authority_key)

        owner_id = EntityResolver.attribute(model, "actor_id")
        owner_type = EntityResolver.attribute(model, "actor_type")
        if owner_id is None:
            return False
        return (
            str(owner_id) == str(authority_key)
            and owner_type == self._resolver.type_of(authority)
        )
