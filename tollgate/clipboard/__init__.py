"""
Permission resolution for Tollgate.

Example:
    >>> from tollgate.clipboard import CachedClipboard, Clipboard
    >>>
    >>> clipboard = CachedClipboard(store)
    >>> clipboard.check_get_id(user, "edit", post)
    3
"""

from tollgate.clipboard.base import ROLE_CHECK_MODES, BaseClipboard
from tollgate.clipboard.cached import CachedClipboard
from tollgate.clipboard.clipboard import Clipboard

__all__ = [
    "BaseClipboard",
    "CachedClipboard",
    "Clipboard",
    "ROLE_CHECK_MODES",
]
