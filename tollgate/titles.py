"""
Human-readable titles for roles and abilities.

Titles are derived when a role or ability is created without one.

Example:
    >>> humanize("siteAdmin")
    'Site admin'
    >>> humanize("site-admin")
    'Site admin'
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from tollgate.types import WILDCARD

if TYPE_CHECKING:
    from tollgate.database.models import Ability

_LOWER_WORD = re.compile(r"[a-z]+")
_BEFORE_UPPER = re.compile(r"(.)(?=[A-Z])")
_SEPARATORS = re.compile(r"[-_]+")
_HASHES = re.compile(r"([^ ])#+")


def snake(value: str, delimiter: str = "_") -> str:
    """
    Convert a string to snake case.

    Strings made only of lowercase letters are returned untouched;
    everything else gets the delimiter inserted before each capital.
    """
    if _LOWER_WORD.fullmatch(value):
        return value
    value = re.sub(r"\s+", "", value[:1].upper() + value[1:])
    return _BEFORE_UPPER.sub(lambda m: m.group(1) + delimiter, value).lower()


def humanize(value: str) -> str:
    """
    Turn an identifier into a sentence-cased label.

    snake_case, kebab-case, camelCase and StudlyCase all normalize to
    space-separated words with only the first letter capitalized.
    """
    value = value.replace(" ", "_")
    value = snake(value)
    value = _SEPARATORS.sub(" ", value)
    value = _HASHES.sub(r"\1 #", value)
    return value[:1].upper() + value[1:]


def pluralize(word: str) -> str:
    """Pluralize a lowercase English noun."""
    if not word:
        return word
    if re.search(r"[^aeiou]y$", word):
        return word[:-1] + "ies"
    if re.search(r"(s|x|z|ch|sh)$", word):
        return word + "es"
    return word + "s"


def basename(morph_type: str) -> str:
    """Return the lowercase, space-separated short name of a morph type."""
    short = morph_type.rsplit(".", 1)[-1].rsplit("\\", 1)[-1]
    return snake(short, " ").replace("_", " ")


def role_title(name: str) -> str:
    return humanize(name)


def ability_title(ability: Ability) -> str:
    """
    Derive the title of an ability from its shape.

    Args:
        ability: The ability whose name, subject and ownership flag
            determine the title.

    Returns:
        A label such as "All abilities", "Create users" or
        "Delete user #2".
    """
    name = ability.name
    subject_type = ability.subject_type
    subject_id = ability.subject_id
    owned = ability.only_owned

    if name == WILDCARD and subject_type == WILDCARD:
        return "Manage everything owned" if owned else "All abilities"

    if subject_type is None:
        if name == WILDCARD:
            return "All simple abilities"
        return humanize(name)

    if subject_type == WILDCARD:
        if owned:
            return humanize(f"{name} everything owned")
        return humanize(f"{name} everything")

    label = basename(subject_type)
    verb = "Manage" if name == WILDCARD else humanize(name)

    if subject_id is not None:
        return f"{verb} {label} #{subject_id}"

    title = f"{verb} {pluralize(label)}"
    if owned:
        title += " owned"
    return title
