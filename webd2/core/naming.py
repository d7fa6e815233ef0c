"""Naming conventions for entity types and their foreign keys."""

import re

# Splits "userGroup", "user-group", "UserGroup", "GrpID" and "user_post2" into words.
_WORD_PATTERN = re.compile(r"[A-Z]{2,}(?=[A-Z][a-z]+[0-9]*|\b|[0-9_-])|[A-Z]?[a-z]+[0-9]*|[A-Z]+|[0-9]+")


def camel_case(name: str) -> str:
    """Convert an entity or field name to camelCase.

    Examples:
        >>> camel_case("user-group")
        'userGroup'
        >>> camel_case("UserGroup")
        'userGroup'
    """
    words = _WORD_PATTERN.findall(name or "")
    if not words:
        return ""
    first, rest = words[0].lower(), words[1:]
    return first + "".join(word[:1].upper() + word[1:].lower() for word in rest)


def foreign_key(name: str) -> str:
    """Default foreign key alias for an entity type: camelCase name + "Id"."""
    return f"{camel_case(name)}Id"
