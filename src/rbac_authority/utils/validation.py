"""Input validation utilities."""

import re

# Table prefix: letters, digits, underscores; must not start with a digit
TABLE_PREFIX_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

MAX_NAME_LENGTH = 255

# User ids are stored as a signed 64-bit INTEGER
MAX_USER_ID = 2**63 - 1


def validate_table_prefix(value: str, max_length: int = 32) -> str:
    """Validate a table name prefix.

    The prefix is interpolated into DDL and queries, so only plain SQL
    identifier characters are allowed. An empty prefix is valid.

    Args:
        value: The prefix to validate
        max_length: Maximum allowed length

    Returns:
        The validated prefix

    Raises:
        ValueError: If the prefix is invalid
    """
    if value == "":
        return value

    if len(value) > max_length:
        raise ValueError(f"tables_prefix exceeds maximum length of {max_length}")

    if not TABLE_PREFIX_RE.match(value):
        raise ValueError(
            "Invalid tables_prefix: must start with a letter or underscore and "
            "contain only letters, digits, and underscores"
        )

    return value


def validate_name(value: str, name: str = "name", max_length: int = MAX_NAME_LENGTH) -> str:
    """Validate a role or permission name.

    Args:
        value: The name to validate
        name: Name of the field for error messages
        max_length: Maximum allowed length

    Returns:
        The validated name (unchanged)

    Raises:
        ValueError: If the name is empty, blank, or too long
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} cannot be empty")

    if len(value) > max_length:
        raise ValueError(f"{name} exceeds maximum length of {max_length}")

    return value


def validate_user_id(user_id: int) -> int:
    """Validate an external user identifier.

    Raises:
        ValueError: If the id is not an integer in 0..MAX_USER_ID
    """
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise ValueError(f"user_id must be an integer, got {type(user_id).__name__}")

    if user_id < 0:
        raise ValueError("user_id cannot be negative")

    if user_id > MAX_USER_ID:
        raise ValueError(f"user_id exceeds maximum of {MAX_USER_ID}")

    return user_id
