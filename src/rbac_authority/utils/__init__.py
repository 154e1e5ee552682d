"""Utility modules."""

from rbac_authority.utils.validation import (
    validate_name,
    validate_table_prefix,
    validate_user_id,
)

__all__ = ["validate_name", "validate_table_prefix", "validate_user_id"]
