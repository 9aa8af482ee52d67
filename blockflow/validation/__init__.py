"""Block configuration validation."""

from blockflow.validation.validator import check_block, validate_block

__all__ = ["check_block", "validate_block"]
