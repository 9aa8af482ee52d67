"""SQL generation for blocks and the statement guard in front of the engine."""

from blockflow.compiler.sql_compiler import (
    DEFAULT_PREVIEW_LIMIT,
    compile_block,
    escape_literal,
    format_value,
    preview_sql,
    quote_identifier,
    quote_literal,
)
from blockflow.compiler.sql_guard import (
    GuardViolation,
    UnsafeSQLError,
    assert_statement_safe,
    check_statement,
)

__all__ = [
    "DEFAULT_PREVIEW_LIMIT",
    "GuardViolation",
    "UnsafeSQLError",
    "assert_statement_safe",
    "check_statement",
    "compile_block",
    "escape_literal",
    "format_value",
    "preview_sql",
    "quote_identifier",
    "quote_literal",
]
