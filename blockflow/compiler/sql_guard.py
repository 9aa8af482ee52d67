"""Statement guard -- AST-based allow-list for compiled block SQL.

Every statement the orchestrator sends to the engine is produced by the
compiler, so the set of legitimate shapes is tiny: a single ``CREATE [OR
REPLACE] TABLE|VIEW ... AS SELECT``.  The guard parses each statement with
:mod:`sqlglot` and rejects anything else before it reaches the engine, so
a malformed identifier or value that slipped past quoting can never turn
into a second statement or a destructive one.

Detection is structural (AST), never regex on raw SQL text.
"""

from __future__ import annotations

import logging

import sqlglot
from pydantic import BaseModel, Field
from sqlglot import exp
from sqlglot.errors import ParseError

logger = logging.getLogger(__name__)

_ALLOWED_KINDS: frozenset[str] = frozenset({"TABLE", "VIEW"})


class GuardViolation(BaseModel):
    """A single reason a statement was rejected."""

    rule: str = Field(description="Short machine-readable rule name.")
    description: str = Field(description="Human-readable explanation.")


class UnsafeSQLError(Exception):
    """Raised when a statement is not a single CREATE ... AS SELECT."""

    def __init__(self, violations: list[GuardViolation]) -> None:
        self.violations = violations
        descriptions = "; ".join(v.description for v in violations)
        super().__init__(f"Unsafe SQL rejected: {descriptions}")


def check_statement(sql: str, dialect: str = "duckdb") -> list[GuardViolation]:
    """Return the violations found in *sql*; an empty list means it is allowed."""
    try:
        statements = [s for s in sqlglot.parse(sql, read=dialect) if s is not None]
    except ParseError as exc:
        return [
            GuardViolation(
                rule="UNPARSEABLE",
                description=f"Statement could not be parsed: {exc}",
            )
        ]

    if len(statements) != 1:
        return [
            GuardViolation(
                rule="STATEMENT_COUNT",
                description=f"Expected exactly one statement, found {len(statements)}",
            )
        ]

    statement = statements[0]
    violations: list[GuardViolation] = []
    if not isinstance(statement, exp.Create):
        violations.append(
            GuardViolation(
                rule="NOT_CREATE",
                description=f"Only CREATE statements are allowed, got {statement.key.upper()}",
            )
        )
        return violations

    kind = str(statement.args.get("kind") or "").upper()
    if kind not in _ALLOWED_KINDS:
        violations.append(
            GuardViolation(
                rule="CREATE_KIND",
                description=f"Only CREATE TABLE or CREATE VIEW is allowed, got CREATE {kind}",
            )
        )
    if not isinstance(statement.expression, exp.Query):
        violations.append(
            GuardViolation(
                rule="NOT_CTAS",
                description="CREATE must be of the form CREATE ... AS SELECT",
            )
        )
    return violations


def assert_statement_safe(sql: str, *, enabled: bool = True) -> None:
    """Raise :class:`UnsafeSQLError` if *sql* is not an allowed statement.

    Parameters
    ----------
    sql:
        Compiled block statement.
    enabled:
        Master switch; when ``False`` the statement is not inspected.
    """
    if not enabled:
        return
    violations = check_statement(sql)
    if violations:
        logger.error(
            "Statement guard blocked execution: %s",
            "; ".join(v.rule for v in violations),
        )
        raise UnsafeSQLError(violations)
