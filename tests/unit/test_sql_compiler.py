"""Unit tests for blockflow.compiler.sql_compiler."""

from __future__ import annotations

import pytest
from pydantic import BaseModel

from blockflow.compiler import (
    compile_block,
    escape_literal,
    format_value,
    preview_sql,
    quote_identifier,
)
from blockflow.models import (
    AggregateConfig,
    ChartConfig,
    FilterConfig,
    InsightConfig,
    LoadConfig,
    SortConfig,
)

# ---------------------------------------------------------------------------
# Quoting
# ---------------------------------------------------------------------------


class TestQuoting:
    def test_quote_identifier(self):
        assert quote_identifier("amount") == '"amount"'

    def test_quote_identifier_doubles_quotes(self):
        assert quote_identifier('we"ird') == '"we""ird"'

    def test_escape_literal(self):
        assert escape_literal("o'brien") == "o''brien"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (100, "100"),
            (2.5, "2.5"),
            (True, "TRUE"),
            (False, "FALSE"),
            (None, "NULL"),
            ("north", "'north'"),
            ("it's", "'it''s'"),
        ],
    )
    def test_format_value(self, value, expected):
        assert format_value(value) == expected


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class TestFilter:
    def test_numeric_comparison(self):
        config = FilterConfig(column="amount", operator=">", value=100)
        assert (
            compile_block(config, "t1", "temp_b2")
            == 'CREATE OR REPLACE TABLE temp_b2 AS SELECT * FROM t1 WHERE "amount" > 100'
        )

    def test_contains_escapes_quotes(self):
        config = FilterConfig(column="name", operator="contains", value="o'brien")
        sql = compile_block(config, "t1", "temp_b2")
        assert sql.endswith(""" WHERE "name" LIKE '%o''brien%'""")

    def test_not_contains(self):
        config = FilterConfig(column="name", operator="not contains", value="test")
        sql = compile_block(config, "t1", "temp_b2")
        assert sql.endswith(""" WHERE "name" NOT LIKE '%test%'""")

    def test_string_equality_quoted(self):
        config = FilterConfig(column="region", operator="=", value="north")
        sql = compile_block(config, "t1", "temp_b2")
        assert sql.endswith(""" WHERE "region" = 'north'""")

    @pytest.mark.parametrize("operator", ["=", "!=", ">", "<", ">=", "<="])
    def test_comparison_operators(self, operator):
        config = FilterConfig(column="x", operator=operator, value=1)
        assert compile_block(config, "t1", "temp_b2").endswith(f'WHERE "x" {operator} 1')


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


class TestAggregate:
    def test_group_by_with_alias(self):
        config = AggregateConfig(
            group_by=["region"],
            metrics=[{"column": "sales", "func": "sum", "alias": "total_sales"}],
        )
        assert (
            compile_block(config, "t1", "temp_b3")
            == 'CREATE OR REPLACE TABLE temp_b3 AS SELECT "region", SUM("sales") AS "total_sales" FROM t1 GROUP BY "region"'
        )

    def test_no_group_by_omits_clause(self):
        config = AggregateConfig(metrics=[{"column": "sales", "func": "avg"}])
        sql = compile_block(config, "t1", "temp_b3")
        assert sql == 'CREATE OR REPLACE TABLE temp_b3 AS SELECT AVG("sales") AS "avg_sales" FROM t1'
        assert "GROUP BY" not in sql
        assert sql == sql.strip()

    def test_count_ignores_column(self):
        config = AggregateConfig(group_by=["region"], metrics=[{"column": "id", "func": "count", "alias": "n"}])
        sql = compile_block(config, "t1", "temp_b3")
        assert 'COUNT(*) AS "n"' in sql

    def test_multiple_metrics_and_groups(self):
        config = AggregateConfig(
            group_by=["region", "year"],
            metrics=[
                {"column": "sales", "func": "min"},
                {"column": "sales", "func": "max"},
            ],
        )
        sql = compile_block(config, "t1", "temp_b3")
        assert (
            sql == 'CREATE OR REPLACE TABLE temp_b3 AS SELECT "region", "year", MIN("sales") AS "min_sales", '
            'MAX("sales") AS "max_sales" FROM t1 GROUP BY "region", "year"'
        )


# ---------------------------------------------------------------------------
# Sort / pass-through / load
# ---------------------------------------------------------------------------


class TestOtherTypes:
    def test_sort_desc(self):
        config = SortConfig(column="date", direction="desc")
        assert (
            compile_block(config, "t1", "temp_b4")
            == 'CREATE OR REPLACE TABLE temp_b4 AS SELECT * FROM t1 ORDER BY "date" DESC'
        )

    def test_sort_asc(self):
        sql = compile_block(SortConfig(column="date"), "t1", "temp_b4")
        assert sql.endswith('ORDER BY "date" ASC')

    @pytest.mark.parametrize("config", [ChartConfig(x_axis="a", y_axis="b"), InsightConfig(prompt="why?")])
    def test_passthrough_view(self, config):
        assert compile_block(config, "temp_b3", "temp_b5") == "CREATE OR REPLACE VIEW temp_b5 AS SELECT * FROM temp_b3"

    def test_load_compiles_to_nothing(self):
        assert compile_block(LoadConfig(table_name="sales"), "", "temp_b1") == ""

    def test_unknown_config_type(self):
        class Mystery(BaseModel):
            type: str = "mystery"

        with pytest.raises(TypeError):
            compile_block(Mystery(), "t1", "temp_b1")  # type: ignore[arg-type]

    def test_deterministic(self):
        config = FilterConfig(column="amount", operator=">", value=100)
        assert compile_block(config, "t1", "temp_b2") == compile_block(config, "t1", "temp_b2")


class TestPreviewSql:
    def test_limit(self):
        assert preview_sql("temp_b2", 10) == "SELECT * FROM temp_b2 LIMIT 10"

    def test_default_limit(self):
        assert preview_sql("temp_b2").endswith("LIMIT 100")
