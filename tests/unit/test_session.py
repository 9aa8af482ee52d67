"""Unit tests for blockflow.session."""

from __future__ import annotations

import pytest

from blockflow.config import Settings, StalenessMode
from blockflow.models import BlockStatus, SemanticType
from blockflow.session import PipelineSession

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _session(engine, **settings: object) -> PipelineSession:
    return PipelineSession(settings=Settings(**settings), engine=engine)


def _build_chain(session: PipelineSession) -> tuple[str, str, str]:
    load = session.add_block("load", {"table_name": "sales"})
    flt = session.add_block("filter", {"column": "amount", "operator": ">", "value": 100})
    chart = session.add_block("chart", {"x_axis": "region", "y_axis": "amount"})
    session.connect(load, flt)
    session.connect(flt, chart)
    return load, flt, chart


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_injected_engine_not_closed(self, fake_engine):
        session = _session(fake_engine)
        session.close()
        assert fake_engine.closed is False

    @pytest.mark.asyncio
    async def test_async_context_manager(self, fake_engine):
        async with _session(fake_engine) as session:
            session.add_block("load")
        assert len(session.blocks) == 1

    def test_sessions_are_independent(self, fake_engine):
        first = _session(fake_engine)
        second = _session(fake_engine)
        first.add_block("load")
        assert second.blocks == []

    def test_settings_flow_into_components(self, fake_engine):
        session = _session(fake_engine, staleness_mode="reachability")
        assert session.staleness.mode is StalenessMode.REACHABILITY


# ---------------------------------------------------------------------------
# Editing and execution
# ---------------------------------------------------------------------------


class TestEditing:
    @pytest.mark.asyncio
    async def test_remove_block_drops_result(self, fake_engine):
        session = _session(fake_engine)
        load, flt, _ = _build_chain(session)
        await session.execute(load)
        assert session.get_result(flt) is not None

        session.remove_block(flt)

        assert session.get_result(flt) is None
        assert session.get_result(load) is not None

    @pytest.mark.asyncio
    async def test_drop_output_removes_derived_table(self, fake_engine):
        session = _session(fake_engine)
        load, flt, _ = _build_chain(session)
        await session.execute(load)

        await session.drop_output(flt)
        await session.drop_output(load)

        assert "temp_b2" not in fake_engine.tables
        assert "sales" in fake_engine.tables
        assert session.get_block(flt).output_table is None

    def test_update_config_accepts_mapping_and_kwargs(self, fake_engine):
        session = _session(fake_engine)
        load, flt, chart = _build_chain(session)

        stale = session.update_config(flt, {"column": "price"}, value=10)

        config = session.get_block(flt).config
        assert config.column == "price"
        assert config.value == 10
        assert stale == [chart]

    def test_duplicate_and_move(self, fake_engine):
        session = _session(fake_engine)
        load, flt, chart = _build_chain(session)
        copy = session.duplicate_block(flt)
        session.move_block(copy, 0)
        assert [b.id for b in session.blocks] == [copy, load, flt, chart]

    def test_disconnect(self, fake_engine):
        session = _session(fake_engine)
        load, flt, _ = _build_chain(session)
        assert session.disconnect(flt) == load
        assert session.graph.upstream_of(flt) is None


class TestExecution:
    @pytest.mark.asyncio
    async def test_load_csv_then_execute(self, fake_engine):
        session = _session(fake_engine)
        columns = await session.load_csv("people", "name,city\nada,london\nalan,wilmslow\n")
        assert [c.name for c in columns] == ["name", "city"]
        assert columns[0].semantic_type == SemanticType.STRING

        load = session.add_block("load", {"table_name": "people", "file_name": "people.csv"})
        report = await session.execute(load)

        assert report.succeeded
        assert session.get_result(load).row_count == 2

    @pytest.mark.asyncio
    async def test_edit_then_reexecute(self, fake_engine):
        """Editing a block stales later blocks; re-running it clears only itself without cascade."""
        session = _session(fake_engine)
        load, flt, chart = _build_chain(session)
        await session.execute(load)

        session.update_config(flt, value=200)
        assert session.get_block(chart).is_stale is True

        await session.execute(flt, cascade=False)
        assert session.get_block(flt).is_stale is False
        assert session.get_block(chart).is_stale is True

        await session.execute(chart)
        assert session.get_block(chart).is_stale is False

    @pytest.mark.asyncio
    async def test_run_history_accumulates(self, fake_engine):
        session = _session(fake_engine)
        load, _, _ = _build_chain(session)
        await session.execute(load)
        await session.run_all()
        assert len(session.run_history) == 6

    @pytest.mark.asyncio
    async def test_run_all(self, fake_engine):
        session = _session(fake_engine)
        _build_chain(session)
        report = await session.run_all()
        assert report.succeeded
        assert all(b.status == BlockStatus.SUCCESS for b in session.blocks)
