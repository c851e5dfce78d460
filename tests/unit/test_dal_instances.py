"""Unit tests for the instance DAL: SqlInstanceRepository and SqlWorkflowStore.

Repository methods are exercised against a mocked async session; the
statements passed to ``session.execute`` are inspected directly.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from procflow.dal.instances import SqlInstanceRepository, SqlWorkflowStore
from procflow.engine.ports import Assignment, InstanceRecord, ParticipantKind

USER = ParticipantKind.USER
GROUP = ParticipantKind.GROUP


@pytest.fixture
def mock_session():
    """Create a mock async database session."""
    session = MagicMock()
    session.execute = AsyncMock()
    return session


@pytest.fixture
def repo(mock_session):
    return SqlInstanceRepository(mock_session)


def _statements(session):
    return [c.args[0] for c in session.execute.call_args_list]


def _tables(session):
    return [stmt.table.name for stmt in _statements(session)]


def _rows(session, index):
    return session.execute.call_args_list[index].args[1]


def _result(rows=None, one=None, scalar=None):
    result = MagicMock()
    result.__iter__.return_value = iter(rows or [])
    result.one_or_none.return_value = one
    result.scalar.return_value = scalar
    result.scalar_one_or_none.return_value = scalar
    return result


class TestInstanceLifecycle:
    @pytest.mark.asyncio
    async def test_create_instance_inserts_header_and_tasks(self, repo, mock_session):
        await repo.create_instance("0000000001", "WF", 2, ["t1", "t2"])

        assert _tables(mock_session) == ["workflow_instance", "instance_flow_node"]
        assert _rows(mock_session, 0) == [
            {"instance_id": "0000000001", "workflow_id": "WF", "version": 2}
        ]
        assert [r["flow_node_id"] for r in _rows(mock_session, 1)] == ["t1", "t2"]
        assert all(r["version"] == 2 for r in _rows(mock_session, 1))

    @pytest.mark.asyncio
    async def test_create_instance_without_tasks(self, repo, mock_session):
        await repo.create_instance("1", "WF", 1, [])

        assert _tables(mock_session) == ["workflow_instance"]

    @pytest.mark.asyncio
    async def test_delete_instance_removes_children_first(self, repo, mock_session):
        await repo.delete_instance("1")

        tables = _tables(mock_session)
        assert len(tables) == 7
        assert tables[-1] == "workflow_instance"
        assert set(tables[:-1]) == {
            "active_user_task",
            "active_group_task",
            "active_flow_node",
            "task_assigned_user",
            "task_assigned_group",
            "instance_flow_node",
        }

    @pytest.mark.asyncio
    async def test_find_instance(self, repo, mock_session):
        row = MagicMock(instance_id="1", workflow_id="WF", version=3)
        mock_session.execute.return_value = _result(one=row)

        assert await repo.find_instance("1") == InstanceRecord("1", "WF", 3)

    @pytest.mark.asyncio
    async def test_find_instance_missing(self, repo, mock_session):
        mock_session.execute.return_value = _result(one=None)

        assert await repo.find_instance("1") is None


class TestAssignedRoster:
    @pytest.mark.asyncio
    async def test_replace_sequential_roster(self, repo, mock_session):
        await repo.replace_assigned("1", "t1", USER, ["b", "a"], sequential=True)

        assert _tables(mock_session) == [
            "task_assigned_user",
            "task_assigned_group",
            "task_assigned_user",
        ]
        assert [(r["member_id"], r["execution_order"]) for r in _rows(mock_session, 2)] == [
            ("b", 1),
            ("a", 2),
        ]

    @pytest.mark.asyncio
    async def test_replace_parallel_group_roster(self, repo, mock_session):
        await repo.replace_assigned("1", "t1", GROUP, ["G1", "G2"], sequential=False)

        assert _tables(mock_session)[-1] == "task_assigned_group"
        assert {r["execution_order"] for r in _rows(mock_session, 2)} == {0}

    @pytest.mark.asyncio
    async def test_replace_with_empty_roster_only_clears(self, repo, mock_session):
        await repo.replace_assigned("1", "t1", USER, [], sequential=False)

        assert mock_session.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_find_assigned_maps_rows(self, repo, mock_session):
        mock_session.execute.return_value = _result(
            rows=[
                MagicMock(member_id="a", execution_order=1),
                MagicMock(member_id="b", execution_order=2),
            ]
        )

        roster = await repo.find_assigned("1", "t1", USER)

        assert roster == [Assignment("a", 1), Assignment("b", 2)]

    @pytest.mark.asyncio
    async def test_count_assigned_defaults_to_zero(self, repo, mock_session):
        mock_session.execute.return_value = _result(scalar=None)

        assert await repo.count_assigned("1", "t1", USER) == 0

    @pytest.mark.asyncio
    async def test_change_assigned_updates_member_column(self, repo, mock_session):
        await repo.change_assigned("1", "t1", USER, "old", "new")

        stmt = _statements(mock_session)[0]
        assert stmt.table.name == "task_assigned_user"
        assert "assigned_user_id" in str(stmt)


class TestActiveRoster:
    @pytest.mark.asyncio
    async def test_replace_active_node(self, repo, mock_session):
        await repo.replace_active_node("1", "t2")

        assert _tables(mock_session) == [
            "active_user_task",
            "active_group_task",
            "active_flow_node",
            "active_flow_node",
        ]
        assert _rows(mock_session, 3) == [{"instance_id": "1", "flow_node_id": "t2"}]

    @pytest.mark.asyncio
    async def test_find_active_node(self, repo, mock_session):
        mock_session.execute.return_value = _result(scalar="t1")

        assert await repo.find_active_node("1") == "t1"

    @pytest.mark.asyncio
    async def test_replace_active_clears_both_kinds(self, repo, mock_session):
        await repo.replace_active("1", "t1", GROUP, [Assignment("G1"), Assignment("G2")])

        assert _tables(mock_session) == [
            "active_user_task",
            "active_group_task",
            "active_group_task",
        ]
        assert [r["member_id"] for r in _rows(mock_session, 2)] == ["G1", "G2"]

    @pytest.mark.asyncio
    async def test_replace_active_with_no_entries(self, repo, mock_session):
        await repo.replace_active("1", "t1", USER, [])

        assert mock_session.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_find_active(self, repo, mock_session):
        mock_session.execute.return_value = _result(
            one=MagicMock(member_id="u1", execution_order=0)
        )

        assert await repo.find_active("1", "t1", USER, "u1") == Assignment("u1", 0)

    @pytest.mark.asyncio
    async def test_count_active_filters(self, repo, mock_session):
        mock_session.execute.return_value = _result(scalar=2)

        count = await repo.count_active("1", USER, task_id="t1", member="u1")

        assert count == 2
        sql = str(_statements(mock_session)[0])
        assert "flow_node_id" in sql
        assert "assigned_user_id" in sql

    @pytest.mark.asyncio
    async def test_delete_and_change_active(self, repo, mock_session):
        await repo.delete_active("1", "t1", USER, "u1")
        await repo.change_active("1", "t1", GROUP, "G1", "G2")

        assert _tables(mock_session) == ["active_user_task", "active_group_task"]


class TestSqlWorkflowStore:
    @pytest.mark.asyncio
    async def test_unit_of_work_runs_in_transaction(self, mock_session):
        factory = MagicMock(return_value=MagicMock())
        factory.return_value.__aenter__.return_value = mock_session

        store = SqlWorkflowStore(factory)
        async with store.unit_of_work() as repo:
            assert isinstance(repo, SqlInstanceRepository)
            assert repo.session is mock_session

        factory.assert_called_once_with()
        mock_session.begin.assert_called_once_with()

    def test_default_factory_is_guarded_in_unit_tests(self):
        with pytest.raises(RuntimeError, match="real DB connection"):
            SqlWorkflowStore()
