"""Tests for MockQuery: data boundary, query pipeline and deferred execution."""

from __future__ import annotations

import asyncio
import gc
from typing import Any
from unittest.mock import patch

import pytest

from firemock.kernel.exceptions import InjectedError, QueryUsageError, ValidationError
from firemock.stdlib.flush_queue import FlushQueue
from firemock.stdlib.query import MockQuery
from firemock.stdlib.snapshots import DocumentSnapshot, QuerySnapshot


def _collection(data: dict[str, Any], name: str = "items") -> MockQuery:
    root = MockQuery(data={name: data})
    return root.collection(name).auto_flush()


async def _keys(query: MockQuery) -> list[str]:
    snapshot = await query.get()
    return [doc.id for doc in snapshot]


# ---------------------------------------------------------------------------
# Construction & cloning
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_root_defaults(self) -> None:
        root = MockQuery()
        assert root.path == "Mock://"
        assert root.id is None
        assert root.parent is None
        assert root.data == {}
        assert root.flush_delay is False
        assert str(root) == "Mock://"

    def test_id_from_path(self) -> None:
        assert MockQuery("Mock://users").id == "users"
        assert MockQuery("Mock://users/alice").id == "alice"
        assert MockQuery("Mock://users.bad").id is None

    def test_id_from_name_when_parented(self) -> None:
        root = MockQuery()
        child = MockQuery("Mock://whatever", None, root, "named")
        assert child.id == "named"
        assert child.queue is root.queue

    def test_custom_queue(self) -> None:
        queue = FlushQueue()
        assert MockQuery(queue=queue).queue is queue

    def test_non_mapping_data_rejected(self) -> None:
        with pytest.raises(ValidationError):
            MockQuery(data=[1, 2, 3])


class TestDataBoundary:
    def test_input_is_copied(self) -> None:
        source = {"a": {"n": 1}}
        node = MockQuery(data=source)
        source["a"]["n"] = 99
        assert node.data == {"a": {"n": 1}}

    def test_get_data_is_a_copy(self) -> None:
        node = MockQuery(data={"a": {"n": 1}})
        node.get_data()["a"]["n"] = 99
        assert node.data == {"a": {"n": 1}}

    @pytest.mark.asyncio()
    async def test_mutating_results_does_not_touch_store(self, numbers: dict[str, Any]) -> None:
        items = _collection(numbers)
        snapshot = await items.get()
        snapshot.docs[0].to_dict()["n"] = 100
        again = await items.get()
        assert [doc.to_dict() for doc in again] == [{"n": 1}, {"n": 2}, {"n": 3}]

    @pytest.mark.asyncio()
    async def test_round_trip(self, numbers: dict[str, Any]) -> None:
        snapshot = await _collection(numbers).get()
        assert {doc.id: doc.to_dict() for doc in snapshot} == numbers


class TestClone:
    def test_clone_copies_query_state(self, numbers: dict[str, Any]) -> None:
        query = _collection(numbers).order_by("n", "desc").limit(2)
        clone = query.clone()
        assert clone.ordered_properties == ["n"]
        assert clone.ordered_directions == ["desc"]
        assert clone.limited == 2
        assert clone.cursor_builder is query.cursor_builder
        assert clone.id == query.id
        assert clone.parent is query.parent

    def test_clone_does_not_share_containers(self, numbers: dict[str, Any]) -> None:
        query = _collection(numbers).order_by("n")
        clone = query.clone()
        clone.ordered_properties.append("x")
        clone.data["a"]["n"] = 50
        assert query.ordered_properties == ["n"]
        assert query.data["a"]["n"] == 1

    def test_builders_leave_source_untouched(self, numbers: dict[str, Any]) -> None:
        items = _collection(numbers)
        items.where("n", "==", 1).order_by("n").limit(1)
        assert items.ordered_properties == []
        assert items.ordered_directions == []
        assert items.limited == 0
        assert set(items.data) == {"a", "b", "c"}

    def test_root_clone_shares_tree_state(self) -> None:
        root = MockQuery(data={"a": {"n": 1}})
        clone = root.clone()
        assert clone.queue is root.queue
        root.auto_flush(True)
        assert clone.flush_delay is True


# ---------------------------------------------------------------------------
# Query pipeline
# ---------------------------------------------------------------------------


class TestOrdering:
    @pytest.mark.asyncio()
    async def test_insertion_order_without_sort(self) -> None:
        items = _collection({"z": {"n": 1}, "a": {"n": 2}, "m": {"n": 3}})
        assert await _keys(items) == ["z", "a", "m"]

    @pytest.mark.asyncio()
    async def test_descending(self, numbers: dict[str, Any]) -> None:
        assert await _keys(_collection(numbers).order_by("n", "desc")) == ["c", "b", "a"]

    @pytest.mark.asyncio()
    async def test_multi_key_with_mixed_directions(self) -> None:
        items = _collection({
            "a": {"group": 1, "n": 1},
            "b": {"group": 2, "n": 5},
            "c": {"group": 1, "n": 3},
            "d": {"group": 2, "n": 4},
        })
        query = items.order_by("group").order_by("n", "desc")
        assert await _keys(query) == ["c", "a", "b", "d"]

    @pytest.mark.asyncio()
    async def test_stable_for_ties(self) -> None:
        items = _collection({"x": {"n": 1}, "y": {"n": 1}, "z": {"n": 0}})
        assert await _keys(items.order_by("n")) == ["z", "x", "y"]

    @pytest.mark.asyncio()
    async def test_missing_field_sorts_lowest(self) -> None:
        items = _collection({"a": {"n": 2}, "b": {}, "c": {"n": 1}})
        assert await _keys(items.order_by("n")) == ["b", "c", "a"]
        assert await _keys(items.order_by("n", "desc")) == ["a", "c", "b"]

    @pytest.mark.asyncio()
    async def test_nested_field_path(self) -> None:
        items = _collection({"a": {"meta": {"rank": 2}}, "b": {"meta": {"rank": 1}}})
        assert await _keys(items.order_by("meta.rank")) == ["b", "a"]

    def test_long_direction_names(self, numbers: dict[str, Any]) -> None:
        query = _collection(numbers).order_by("n", "DESCENDING").order_by("m", "Ascending")
        assert query.ordered_directions == ["desc", "asc"]

    def test_invalid_direction(self, numbers: dict[str, Any]) -> None:
        with pytest.raises(ValidationError, match="direction"):
            _collection(numbers).order_by("n", "sideways")


class TestLimit:
    @pytest.mark.asyncio()
    async def test_limit(self, numbers: dict[str, Any]) -> None:
        assert await _keys(_collection(numbers).order_by("n", "asc").limit(2)) == ["a", "b"]

    @pytest.mark.asyncio()
    async def test_zero_or_negative_is_unlimited(self, numbers: dict[str, Any]) -> None:
        items = _collection(numbers)
        assert len(await _keys(items.limit(0))) == 3
        assert len(await _keys(items.limit(-1))) == 3

    def test_non_integer_rejected(self, numbers: dict[str, Any]) -> None:
        with pytest.raises(ValidationError):
            _collection(numbers).limit("2")  # type: ignore[arg-type]


class TestWhere:
    @pytest.mark.asyncio()
    async def test_equality(self, numbers: dict[str, Any]) -> None:
        assert await _keys(_collection(numbers).where("n", "==", 2)) == ["b"]

    @pytest.mark.asyncio()
    async def test_deep_equality(self) -> None:
        items = _collection({"a": {"loc": {"x": 1, "y": 2}}, "b": {"loc": {"x": 1}}})
        assert await _keys(items.where("loc", "==", {"x": 1, "y": 2})) == ["a"]

    @pytest.mark.asyncio()
    async def test_array_contains(self) -> None:
        items = _collection({"a": {"tags": ["x"]}, "b": {"tags": ["y"]}})
        assert await _keys(items.where("tags", "array-contains", "x")) == ["a"]

    @pytest.mark.asyncio()
    async def test_filtering_is_eager(self, numbers: dict[str, Any]) -> None:
        query = _collection(numbers).where("n", "==", 3)
        assert list(query.data) == ["c"]

    @pytest.mark.asyncio()
    async def test_no_match_gives_empty_snapshot(self, numbers: dict[str, Any]) -> None:
        snapshot = await _collection(numbers).where("n", "==", 42).get()
        assert snapshot.empty
        assert snapshot.size == 0

    @pytest.mark.asyncio()
    async def test_unsupported_operator_keeps_everything(
        self, numbers: dict[str, Any], log_capture: list[dict[str, Any]]
    ) -> None:
        items = _collection(numbers)
        query = items.where("n", ">", 1)
        assert query is not items
        assert await _keys(query) == ["a", "b", "c"]
        warnings = [log for log in log_capture if log["level"] == "WARNING"]
        assert any("Unsupported where() operator" in log["message"] for log in warnings)

    @pytest.mark.asyncio()
    async def test_chained_filters(self) -> None:
        items = _collection({
            "a": {"n": 1, "tags": ["x"]},
            "b": {"n": 1, "tags": ["y"]},
            "c": {"n": 2, "tags": ["x"]},
        })
        query = items.where("n", "==", 1).where("tags", "array-contains", "x")
        assert await _keys(query) == ["a"]


class TestStartAfter:
    @pytest.mark.asyncio()
    async def test_pagination(self, numbers: dict[str, Any]) -> None:
        items = _collection(numbers)
        ordered = items.order_by("n", "asc")
        first_page = await ordered.limit(2).get()
        last = first_page.docs[-1]
        assert last.id == "b"
        assert await _keys(ordered.start_after(last)) == ["c"]

    @pytest.mark.asyncio()
    async def test_cursor_follows_sorted_order(self, numbers: dict[str, Any]) -> None:
        items = _collection(numbers)
        snapshot_b = await items.doc("b").get()
        query = items.order_by("n", "desc").start_after(snapshot_b)
        assert await _keys(query) == ["a"]

    @pytest.mark.asyncio()
    async def test_cursor_state_resets_each_execution(self, numbers: dict[str, Any]) -> None:
        items = _collection(numbers)
        query = items.order_by("n").start_after(await items.doc("a").get())
        assert await _keys(query) == ["b", "c"]
        assert await _keys(query) == ["b", "c"]

    @pytest.mark.asyncio()
    async def test_cursor_and_limit(self, numbers: dict[str, Any]) -> None:
        items = _collection({**numbers, "d": {"n": 4}})
        query = items.order_by("n").start_after(await items.doc("a").get()).limit(2)
        assert await _keys(query) == ["b", "c"]

    def test_unordered_query_raises(self, numbers: dict[str, Any]) -> None:
        items = _collection(numbers)
        before = len(items.get_flush_queue())
        with pytest.raises(QueryUsageError, match="ordered"):
            items.start_after("b")  # type: ignore[arg-type]
        assert len(items.get_flush_queue()) == before

    def test_non_snapshot_returns_same_node(
        self, numbers: dict[str, Any], log_capture: list[dict[str, Any]]
    ) -> None:
        query = _collection(numbers).order_by("n")
        assert query.start_after({"id": "b"}) is query  # type: ignore[arg-type]
        assert any("Unsupported start_after()" in log["message"] for log in log_capture)


class TestResultAssembly:
    @pytest.mark.asyncio()
    async def test_query_snapshot_points_at_collection(self, numbers: dict[str, Any]) -> None:
        root = MockQuery(data={"items": numbers})
        items = root.collection("items").auto_flush()
        snapshot = await items.where("n", "==", 1).get()
        assert isinstance(snapshot, QuerySnapshot)
        assert snapshot.query is items
        assert snapshot.docs[0].ref.path == "Mock://items/a"

    @pytest.mark.asyncio()
    async def test_root_query_points_at_itself(self) -> None:
        root = MockQuery(data={"a": {"n": 1}}).auto_flush()
        snapshot = await root.get()
        assert snapshot.query is root

    @pytest.mark.asyncio()
    async def test_empty_collection(self) -> None:
        snapshot = await MockQuery().auto_flush().get()
        assert snapshot.empty
        assert list(snapshot) == []


# ---------------------------------------------------------------------------
# Deferred execution
# ---------------------------------------------------------------------------


class TestDeferredExecution:
    @pytest.mark.asyncio()
    async def test_get_stays_pending_until_flush(self, numbers: dict[str, Any]) -> None:
        items = MockQuery(data={"items": numbers}).collection("items")
        future = items.get()
        await asyncio.sleep(0)
        assert not future.done()
        items.flush()
        assert future.done()
        assert (await future).size == 3

    @pytest.mark.asyncio()
    async def test_flush_queue_describes_pending_operations(
        self, numbers: dict[str, Any]
    ) -> None:
        items = MockQuery(data={"items": numbers}).collection("items")
        query = items.order_by("n")
        items.get()
        query.get()
        pending = items.get_flush_queue()
        assert [(entry.ref, entry.method, entry.args) for entry in pending] == [
            (items, "get", ()),
            (query, "get", ()),
        ]
        items.flush()
        assert items.get_flush_queue() == []

    @pytest.mark.asyncio()
    async def test_fifo_resolution_across_nodes(self, numbers: dict[str, Any]) -> None:
        root = MockQuery(data={"items": numbers, "other": {"x": {"v": 1}}})
        order: list[str] = []
        first = root.collection("items").get()
        second = root.collection("other").get()
        third = root.collection("items").limit(1).get()
        for name, future in (("first", first), ("second", second), ("third", third)):
            future.add_done_callback(lambda _f, name=name: order.append(name))
        root.flush()
        await asyncio.sleep(0)
        assert order == ["first", "second", "third"]

    @pytest.mark.asyncio()
    async def test_flush_from_any_node_drains_the_tree(self, numbers: dict[str, Any]) -> None:
        root = MockQuery(data={"items": numbers})
        future = root.collection("items").where("n", "==", 1).get()
        root.flush()
        assert [doc.id for doc in await future] == ["a"]

    @pytest.mark.asyncio()
    async def test_separate_trees_have_separate_queues(self, numbers: dict[str, Any]) -> None:
        one = MockQuery(data={"items": numbers}).collection("items")
        two = MockQuery(data={"items": numbers}).collection("items")
        future = two.get()
        one.flush()
        assert not future.done()
        two.flush()
        assert future.done()

    @pytest.mark.asyncio()
    async def test_data_read_at_flush_time(self, numbers: dict[str, Any]) -> None:
        items = MockQuery(data={"items": numbers}).collection("items")
        future = items.get()
        items.set_data({"only": {"n": 0}})
        items.flush()
        assert [doc.id for doc in await future] == ["only"]

    @pytest.mark.asyncio()
    async def test_delayed_auto_flush(self, numbers: dict[str, Any]) -> None:
        items = MockQuery(data={"items": numbers}).collection("items").auto_flush(0.01)
        future = items.get()
        assert not future.done()
        snapshot = await asyncio.wait_for(future, timeout=1)
        assert snapshot.size == 3

    def test_flush_returns_self(self) -> None:
        root = MockQuery()
        assert root.flush() is root
        assert root.auto_flush() is root


class TestAutoFlush:
    def test_default_is_true(self) -> None:
        root = MockQuery()
        root.auto_flush()
        assert root.flush_delay is True

    def test_propagates_to_children_and_parent(self) -> None:
        root = MockQuery(data={"a": {}, "b": {}})
        child_a = root.collection("a")
        child_b = root.collection("b")
        child_a.auto_flush(0.5)
        assert root.flush_delay == 0.5
        assert child_b.flush_delay == 0.5
        child_b.auto_flush(False)
        assert root.flush_delay is False
        assert child_a.flush_delay is False

    def test_false_and_zero_are_distinct(self) -> None:
        root = MockQuery()
        root.auto_flush(0)
        assert root.flush_delay == 0.0
        assert root.flush_delay is not False

    def test_second_identical_call_does_not_propagate(self) -> None:
        root = MockQuery(data={"a": {}})
        child = root.collection("a")
        with patch.object(child, "auto_flush", wraps=child.auto_flush) as spy:
            root.auto_flush(True)
            assert spy.call_count == 1
            root.auto_flush(True)
            assert spy.call_count == 1
            root.auto_flush(False)
            assert spy.call_count == 2

    def test_negative_delay_rejected(self) -> None:
        with pytest.raises(ValidationError):
            MockQuery().auto_flush(-1)

    @pytest.mark.asyncio()
    async def test_enabling_resolves_immediately(self, numbers: dict[str, Any]) -> None:
        items = _collection(numbers)
        future = items.get()
        assert future.done()


class TestErrorInjection:
    @pytest.mark.asyncio()
    async def test_next_get_fails_once(self, numbers: dict[str, Any]) -> None:
        items = _collection(numbers)
        items.fail_next("get", RuntimeError("boom"))
        with pytest.raises(RuntimeError, match="boom"):
            await items.get()
        assert (await items.get()).size == 3

    @pytest.mark.asyncio()
    async def test_error_checked_when_get_is_called(self, numbers: dict[str, Any]) -> None:
        items = MockQuery(data={"items": numbers}).collection("items")
        items.fail_next("get", RuntimeError("boom"))
        failing = items.get()
        succeeding = items.get()
        items.flush()
        with pytest.raises(RuntimeError):
            await failing
        assert (await succeeding).size == 3

    @pytest.mark.asyncio()
    async def test_non_exception_value_is_wrapped(self, numbers: dict[str, Any]) -> None:
        items = _collection(numbers)
        items.fail_next("get", "permission-denied")
        with pytest.raises(InjectedError) as exc_info:
            await items.get()
        assert exc_info.value.value == "permission-denied"

    @pytest.mark.asyncio()
    async def test_errors_are_per_node(self, numbers: dict[str, Any]) -> None:
        items = _collection(numbers)
        items.fail_next("get", RuntimeError("boom"))
        assert (await items.order_by("n").get()).size == 3


class TestStream:
    @pytest.mark.asyncio()
    async def test_yields_documents_in_order(self, numbers: dict[str, Any]) -> None:
        items = _collection(numbers)
        streamed = [doc async for doc in items.order_by("n", "desc").stream()]
        assert all(isinstance(doc, DocumentSnapshot) for doc in streamed)
        assert [doc.id for doc in streamed] == ["c", "b", "a"]

    @pytest.mark.asyncio()
    async def test_read_is_queued_immediately(self, numbers: dict[str, Any]) -> None:
        items = MockQuery(data={"items": numbers}).collection("items")
        stream = items.stream()
        assert [entry.method for entry in items.get_flush_queue()] == ["get"]
        items.flush()
        assert [doc.id async for doc in stream] == ["a", "b", "c"]

    @pytest.mark.asyncio()
    async def test_failure_is_raised_from_iterator(self, numbers: dict[str, Any]) -> None:
        items = _collection(numbers)
        items.fail_next("get", RuntimeError("stream failed"))
        with pytest.raises(RuntimeError, match="stream failed"):
            _ = [doc async for doc in items.stream()]

    @pytest.mark.asyncio()
    async def test_unconsumed_failure_is_not_reported(self, numbers: dict[str, Any]) -> None:
        loop = asyncio.get_running_loop()
        reported: list[dict[str, Any]] = []
        loop.set_exception_handler(lambda _loop, context: reported.append(context))
        try:
            items = _collection(numbers)
            items.fail_next("get", RuntimeError("dropped"))
            stream = items.stream()
            await asyncio.sleep(0)
            del stream
            gc.collect()
            await asyncio.sleep(0)
        finally:
            loop.set_exception_handler(None)
        assert not any("never retrieved" in str(c.get("message")) for c in reported)


class TestNavigation:
    def test_collection_is_cached(self) -> None:
        root = MockQuery(data={"users": {"a": {}}})
        assert root.collection("users") is root.collection("users")
        assert root.children == {"users": root.collection("users")}

    def test_collection_path_and_data(self) -> None:
        root = MockQuery(data={"users": {"a": {"name": "x"}}})
        users = root.collection("users")
        assert users.path == "Mock://users"
        assert users.id == "users"
        assert users.parent is root
        assert users.data == {"a": {"name": "x"}}

    def test_repr(self) -> None:
        assert repr(MockQuery("Mock://users")) == "MockQuery('Mock://users')"
