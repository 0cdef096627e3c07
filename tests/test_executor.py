"""Tests for the Executor: initialization, frames, connections and failures."""

from typing import Any

import pytest

from recompute import (
    PENDING,
    UNSET,
    Assigned,
    ComputeError,
    Computer,
    ComputerSpec,
    CycleError,
    Executor,
    Failed,
    Fresh,
    NodeId,
    UsageError,
)


def _calc_spec() -> ComputerSpec:
    calc = Computer("calc")
    calc.input("x", initial=0)
    calc.input("y", initial=0)

    @calc.val("sum")
    def add(x, y):
        return x + y

    return calc.build()


def _counting_spec(calls: list[str]) -> ComputerSpec:
    """Diamond: x -> left, right -> bottom; records every compute call."""
    diamond = Computer("diamond")
    diamond.input("x", initial=1)
    diamond.input("unrelated", initial=0)

    @diamond.val()
    def left(x):
        calls.append("left")
        return x + 1

    @diamond.val()
    def right(x):
        calls.append("right")
        return x * 10

    @diamond.val()
    def bottom(left, right):
        calls.append("bottom")
        return left + right

    return diamond.build()


def _filters_spec() -> ComputerSpec:
    filters = Computer("filters")
    filters.input("text")

    @filters.val()
    def spec(text):
        return {"text": text}

    return filters.build()


def _query_spec() -> ComputerSpec:
    query = Computer("query")
    query.input("filters")
    query.input("page", initial=1)

    @query.val()
    def url(filters, page):
        return f"/search?q={filters['text']}&page={page}"

    return query.build()


@pytest.fixture
def calc() -> Executor:
    executor = Executor()
    executor.add_computer(_calc_spec())
    return executor


class TestInitialize:
    def test_calculator_scenario(self, calc: Executor) -> None:
        result = calc.initialize()

        assert calc.current_values("calc") == {"x": 0, "y": 0, "sum": 0}
        assert calc.errors("calc") == {}
        assert result.success
        assert result.recomputed == (NodeId("calc", "sum"),)
        assert set(result.assigned) == {NodeId("calc", "x"), NodeId("calc", "y")}

    def test_initialize_twice(self, calc: Executor) -> None:
        calc.initialize()
        with pytest.raises(UsageError, match="already initialized"):
            calc.initialize()

    def test_value_without_inputs_stays_pending(self) -> None:
        executor = Executor()
        executor.add_computer(_filters_spec())
        executor.initialize()

        assert executor.state("filters", "text") == UNSET
        assert executor.state("filters", "spec") == PENDING
        assert executor.current_values("filters") == {}

    def test_constant_value(self) -> None:
        consts = Computer("consts")

        @consts.val(depends_on=())
        def answer(snapshot):
            return 42

        executor = Executor()
        executor.add_computer(consts.build())
        executor.initialize()
        assert executor.current_values("consts") == {"answer": 42}

    def test_initial_overrides(self) -> None:
        executor = Executor()
        name = executor.add_computer(_calc_spec(), name="other", initial_overrides={"x": 5})
        executor.initialize()
        assert name == "other"
        assert executor.current_values("other") == {"x": 5, "y": 0, "sum": 5}

    def test_override_of_a_value(self) -> None:
        executor = Executor()
        with pytest.raises(UsageError, match="not an input"):
            executor.add_computer(_calc_spec(), initial_overrides={"sum": 1})
        assert executor.computers == ()

    def test_add_after_initialize(self, calc: Executor) -> None:
        calc.initialize()
        with pytest.raises(UsageError, match="before initialize"):
            calc.add_computer(_calc_spec(), name="late")
        assert calc.computers == ("calc",)

    def test_duplicate_instance_name(self, calc: Executor) -> None:
        with pytest.raises(UsageError, match="already registered"):
            calc.add_computer(_calc_spec())

    def test_lifecycle_flags(self, calc: Executor) -> None:
        assert calc.is_initialized is False
        calc.initialize()
        assert calc.is_initialized is True
        assert calc.frame_open is False


class TestFrames:
    def test_set_and_commit(self, calc: Executor) -> None:
        calc.initialize()
        calc.start_frame()
        calc.set_input("calc", "x", 42)
        # Nothing is visible before the commit
        assert calc.current_values("calc") == {"x": 0, "y": 0, "sum": 0}
        result = calc.commit_frame()

        assert calc.current_values("calc") == {"x": 42, "y": 0, "sum": 42}
        assert result.assigned == (NodeId("calc", "x"),)
        assert result.recomputed == (NodeId("calc", "sum"),)

    def test_last_write_wins(self, calc: Executor) -> None:
        calc.initialize()
        calc.start_frame()
        calc.set_input("calc", "x", 1)
        calc.set_input("calc", "x", 2)
        calc.commit_frame()
        assert calc.state("calc", "x") == Assigned(2)

    def test_frame_context_manager(self, calc: Executor) -> None:
        calc.initialize()
        with calc.frame():
            calc.set_input("calc", "x", 1)
            calc.set_input("calc", "y", 2)
        assert calc.current_values("calc")["sum"] == 3
        assert calc.frame_open is False

    def test_frame_context_manager_discards_on_error(self, calc: Executor) -> None:
        calc.initialize()
        with pytest.raises(RuntimeError), calc.frame():
            calc.set_input("calc", "x", 1)
            raise RuntimeError
        assert calc.frame_open is False
        assert calc.current_values("calc")["x"] == 0

    def test_discard_frame(self, calc: Executor) -> None:
        calc.initialize()
        calc.start_frame()
        calc.set_input("calc", "x", 9)
        calc.discard_frame()
        assert calc.current_values("calc")["x"] == 0

    def test_frame_before_initialize(self, calc: Executor) -> None:
        with pytest.raises(UsageError, match="not initialized"):
            calc.start_frame()

    def test_nested_frames(self, calc: Executor) -> None:
        calc.initialize()
        calc.start_frame()
        with pytest.raises(UsageError, match="already open"):
            calc.start_frame()

    def test_set_without_frame(self, calc: Executor) -> None:
        calc.initialize()
        with pytest.raises(UsageError, match="No frame is open"):
            calc.set_input("calc", "x", 1)

    def test_commit_without_frame(self, calc: Executor) -> None:
        calc.initialize()
        with pytest.raises(UsageError, match="No frame is open"):
            calc.commit_frame()

    def test_discard_without_frame(self, calc: Executor) -> None:
        calc.initialize()
        with pytest.raises(UsageError, match="No frame is open"):
            calc.discard_frame()

    def test_setting_a_value(self, calc: Executor) -> None:
        calc.initialize()
        calc.start_frame()
        with pytest.raises(UsageError, match="is a value"):
            calc.set_input("calc", "sum", 1)

    def test_unknown_names(self, calc: Executor) -> None:
        calc.initialize()
        calc.start_frame()
        with pytest.raises(UsageError, match="no input named 'z'"):
            calc.set_input("calc", "z", 1)
        with pytest.raises(UsageError, match="Unknown computer 'ghost'"):
            calc.set_input("ghost", "x", 1)

    def test_empty_commit(self, calc: Executor) -> None:
        calc.initialize()
        calc.start_frame()
        result = calc.commit_frame()
        assert result.recomputed == ()
        assert result.success

    def test_reading_unknown_computer(self, calc: Executor) -> None:
        with pytest.raises(UsageError, match="Unknown computer"):
            calc.current_values("ghost")


class TestTypedInputs:
    @pytest.fixture
    def typed(self) -> Executor:
        typed = Computer("typed")
        typed.input("count", initial=0, value_type=int)

        @typed.val()
        def double(count):
            return count * 2

        executor = Executor()
        executor.add_computer(typed.build())
        executor.initialize()
        return executor

    def test_values_are_coerced(self, typed: Executor) -> None:
        with typed.frame():
            typed.set_input("typed", "count", "21")
        assert typed.current_values("typed") == {"count": 21, "double": 42}

    def test_invalid_value_is_rejected_at_the_call(self, typed: Executor) -> None:
        typed.start_frame()
        with pytest.raises(UsageError, match="Invalid value 'many' for input 'typed.count'"):
            typed.set_input("typed", "count", "many")
        typed.commit_frame()
        assert typed.current_values("typed") == {"count": 0, "double": 0}

    def test_invalid_override(self) -> None:
        typed = Computer("typed")
        typed.input("count", value_type=int)
        with pytest.raises(UsageError, match="Invalid value"):
            Executor().add_computer(typed.build(), initial_overrides={"count": "many"})


class TestSingleRecompute:
    def test_each_dirty_value_recomputes_once(self) -> None:
        calls: list[str] = []
        executor = Executor()
        executor.add_computer(_counting_spec(calls))
        executor.initialize()
        assert calls == ["left", "right", "bottom"]

        calls.clear()
        with executor.frame():
            executor.set_input("diamond", "x", 2)
        assert calls == ["left", "right", "bottom"]
        assert executor.current_values("diamond")["bottom"] == 23

    def test_unaffected_values_are_not_recomputed(self) -> None:
        calls: list[str] = []
        executor = Executor()
        executor.add_computer(_counting_spec(calls))
        executor.initialize()

        calls.clear()
        with executor.frame():
            executor.set_input("diamond", "unrelated", 5)
        assert calls == []

    def test_reassigning_the_same_value_still_recomputes(self) -> None:
        calls: list[str] = []
        executor = Executor()
        executor.add_computer(_counting_spec(calls))
        executor.initialize()

        calls.clear()
        with executor.frame():
            executor.set_input("diamond", "x", 1)
        assert calls == ["left", "right", "bottom"]


class TestDeterminism:
    @staticmethod
    def _run() -> tuple[tuple[NodeId, ...], list[Any], dict[str, Any]]:
        calls: list[str] = []
        executor = Executor()
        executor.add_computer(_counting_spec(calls))
        executor.add_computer(_calc_spec())
        executor.initialize()
        with executor.frame():
            executor.set_input("calc", "y", 3)
            executor.set_input("diamond", "x", 4)
        return executor.order(), calls, {c: executor.states(c) for c in executor.computers}

    def test_same_order_and_states_every_run(self) -> None:
        assert self._run() == self._run()

    def test_order_follows_registration(self) -> None:
        order, _, _ = self._run()
        assert [str(node) for node in order] == [
            "diamond.x",
            "diamond.unrelated",
            "diamond.left",
            "diamond.right",
            "diamond.bottom",
            "calc.x",
            "calc.y",
            "calc.sum",
        ]


class TestConnections:
    @pytest.fixture
    def search(self) -> Executor:
        executor = Executor()
        executor.add_computer(_filters_spec())
        executor.add_computer(_query_spec())
        executor.connect(("filters", "spec"), ("query", "filters"))
        return executor

    def test_target_unset_until_source_is_fresh(self, search: Executor) -> None:
        search.initialize()
        assert search.state("filters", "spec") == PENDING
        assert search.state("query", "filters") == UNSET
        assert search.state("query", "url") == PENDING

    def test_propagation_within_one_commit(self, search: Executor) -> None:
        search.initialize()
        with search.frame():
            search.set_input("filters", "text", "widgets")

        assert search.state("query", "filters") == Assigned({"text": "widgets"})
        assert search.state("query", "url") == Fresh("/search?q=widgets&page=1")

    def test_commit_result_lists_deliveries(self, search: Executor) -> None:
        search.initialize()
        search.start_frame()
        search.set_input("filters", "text", "widgets")
        result = search.commit_frame()

        assert result.delivered == (NodeId("query", "filters"),)
        assert result.recomputed == (NodeId("filters", "spec"), NodeId("query", "url"))

    def test_connected_input_cannot_be_set(self, search: Executor) -> None:
        search.initialize()
        search.start_frame()
        with pytest.raises(UsageError, match="driven by 'filters.spec'"):
            search.set_input("query", "filters", {"text": "x"})

    def test_connected_target_follows_its_source(self) -> None:
        executor = Executor()
        executor.add_computer(_calc_spec(), name="a")
        executor.add_computer(_calc_spec(), name="b")
        executor.connect(("a", "sum"), ("b", "x"))
        executor.initialize()
        with executor.frame():
            executor.set_input("a", "x", 2)
            executor.set_input("a", "y", 3)
        assert executor.current_values("b") == {"x": 5, "y": 0, "sum": 5}

    def test_fan_out(self) -> None:
        executor = Executor()
        executor.add_computer(_calc_spec(), name="src")
        executor.add_computer(_calc_spec(), name="left")
        executor.add_computer(_calc_spec(), name="right")
        executor.connect(("src", "sum"), ("left", "x"))
        executor.connect(("src", "sum"), ("right", "y"))
        executor.initialize()
        with executor.frame():
            executor.set_input("src", "x", 7)
        assert executor.current_values("left")["sum"] == 7
        assert executor.current_values("right")["sum"] == 7

    def test_cycle_across_computers(self) -> None:
        executor = Executor()
        executor.add_computer(_calc_spec(), name="a")
        executor.add_computer(_calc_spec(), name="b")
        executor.connect(("a", "sum"), ("b", "x"))
        with pytest.raises(CycleError):
            executor.connect(("b", "sum"), ("a", "x"))
        assert len(executor.connections) == 1

        executor.initialize()
        assert executor.current_values("b") == {"x": 0, "y": 0, "sum": 0}

    def test_connect_after_initialize(self, search: Executor) -> None:
        search.initialize()
        with pytest.raises(UsageError):
            search.connect(("filters", "spec"), ("query", "page"))

    def test_failed_source_fails_target_and_dependents(self) -> None:
        flaky = Computer("flaky")
        flaky.input("n", initial=1)

        @flaky.val()
        def inverse(n):
            return 1 / n

        executor = Executor()
        executor.add_computer(flaky.build())
        executor.add_computer(_calc_spec())
        executor.connect(("flaky", "inverse"), ("calc", "x"))
        executor.initialize()
        assert executor.current_values("calc")["x"] == 1.0

        executor.start_frame()
        executor.set_input("flaky", "n", 0)
        result = executor.commit_frame()

        assert result.failed == frozenset(
            {NodeId("flaky", "inverse"), NodeId("calc", "x"), NodeId("calc", "sum")},
        )
        assert isinstance(executor.state("calc", "x"), Failed)
        assert isinstance(executor.state("calc", "sum"), Failed)
        errors = executor.errors("calc")
        assert "flaky.inverse failed" in errors["x"].reason
        assert "dependency 'x' failed" in errors["sum"].reason
        assert executor.current_values("calc") == {"y": 0}

        with executor.frame():
            executor.set_input("flaky", "n", 4)
        assert executor.errors("calc") == {}
        assert executor.current_values("calc") == {"x": 0.25, "y": 0, "sum": 0.25}

    def test_delivery_is_validated_against_the_target_type(self) -> None:
        typed = Computer("typed")
        typed.input("count", value_type=int)

        @typed.val()
        def double(count):
            return count * 2

        texts = Computer("texts")
        texts.input("text", initial="3")

        @texts.val()
        def echo(text):
            return text

        executor = Executor()
        executor.add_computer(texts.build())
        executor.add_computer(typed.build())
        executor.connect(("texts", "echo"), ("typed", "count"))
        executor.initialize()
        assert executor.current_values("typed") == {"count": 3, "double": 6}

        executor.start_frame()
        executor.set_input("texts", "text", "three")
        result = executor.commit_frame()
        assert result.failed == frozenset({NodeId("typed", "count"), NodeId("typed", "double")})
        assert isinstance(executor.state("typed", "count"), Failed)
        assert isinstance(executor.state("typed", "double"), Failed)
        assert "is invalid" in executor.errors("typed")["count"].reason

        with executor.frame():
            executor.set_input("texts", "text", "5")
        assert executor.state("typed", "count") == Assigned(5)
        assert executor.current_values("typed") == {"count": 5, "double": 10}


class TestComputeFailures:
    @pytest.fixture
    def stats(self) -> Executor:
        stats = Computer("stats")
        stats.input("values", initial=[])

        @stats.val()
        def count(values):
            return len(values)

        @stats.val()
        def avg(values):
            return sum(values) / len(values)

        @stats.val()
        def doubled_avg(avg):
            return avg * 2

        executor = Executor()
        executor.add_computer(stats.build())
        return executor

    def test_failure_is_contained(self, stats: Executor) -> None:
        result = stats.initialize()

        assert not result.success
        assert result.failed == frozenset({NodeId("stats", "avg"), NodeId("stats", "doubled_avg")})
        assert stats.current_values("stats") == {"values": [], "count": 0}

        errors = stats.errors("stats")
        assert set(errors) == {"avg", "doubled_avg"}
        assert "ZeroDivisionError" in errors["avg"].reason
        assert isinstance(errors["avg"].__cause__, ZeroDivisionError)
        assert errors["avg"].node == NodeId("stats", "avg")
        assert "dependency 'avg' failed" in errors["doubled_avg"].reason

    def test_recovery(self, stats: Executor) -> None:
        stats.initialize()
        with stats.frame():
            stats.set_input("stats", "values", [1, 2, 3])
        assert stats.errors("stats") == {}
        assert stats.current_values("stats") == {"values": [1, 2, 3], "count": 3, "avg": 2.0, "doubled_avg": 4.0}

    def test_failed_state(self, stats: Executor) -> None:
        stats.initialize()
        state = stats.state("stats", "avg")
        assert isinstance(state, Failed)
        assert isinstance(state.error, ComputeError)

    def test_undeclared_snapshot_key(self) -> None:
        sneaky = Computer("sneaky")
        sneaky.input("x", initial=1)
        sneaky.input("y", initial=2)

        @sneaky.val(depends_on=["x"])
        def peek(snapshot):
            return snapshot["x"] + snapshot["y"]

        executor = Executor()
        executor.add_computer(sneaky.build())
        executor.initialize()
        assert "KeyError" in executor.errors("sneaky")["peek"].reason
