"""Tests for Sequence step chaining."""

import asyncio

import pytest

from promisekit.core.errors import ConfigurationError, TimeoutExpired, UnknownStepError
from promisekit.execution.sequence import Sequence
from tests._support import flush, rejected, resolved


def fail_with(error):
    return lambda dfr: dfr.reject(error)


class TestPush:

    @pytest.mark.asyncio
    async def test_empty_sequence_is_resolved(self):
        assert await Sequence().promise() is None

    @pytest.mark.asyncio
    async def test_payload_flows_through_steps(self):
        seq = Sequence([
            lambda dfr: dfr.resolve(1),
            lambda dfr, value: dfr.resolve(value + 1),
            {"synchronous": lambda value: value * 10},
        ])
        assert await seq.promise() == 20

    @pytest.mark.asyncio
    async def test_steps_run_in_push_order(self):
        order = []

        def step(name, delay):
            async def work():
                await asyncio.sleep(delay)
                order.append(name)
                return name

            return lambda dfr: work()

        seq = Sequence().push(step("slow", 0.02)).push(step("fast", 0))
        assert await seq.promise() == "fast"
        assert order == ["slow", "fast"]

    @pytest.mark.asyncio
    async def test_returned_awaitable_settles_step(self):
        seq = Sequence().push(lambda dfr: resolved("from future"))
        assert await seq.promise() == "from future"

    @pytest.mark.asyncio
    async def test_first_settlement_wins(self):
        def action(dfr):
            dfr.resolve("direct")
            return rejected(RuntimeError("ignored"))

        seq = Sequence().push(action)
        assert await seq.promise() == "direct"

    @pytest.mark.asyncio
    async def test_raising_action_rejects_step(self):
        def action(dfr):
            raise ValueError("broken step")

        with pytest.raises(ValueError, match="broken step"):
            await Sequence().push(action).promise()

    @pytest.mark.asyncio
    async def test_fallback_chain(self):
        calls = []
        error = RuntimeError("first failed")
        seq = Sequence([
            fail_with(error),
            {
                "action": lambda dfr, payload: calls.append(("action", payload)),
                "fallback": lambda dfr, reason: (calls.append(("fallback", reason)), dfr.resolve("recovered")),
            },
        ])
        assert await seq.promise() == "recovered"
        assert calls == [("fallback", error)]

    @pytest.mark.asyncio
    async def test_failure_propagates_without_fallback(self):
        reached = []
        error = RuntimeError("stop")
        seq = Sequence().push(fail_with(error)).push(lambda dfr: reached.append(1))
        with pytest.raises(RuntimeError) as exc_info:
            await seq.promise()
        assert exc_info.value is error
        assert reached == []

    @pytest.mark.asyncio
    async def test_fallback_can_fail_again(self):
        seq = Sequence().push(fail_with(RuntimeError("first"))).push(
            lambda dfr: dfr.resolve(), lambda dfr, error: dfr.reject(KeyError("second"))
        )
        with pytest.raises(KeyError):
            await seq.promise()

    @pytest.mark.asyncio
    async def test_steps_can_be_added_while_running(self):
        gate = asyncio.get_running_loop().create_future()
        seq = Sequence().push(lambda dfr: dfr.adopt(gate))
        await flush()
        seq.push(lambda dfr, value: dfr.resolve(value * 2))
        gate.set_result(21)
        assert await seq.promise() == 42


class TestPushPromise:

    @pytest.mark.asyncio
    async def test_adopts_outcome(self):
        seq = Sequence().push(lambda dfr: dfr.resolve("ignored")).push_promise(resolved("external"))
        assert await seq.promise() == "external"

    @pytest.mark.asyncio
    async def test_waits_for_chain(self):
        gate = asyncio.get_running_loop().create_future()
        seq = Sequence().push(lambda dfr: dfr.adopt(gate)).push_promise(resolved("external"))
        await flush()
        assert not seq.promise().done()
        gate.set_result(None)
        assert await seq.promise() == "external"

    @pytest.mark.asyncio
    async def test_previous_failure_waits_for_promise(self):
        external = asyncio.get_running_loop().create_future()
        error = RuntimeError("chain failed")
        seq = Sequence().push(fail_with(error)).push_promise(external)
        await flush()
        assert not seq.promise().done()
        external.set_result("late")
        with pytest.raises(RuntimeError) as exc_info:
            await seq.promise()
        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_rejected_promise_rejects_step(self):
        seq = Sequence().push_promise(rejected(LookupError("gone")))
        with pytest.raises(LookupError):
            await seq.promise()


class TestPushSynchronous:

    @pytest.mark.asyncio
    async def test_return_value_resolves(self):
        seq = Sequence().push(lambda dfr: dfr.resolve(3)).push_synchronous(lambda value: value + 4)
        assert await seq.promise() == 7

    @pytest.mark.asyncio
    async def test_no_argument_function(self):
        seq = Sequence().push_synchronous(lambda: "constant")
        assert await seq.promise() == "constant"

    @pytest.mark.asyncio
    async def test_fallback(self):
        seq = Sequence().push(fail_with(RuntimeError("x"))).push_synchronous(
            lambda value: "unused", lambda error: f"handled {error}"
        )
        assert await seq.promise() == "handled x"

    @pytest.mark.asyncio
    async def test_failure_propagates_without_fallback(self):
        seq = Sequence().push(fail_with(RuntimeError("x"))).push_synchronous(lambda value: "unused")
        with pytest.raises(RuntimeError):
            await seq.promise()

    @pytest.mark.asyncio
    async def test_raising_function_rejects(self):
        def explode(value):
            raise ZeroDivisionError()

        with pytest.raises(ZeroDivisionError):
            await Sequence().push_synchronous(explode).promise()

    @pytest.mark.asyncio
    async def test_raised_error_reaches_next_fallback(self):
        error = ZeroDivisionError("bad ratio")

        def explode(value):
            raise error

        seq = Sequence().push_synchronous(explode).push_synchronous(lambda value: "unused", lambda reason: reason)
        assert await seq.promise() is error

    @pytest.mark.asyncio
    async def test_returning_none_continues(self):
        reached = []
        seq = Sequence().push_synchronous(lambda: None).push(
            lambda dfr, value: (reached.append(value), dfr.resolve("next"))
        )
        assert await seq.promise() == "next"
        assert reached == [None]


class TestTimeout:

    @pytest.mark.asyncio
    async def test_handler_not_called_when_chain_is_fast(self):
        calls = []
        seq = Sequence().push(lambda dfr: dfr.adopt(asyncio.sleep(0.01, result="fast")))
        seq.set_timeout(lambda dfr: calls.append(1), 0.1)
        assert await seq.promise() == "fast"
        await asyncio.sleep(0.15)
        assert calls == []

    @pytest.mark.asyncio
    async def test_handler_called_when_chain_is_slow(self):
        calls = []

        def handler(dfr):
            calls.append(1)
            dfr.resolve("timed out")

        seq = Sequence().push(lambda dfr: None)
        seq.set_timeout(handler, 0.01)
        assert await seq.promise() == "timed out"
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_late_completion_ignored_after_timeout(self):
        gate = asyncio.get_running_loop().create_future()
        seq = Sequence().push(lambda dfr: dfr.adopt(gate))
        seq.set_timeout(lambda dfr: dfr.resolve("timeout"), 0.01)
        await asyncio.sleep(0.03)
        gate.set_result("late")
        await flush()
        assert await seq.promise() == "timeout"

    @pytest.mark.asyncio
    async def test_failure_passes_through_before_timeout(self):
        calls = []
        seq = Sequence().push(fail_with(RuntimeError("early")))
        seq.set_timeout(lambda dfr: calls.append(1), 0.05)
        with pytest.raises(RuntimeError):
            await seq.promise()
        await asyncio.sleep(0.08)
        assert calls == []

    @pytest.mark.asyncio
    async def test_no_handler_raises_timeout(self):
        seq = Sequence([lambda dfr: None, {"timeout": None, "duration": 0.01}])
        with pytest.raises(TimeoutExpired) as exc_info:
            await seq.promise()
        assert exc_info.value.timeout == 0.01

    @pytest.mark.asyncio
    async def test_timer_starts_at_call_time(self):
        gate = asyncio.get_running_loop().create_future()
        seq = Sequence().push(lambda dfr: dfr.adopt(gate))
        seq.set_timeout(lambda dfr: dfr.resolve("timeout"), 0.02)
        seq.push(lambda dfr: dfr.adopt(asyncio.sleep(0.05, result="slow")))
        seq.set_timeout(lambda dfr: dfr.resolve("second timeout"), 0.03)
        gate.set_result("ok")
        assert await seq.promise() == "second timeout"


class TestWhenEmpty:

    @pytest.mark.asyncio
    async def test_runs_after_everything_queued(self):
        order = []
        gate = asyncio.get_running_loop().create_future()
        seq = Sequence().push(lambda dfr: dfr.adopt(gate))
        seq.when_empty(lambda dfr, payload: (order.append(("empty", payload)), dfr.resolve("idle")))
        seq.push(lambda dfr, payload: (order.append(("step", payload)), dfr.resolve("last")))
        gate.set_result("first")
        await flush()
        assert order == [("step", "first"), ("empty", "last")]
        assert await seq.promise() == "idle"

    @pytest.mark.asyncio
    async def test_fires_once(self):
        calls = []
        seq = Sequence().when_empty(lambda dfr: (calls.append(1), dfr.resolve()))
        await flush()
        seq.push(lambda dfr: dfr.resolve())
        await flush()
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_fallback_on_failure(self):
        seq = Sequence().push(fail_with(RuntimeError("x")))
        seq.when_empty(lambda dfr: dfr.resolve("unused"), lambda dfr, error: dfr.resolve("recovered"))
        await flush()
        assert await seq.promise() == "recovered"

    @pytest.mark.asyncio
    async def test_failure_propagates_without_fallback(self):
        seq = Sequence().push(fail_with(RuntimeError("x")))
        seq.when_empty(lambda dfr: dfr.resolve("unused"))
        await flush()
        with pytest.raises(RuntimeError):
            await seq.promise()


class TestPushObject:

    @pytest.mark.asyncio
    async def test_descriptor_shapes(self):
        order = []
        seq = Sequence([
            lambda dfr: (order.append("callable"), dfr.resolve(1)),
            {"action": lambda dfr, value: (order.append("action"), dfr.resolve(value + 1))},
            {"timeout": lambda dfr: order.append("timeout"), "duration": 1},
            {"promise": resolved(10)},
            {"synchronous": lambda value: (order.append("synchronous"), value * 3)[1]},
        ])
        assert await seq.promise() == 30
        assert order == ["callable", "action", "synchronous"]

    @pytest.mark.asyncio
    async def test_when_empty_descriptor(self):
        seq = Sequence([{"when_empty": lambda dfr: dfr.resolve("empty")}])
        await flush()
        assert await seq.promise() == "empty"

    @pytest.mark.asyncio
    async def test_unknown_descriptor(self):
        with pytest.raises(UnknownStepError) as exc_info:
            Sequence([{"bogus": True}])
        assert exc_info.value.descriptor == {"bogus": True}

    @pytest.mark.asyncio
    async def test_non_mapping_descriptor(self):
        with pytest.raises(UnknownStepError):
            Sequence().push_object(42)

    @pytest.mark.asyncio
    async def test_steps_must_be_a_list(self):
        with pytest.raises(ConfigurationError):
            Sequence("not a list")
