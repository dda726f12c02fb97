"""Tests for the rate-limited call gate."""

import asyncio
import logging

import pytest
from notion_fakes import http_error

from notion_blog.gate import CallGate, Result, describe_error


class TestResult:
    def test_value(self):
        result = Result(value=3)
        assert result.ok
        assert result.unwrap_or_none() == 3

    def test_error(self):
        result = Result(error=ValueError("x"))
        assert not result.ok
        assert result.unwrap_or_none() is None


class TestCall:
    """Tests for CallGate.call."""

    def test_returns_value(self):
        async def run():
            gate = CallGate(limit=1000)

            async def upstream():
                return {"ok": True}

            return await gate.call(upstream), gate

        value, gate = asyncio.run(run())
        assert value == {"ok": True}
        assert gate.calls == 1
        assert gate.failures == 0

    def test_failure_becomes_none(self, caplog):
        async def run():
            gate = CallGate(limit=1000)

            async def upstream():
                raise http_error(404)

            return await gate.call(upstream), gate

        with caplog.at_level(logging.ERROR, logger="notion_blog.gate"):
            value, gate = asyncio.run(run())
        assert value is None
        assert gate.failures == 1
        assert any("HTTP 404" in r.getMessage() for r in caplog.records)

    def test_attempt_keeps_error(self):
        async def run():
            gate = CallGate(limit=1000)

            async def upstream():
                raise KeyError("missing")

            return await gate.attempt(upstream)

        result = asyncio.run(run())
        assert isinstance(result.error, KeyError)

    def test_gather_preserves_order_and_isolates_failures(self):
        async def run():
            gate = CallGate(limit=1000)

            def make(i):
                async def upstream():
                    await asyncio.sleep(0.01 * (3 - i))
                    if i == 1:
                        raise RuntimeError("boom")
                    return i
                return upstream

            return await gate.gather(*(make(i) for i in range(4)))

        assert asyncio.run(run()) == [0, None, 2, 3]

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            CallGate(limit=0)

    def test_gate_built_outside_loop(self):
        gate = CallGate(limit=1000)

        async def upstream():
            return 1

        assert asyncio.run(gate.call(upstream)) == 1


class TestAdmission:
    """Sliding-window and concurrency limits."""

    def test_sliding_window(self):
        async def run():
            gate = CallGate(limit=2, interval=0.2)
            loop = asyncio.get_running_loop()
            starts = []

            async def upstream():
                starts.append(loop.time())

            begin = loop.time()
            await gate.gather(*([upstream] * 5))
            return [s - begin for s in starts]

        starts = asyncio.run(run())
        assert len(starts) == 5
        # No window of 0.2s contains more than two starts
        for idx in range(2, len(starts)):
            assert starts[idx] - starts[idx - 2] >= 0.2 - 0.02
        assert starts[1] < 0.1
        assert starts[4] >= 0.4 - 0.02

    def test_fifo_order(self):
        async def run():
            gate = CallGate(limit=1, interval=0.02)
            order = []

            def make(i):
                async def upstream():
                    order.append(i)
                return upstream

            await gate.gather(*(make(i) for i in range(6)))
            return order

        assert asyncio.run(run()) == list(range(6))

    def test_max_concurrency(self):
        async def run():
            gate = CallGate(limit=1000, max_concurrency=2)
            in_flight = 0
            peak = 0

            async def upstream():
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.02)
                in_flight -= 1

            await gate.gather(*([upstream] * 6))
            return peak

        assert asyncio.run(run()) == 2


def test_describe_error():
    assert describe_error(http_error(429)).startswith("HTTP 429")
    assert describe_error(ValueError("bad")) == "ValueError: bad"
