import asyncio

from sales_hub.services.poller import PendingConfirmationPoller


class TestPoller:
    def test_ticks_until_stopped(self):
        """Checks run immediately and then every interval until stop()."""
        calls = []

        async def check():
            calls.append(1)

        async def scenario():
            poller = PendingConfirmationPoller(check, interval=0.01)
            poller.start()
            await asyncio.sleep(0.05)
            assert poller.running
            await poller.aclose()
            seen = len(calls)
            await asyncio.sleep(0.03)
            return poller, seen

        poller, seen = asyncio.run(scenario())
        assert seen >= 2
        assert len(calls) == seen
        assert not poller.running

    def test_errors_are_swallowed(self):
        """A raising check does not end the loop."""
        calls = []

        async def check():
            calls.append(1)
            raise RuntimeError("backend down")

        async def scenario():
            poller = PendingConfirmationPoller(check, interval=0.01)
            poller.start()
            await asyncio.sleep(0.05)
            running = poller.running
            await poller.aclose()
            return running

        assert asyncio.run(scenario()) is True
        assert len(calls) >= 2

    def test_stop_from_inside_check(self):
        """Stopping during a tick ends the loop after that tick."""
        calls = []
        holder = {}

        async def check():
            calls.append(1)
            holder["poller"].stop()

        async def scenario():
            poller = PendingConfirmationPoller(check, interval=0.01)
            holder["poller"] = poller
            poller.start()
            await asyncio.sleep(0.05)
            return poller

        poller = asyncio.run(scenario())
        assert calls == [1]
        assert not poller.running

    def test_restart_replaces_previous_run(self):
        """start() twice leaves exactly one live task."""
        async def check():
            pass

        async def scenario():
            poller = PendingConfirmationPoller(check, interval=60)
            poller.start()
            first = poller._task
            poller.start()
            await asyncio.sleep(0.01)
            live = poller.running
            await poller.aclose()
            return first, live

        first, live = asyncio.run(scenario())
        assert first.cancelled()
        assert live

    def test_aclose_cancels_run_finishing_its_tick(self):
        """A run that stopped itself but is still inside check() is cancelled by aclose()."""
        holder = {}
        finished = []

        async def check():
            holder["poller"].stop()
            await asyncio.sleep(5)
            finished.append(1)

        async def scenario():
            poller = PendingConfirmationPoller(check, interval=0.01)
            holder["poller"] = poller
            poller.start()
            task = poller._task
            await asyncio.sleep(0.02)
            assert not poller.running
            assert not task.done()
            await poller.aclose()
            return task

        task = asyncio.run(scenario())
        assert task.cancelled()
        assert finished == []
