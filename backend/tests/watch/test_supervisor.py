"""Tests for WatcherSupervisor lifecycle and overlap guarantees."""

import asyncio

import pytest

from app.watch.errors import WatcherRestartTimeout
from app.watch.models import WatcherState
from app.watch.multiplexer import SubscriptionMultiplexer
from app.watch.resource import AutomationResource
from app.watch.supervisor import WatcherSupervisor


def _make_supervisor(driver, wanted=None, restart_timeout=2.0):
    resource = AutomationResource(driver)
    multiplexer = SubscriptionMultiplexer()
    supervisor = WatcherSupervisor(
        resource,
        multiplexer.publish,
        poll_interval=0.01,
        read_timeout=0.5,
        restart_timeout=restart_timeout,
        is_wanted=wanted.__contains__ if wanted is not None else None,
    )
    return supervisor, resource, multiplexer


@pytest.mark.asyncio
class TestWatcherSupervisor:
    """Unit tests for ensure_watcher / mark_for_stop / reconcile."""

    async def test_ensure_starts_running_watcher(self, driver):
        """Test that ensure starts a running watcher."""
        supervisor, resource, _ = _make_supervisor(driver)
        driver.script("BTCUSDT", "100")

        assert await supervisor.ensure_watcher("BTCUSDT") is True
        assert supervisor.get_state("BTCUSDT") is WatcherState.RUNNING
        assert supervisor.watched_tickers() == ["BTCUSDT"]
        assert resource.page_count == 1

        await supervisor.shutdown()

    async def test_ensure_is_idempotent(self, driver):
        """Test that ensure twice keeps one watcher."""
        supervisor, resource, _ = _make_supervisor(driver)
        driver.script("BTCUSDT", "100")

        await supervisor.ensure_watcher("BTCUSDT")
        watcher = supervisor.get_watcher("BTCUSDT")
        assert await supervisor.ensure_watcher("BTCUSDT") is True

        assert supervisor.get_watcher("BTCUSDT") is watcher
        assert driver.pages_opened["BTCUSDT"] == 1

        await supervisor.shutdown()

    async def test_concurrent_ensures_open_one_page(self, driver):
        """Test that concurrent ensures open one page."""
        supervisor, _, _ = _make_supervisor(driver)
        driver.open_delay = 0.02
        driver.script("BTCUSDT", "100")

        results = await asyncio.gather(*(supervisor.ensure_watcher("BTCUSDT") for _ in range(5)))

        assert all(results)
        assert driver.pages_opened["BTCUSDT"] == 1
        await supervisor.shutdown()

    async def test_invalid_symbol_is_not_fatal(self, driver):
        """Test that an invalid symbol leaves the ticker unwatched."""
        supervisor, resource, _ = _make_supervisor(driver)
        driver.invalid.add("NOPE")

        assert await supervisor.ensure_watcher("NOPE") is False
        assert supervisor.get_state("NOPE") is WatcherState.ABSENT
        assert supervisor.get_watcher("NOPE") is None
        assert not resource.is_live
        assert driver.live_sessions == 0

    async def test_mark_for_stop_without_watcher(self, driver):
        """Test marking a ticker with no watcher."""
        supervisor, _, _ = _make_supervisor(driver)
        assert supervisor.mark_for_stop("BTCUSDT") is False

    async def test_mark_for_stop_defers_cleanup_to_watcher(self, driver, wait_until):
        """Test that mark_for_stop only flips state."""
        supervisor, resource, _ = _make_supervisor(driver)
        driver.script("BTCUSDT", "100")
        await supervisor.ensure_watcher("BTCUSDT")
        watcher = supervisor.get_watcher("BTCUSDT")

        assert supervisor.mark_for_stop("BTCUSDT") is True
        # Only the state flipped; the page is still owned by the watcher
        assert watcher.state is WatcherState.STOPPING
        assert driver.open_pages["BTCUSDT"] == 1

        await wait_until(lambda: watcher.state is WatcherState.ABSENT)
        assert driver.open_pages["BTCUSDT"] == 0
        assert supervisor.get_watcher("BTCUSDT") is None
        assert not resource.is_live

    async def test_restart_waits_for_stopping_watcher(self, driver):
        """Test that a restart waits for the old watcher to finish."""
        supervisor, _, _ = _make_supervisor(driver)
        driver.script("ETHUSDT", "3100")
        await supervisor.ensure_watcher("ETHUSDT")
        old = supervisor.get_watcher("ETHUSDT")

        supervisor.mark_for_stop("ETHUSDT")
        assert await supervisor.ensure_watcher("ETHUSDT") is True

        new = supervisor.get_watcher("ETHUSDT")
        assert new is not old
        assert old.state is WatcherState.ABSENT
        assert new.state is WatcherState.RUNNING
        assert driver.max_open_pages["ETHUSDT"] == 1

        await supervisor.shutdown()

    async def test_restart_wait_is_bounded(self, driver):
        """Test that the restart wait times out."""
        supervisor, _, _ = _make_supervisor(driver, restart_timeout=0.05)
        driver.script("ETHUSDT", "3100")
        # The watcher is stuck in a read far longer than the restart timeout
        driver.read_delay = 0.3
        await supervisor.ensure_watcher("ETHUSDT")
        await asyncio.sleep(0.01)

        supervisor.mark_for_stop("ETHUSDT")
        with pytest.raises(WatcherRestartTimeout):
            await supervisor.ensure_watcher("ETHUSDT")

        await supervisor.shutdown()
        assert supervisor.get_state("ETHUSDT") is WatcherState.ABSENT

    async def test_removed_while_starting_is_abandoned(self, driver):
        """Test removal while the page is still opening."""
        supervisor, resource, _ = _make_supervisor(driver)
        driver.open_delay = 0.05
        driver.script("ETHUSDT", "3100")

        task = asyncio.create_task(supervisor.ensure_watcher("ETHUSDT"))
        await asyncio.sleep(0.01)
        assert supervisor.get_state("ETHUSDT") is WatcherState.STARTING
        supervisor.mark_for_stop("ETHUSDT")

        assert await task is False
        assert supervisor.get_state("ETHUSDT") is WatcherState.ABSENT
        assert driver.open_pages["ETHUSDT"] == 0
        assert not resource.is_live

    async def test_unwanted_ticker_is_skipped(self, driver):
        """Test that ensure skips tickers no longer requested."""
        wanted = {"BTCUSDT"}
        supervisor, _, _ = _make_supervisor(driver, wanted=wanted)

        assert await supervisor.ensure_watcher("ETHUSDT") is False
        assert driver.pages_opened["ETHUSDT"] == 0

    async def test_reconcile_starts_and_stops(self, driver, wait_until):
        """Test reconciling against a requested set."""
        supervisor, resource, _ = _make_supervisor(driver)
        driver.script("BTCUSDT", "100")
        driver.script("ETHUSDT", "200")

        supervisor.reconcile(["BTCUSDT", "ETHUSDT"])
        await supervisor.wait_for_pending()
        assert supervisor.watched_tickers() == ["BTCUSDT", "ETHUSDT"]

        supervisor.reconcile(["ETHUSDT"])
        assert supervisor.get_state("BTCUSDT") is WatcherState.STOPPING
        await wait_until(lambda: supervisor.get_state("BTCUSDT") is WatcherState.ABSENT)
        assert supervisor.watched_tickers() == ["ETHUSDT"]
        assert resource.page_count == 1

        await supervisor.shutdown()
        assert not resource.is_live

    async def test_reconcile_logs_open_failures(self, driver, caplog):
        """Test that background start failures are logged."""
        supervisor, _, _ = _make_supervisor(driver)
        driver.invalid.add("BAD")

        supervisor.reconcile(["BAD"])
        await supervisor.wait_for_pending()  # Should not raise

        assert supervisor.get_state("BAD") is WatcherState.ABSENT
        assert "invalid symbol" in caplog.text

    async def test_shutdown_is_idempotent(self, driver):
        """Test calling shutdown twice."""
        supervisor, _, _ = _make_supervisor(driver)
        await supervisor.shutdown()
        await supervisor.shutdown()

    async def test_cancelled_watcher_can_be_restarted(self, driver):
        """Test that a watcher whose task is cancelled early frees the ticker for a restart."""
        supervisor, resource, _ = _make_supervisor(driver)
        driver.script("BTCUSDT", "100")

        await supervisor.ensure_watcher("BTCUSDT")
        watcher = supervisor.get_watcher("BTCUSDT")
        watcher.task.cancel()
        await asyncio.gather(watcher.task, return_exceptions=True)
        await watcher.wait_finished(1.0)

        assert supervisor.get_watcher("BTCUSDT") is None
        assert not resource.is_live

        assert await supervisor.ensure_watcher("BTCUSDT") is True
        assert driver.pages_opened["BTCUSDT"] == 2
        assert driver.open_pages["BTCUSDT"] == 1
        await supervisor.shutdown()
