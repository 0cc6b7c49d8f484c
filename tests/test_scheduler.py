import asyncio
import threading
import typing

import pytest

import noteloop.scheduler


def test_timers_fire_in_deadline_order (scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""Timers should fire by deadline, ties in arming order."""

	fired: typing.List[str] = []

	scheduler.call_later(0.3, fired.append, "c")
	scheduler.call_later(0.1, fired.append, "a")
	scheduler.call_later(0.2, fired.append, "b1")
	scheduler.call_later(0.2, fired.append, "b2")

	assert scheduler.advance(1.0) == 4
	assert fired == ["a", "b1", "b2", "c"]


def test_advance_only_fires_due_timers (scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""A timer after the target time should stay pending."""

	fired: typing.List[float] = []

	scheduler.call_later(0.5, lambda: fired.append(scheduler.now()))
	scheduler.call_later(2.0, lambda: fired.append(scheduler.now()))

	scheduler.advance(1.0)

	assert fired == [0.5]
	assert scheduler.now() == 1.0
	assert scheduler.pending() == 1


def test_now_is_deadline_during_callback (scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""Timers armed from a callback should be relative to that callback's deadline."""

	times: typing.List[float] = []

	def repeat () -> None:
		times.append(scheduler.now())
		if len(times) < 4:
			scheduler.call_later(0.25, repeat)

	scheduler.call_later(0.25, repeat)
	scheduler.advance(5.0)

	assert times == [0.25, 0.5, 0.75, 1.0]


def test_cancelled_timer_does_not_fire (scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""cancel() should stop a timer from running and be repeatable."""

	fired: typing.List[int] = []

	timer = scheduler.call_later(0.1, fired.append, 1)
	timer.cancel()
	timer.cancel()

	scheduler.advance(1.0)

	assert fired == []
	assert scheduler.pending() == 0


def test_failing_callback_does_not_stop_the_timeline (scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""An exception in one callback should be logged and later timers still fire."""

	fired: typing.List[int] = []

	def boom () -> None:
		raise RuntimeError("boom")

	scheduler.call_later(0.1, boom)
	scheduler.call_later(0.2, fired.append, 2)

	scheduler.advance(1.0)

	assert fired == [2]


def test_advance_backwards_raises (scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""Simulated time should never move backwards."""

	scheduler.advance(1.0)

	with pytest.raises(ValueError):
		scheduler.advance(-0.5)

	with pytest.raises(ValueError):
		scheduler.advance_to(0.5)


def test_next_deadline_skips_cancelled (scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""next_deadline() should ignore cancelled timers."""

	first = scheduler.call_at(1.0, lambda: None)
	scheduler.call_at(2.0, lambda: None)

	first.cancel()

	assert scheduler.next_deadline() == 2.0

	scheduler.clear()

	assert scheduler.next_deadline() is None


@pytest.mark.asyncio
async def test_realtime_scheduler_fires_and_stops () -> None:

	"""The realtime loop should fire timers close to their deadlines and return on stop()."""

	scheduler = noteloop.scheduler.RealtimeScheduler()
	fired: typing.List[float] = []

	start = scheduler.now()
	scheduler.call_later(0.02, lambda: fired.append(scheduler.now() - start))
	scheduler.call_later(0.04, lambda: fired.append(scheduler.now() - start))
	scheduler.call_later(0.05, scheduler.stop)

	await asyncio.wait_for(scheduler.run(), timeout=2.0)

	assert len(fired) == 2
	assert fired[0] >= 0.02
	assert fired[1] >= 0.04
	assert scheduler.running is False


@pytest.mark.asyncio
async def test_realtime_scheduler_wakes_for_timer_from_thread () -> None:

	"""A timer armed from another thread while the loop is idle should fire promptly."""

	scheduler = noteloop.scheduler.RealtimeScheduler(spin_wait=False, idle_timeout=5.0)
	fired = asyncio.Event()
	loop = asyncio.get_running_loop()

	def arm () -> None:
		scheduler.call_later(0.0, lambda: loop.call_soon(fired.set))

	task = asyncio.create_task(scheduler.run())
	await asyncio.sleep(0.01)

	thread = threading.Thread(target=arm)
	thread.start()
	thread.join()

	await asyncio.wait_for(fired.wait(), timeout=1.0)

	scheduler.stop()
	await asyncio.wait_for(task, timeout=1.0)
