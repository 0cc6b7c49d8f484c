"""Time-ordered delay queue driving every deferred action in noteloop.

The periodic sequencer tick, the delayed note-off and the last-pitch clear are
all :class:`Timer` entries in one heap.  Two concrete schedulers share that
heap logic:

- :class:`ManualScheduler` keeps simulated time.  Tests call
  ``advance(seconds)`` and every timer that falls due fires in order, with
  ``now()`` reporting the timer's own deadline while it runs.
- :class:`RealtimeScheduler` follows ``time.perf_counter()`` and is driven by
  an asyncio loop (``await scheduler.run()``) that sleeps until the next
  deadline.

Timers may be armed or cancelled from any thread.  Callbacks always run
outside the heap lock, so a callback can arm new timers freely.
"""

import asyncio
import dataclasses
import heapq
import itertools
import logging
import threading
import time
import typing


logger = logging.getLogger(__name__)


@dataclasses.dataclass (order=True)
class Timer:

	"""
	A pending callback. Ordered by deadline, then by arming order.
	"""

	deadline: float
	sequence: int
	callback: typing.Callable[..., typing.Any] = dataclasses.field(compare=False)
	args: typing.Tuple[typing.Any, ...] = dataclasses.field(compare=False, default=())
	cancelled: bool = dataclasses.field(compare=False, default=False)


	def cancel (self) -> None:

		"""Prevent the callback from running. Safe to call more than once."""

		self.cancelled = True


class Scheduler:

	"""
	Shared heap and locking for the concrete schedulers.

	Subclasses provide :meth:`now`.
	"""

	def __init__ (self) -> None:

		self._queue: typing.List[Timer] = []
		self._counter = itertools.count()
		self._lock = threading.Lock()

	def now (self) -> float:

		"""Current time in seconds on this scheduler's clock."""

		raise NotImplementedError

	def call_at (self, when: float, callback: typing.Callable[..., typing.Any], *args: typing.Any) -> Timer:

		"""Arm ``callback(*args)`` to run at absolute time ``when``."""

		with self._lock:
			timer = Timer(deadline=when, sequence=next(self._counter), callback=callback, args=args)
			heapq.heappush(self._queue, timer)
			is_earliest = self._queue[0] is timer

		if is_earliest:
			self._on_new_earliest()

		return timer

	def call_later (self, delay: float, callback: typing.Callable[..., typing.Any], *args: typing.Any) -> Timer:

		"""Arm ``callback(*args)`` to run ``delay`` seconds from now."""

		return self.call_at(self.now() + max(0.0, delay), callback, *args)

	def pending (self) -> int:

		"""Number of armed timers that have not been cancelled."""

		with self._lock:
			return sum(1 for timer in self._queue if not timer.cancelled)

	def next_deadline (self) -> typing.Optional[float]:

		"""Deadline of the earliest live timer, or ``None`` when idle."""

		with self._lock:
			self._discard_cancelled()
			return self._queue[0].deadline if self._queue else None

	def clear (self) -> None:

		"""Cancel and drop every pending timer."""

		with self._lock:
			for timer in self._queue:
				timer.cancel()
			self._queue = []

	def _discard_cancelled (self) -> None:

		while self._queue and self._queue[0].cancelled:
			heapq.heappop(self._queue)

	def _pop_due (self, when: float) -> typing.Optional[Timer]:

		"""Pop the earliest live timer due at or before ``when``."""

		with self._lock:
			self._discard_cancelled()

			if self._queue and self._queue[0].deadline <= when:
				return heapq.heappop(self._queue)

		return None

	def _fire (self, timer: Timer) -> None:

		"""Run a timer's callback. Failures are logged, never propagated."""

		if timer.cancelled:
			return

		try:
			timer.callback(*timer.args)
		except Exception:
			logger.exception(f"Scheduled callback {getattr(timer.callback, '__name__', timer.callback)!r} failed")

	def _on_new_earliest (self) -> None:

		"""Hook for subclasses that need waking when the head of the queue changes."""

		return None


class ManualScheduler (Scheduler):

	"""Simulated clock for deterministic tests. Time only moves on :meth:`advance`."""

	def __init__ (self, start: float = 0.0) -> None:

		super().__init__()
		self._now = start

	def now (self) -> float:

		return self._now

	def advance (self, seconds: float) -> int:

		"""Move the clock forward and fire everything that falls due. Returns the number fired."""

		if seconds < 0:
			raise ValueError("Cannot advance time backwards")

		return self.advance_to(self._now + seconds)

	def advance_to (self, when: float) -> int:

		"""Move the clock to ``when``, firing due timers in deadline order."""

		if when < self._now:
			raise ValueError("Cannot advance time backwards")

		fired = 0

		while True:
			timer = self._pop_due(when)

			if timer is None:
				break

			self._now = max(self._now, timer.deadline)
			self._fire(timer)
			fired += 1

		self._now = when
		return fired


class RealtimeScheduler (Scheduler):

	"""
	Wall-clock scheduler run by an asyncio task.

	Uses a hybrid sleep+spin wait: asyncio sleeps until the loop is
	within ``spin_threshold`` of the next deadline, then busy-waits the rest.
	"""

	def __init__ (self, spin_wait: bool = True, spin_threshold: float = 0.001, idle_timeout: float = 0.5) -> None:

		"""
		Parameters:
			spin_wait: Busy-wait the final ``spin_threshold`` seconds before
				each deadline for tighter timing at a small CPU cost.
			spin_threshold: Spin window in seconds.
			idle_timeout: Longest sleep when the queue is empty.
		"""

		super().__init__()
		self.spin_wait = spin_wait
		self.spin_threshold = spin_threshold
		self.idle_timeout = idle_timeout
		self.running = False
		self._loop: typing.Optional[asyncio.AbstractEventLoop] = None
		self._wakeup: typing.Optional[asyncio.Event] = None

	def now (self) -> float:

		return time.perf_counter()

	def stop (self) -> None:

		"""Ask :meth:`run` to return. Timers still pending stay armed."""

		self.running = False
		self._on_new_earliest()

	def _on_new_earliest (self) -> None:

		loop = self._loop
		wakeup = self._wakeup

		if loop is None or wakeup is None or loop.is_closed():
			return

		try:
			running_loop = asyncio.get_running_loop()
		except RuntimeError:
			running_loop = None

		if running_loop is loop:
			wakeup.set()
		else:
			loop.call_soon_threadsafe(wakeup.set)

	async def run (self) -> None:

		"""Fire timers as they fall due until :meth:`stop` is called."""

		self._loop = asyncio.get_running_loop()
		self._wakeup = asyncio.Event()
		self.running = True

		logger.debug("Realtime scheduler running")

		try:
			while self.running:

				# Cleared before reading the queue so an arm from another thread is never missed
				self._wakeup.clear()
				timer = self._pop_due(self.now())

				if timer is not None:
					self._fire(timer)
					continue

				deadline = self.next_deadline()
				timeout = self.idle_timeout if deadline is None else deadline - self.now()

				if timeout <= 0:
					continue

				if self.spin_wait and deadline is not None and timeout <= self.spin_threshold:
					while self.now() < deadline:
						pass
					continue

				sleep_for = timeout - self.spin_threshold if (self.spin_wait and deadline is not None) else timeout

				try:
					await asyncio.wait_for(self._wakeup.wait(), timeout=sleep_for)
				except asyncio.TimeoutError:
					pass

		finally:
			self.running = False
			self._loop = None
			self._wakeup = None
			logger.debug("Realtime scheduler stopped")
