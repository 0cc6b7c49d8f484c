import asyncio
import inspect
import logging
import typing


logger = logging.getLogger(__name__)

CallbackType = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	Publishes named state changes to any number of listeners.

	This is the outward face of the core: a presentation layer subscribes to
	``"tempo"``, ``"running"``, ``"pitch"`` or ``"destination"`` instead of
	observing fields directly.
	"""

	def __init__ (self) -> None:

		"""
		Initialize an empty event registry.
		"""

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}


	def on (self, event_name: str, callback: CallbackType) -> None:

		"""
		Register a callback for an event name.
		"""

		if event_name not in self._listeners:
			self._listeners[event_name] = []

		self._listeners[event_name].append(callback)

	def off (self, event_name: str, callback: CallbackType) -> None:

		"""
		Unregister a previously registered callback.

		Raises ``ValueError`` if the callback is not registered for the event.
		"""

		if event_name not in self._listeners or callback not in self._listeners[event_name]:
			raise ValueError(f"Callback not registered for event {event_name!r}")

		self._listeners[event_name].remove(callback)


	def listener_count (self, event_name: str) -> int:

		"""Number of callbacks registered for an event."""

		return len(self._listeners.get(event_name, []))


	def emit (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Notify every listener of an event.

		Plain callbacks run immediately.  Coroutine functions are scheduled as
		tasks on the running event loop; with no loop running they are skipped
		with a warning.  A listener that raises is logged and does not stop
		the others, so observers can never break the sequencer timeline.
		"""

		if event_name not in self._listeners:
			return

		for callback in list(self._listeners[event_name]):

			try:

				if inspect.iscoroutinefunction(callback):
					try:
						loop = asyncio.get_running_loop()
					except RuntimeError:
						logger.warning(f"No running event loop - async listener for {event_name!r} skipped")
						continue

					loop.create_task(callback(*args, **kwargs))

				else:
					callback(*args, **kwargs)

			except Exception:
				logger.exception(f"Listener for {event_name!r} failed")
