"""The 3-byte message send capability the output channel depends on.

:class:`Transport` is the contract: ``open()`` hands back a capability,
``send()`` delivers one channel-voice message (status, data1, data2) to a
destination handle through that capability, and ``close()`` releases it.

:class:`MidoTransport` is the implementation used in practice.  Its
capability is a :class:`PortPool` that opens one ``mido`` output port per
destination name on first use and keeps it open for reuse.
"""

import logging
import threading
import typing

import mido

import noteloop.errors


logger = logging.getLogger(__name__)


@typing.runtime_checkable
class Transport (typing.Protocol):

	"""
	Protocol for anything that can deliver raw channel-voice messages.
	"""

	def open (self) -> typing.Any:

		"""Return a send capability or raise :class:`~noteloop.errors.DeviceUnavailable`."""

		...

	def send (self, capability: typing.Any, handle: typing.Any, data: typing.Sequence[int]) -> None:

		"""Send three bytes to ``handle`` or raise :class:`~noteloop.errors.SendFailure`."""

		...

	def close (self, capability: typing.Any) -> None:

		"""Release a capability returned by :meth:`open`."""

		...


class PortPool:

	"""
	Lazily opened mido output ports, keyed by port name.
	"""

	def __init__ (self) -> None:

		self._ports: typing.Dict[str, typing.Any] = {}
		self._lock = threading.Lock()
		self.closed = False

	def get (self, name: str) -> typing.Any:

		"""Return the open port for ``name``, opening it on first use."""

		with self._lock:

			if self.closed:
				raise noteloop.errors.SendFailure("Port pool is closed")

			port = self._ports.get(name)

			if port is None:
				try:
					port = mido.open_output(name)
				except Exception as e:
					raise noteloop.errors.SendFailure(f"Could not open MIDI output {name!r}: {e}") from e

				self._ports[name] = port
				logger.info(f"Opened MIDI output: {name}")

			return port

	def discard (self, name: str) -> None:

		"""Close and forget one port, e.g. after it failed."""

		with self._lock:
			port = self._ports.pop(name, None)

		if port is not None:
			_close_quietly(name, port)

	def close (self) -> None:

		"""Close every open port. The pool cannot be reused afterwards."""

		with self._lock:
			ports = self._ports
			self._ports = {}
			self.closed = True

		for name, port in ports.items():
			_close_quietly(name, port)

	@property
	def open_names (self) -> typing.List[str]:

		with self._lock:
			return list(self._ports)


def _close_quietly (name: str, port: typing.Any) -> None:

	try:
		port.close()
		logger.info(f"Closed MIDI output: {name}")
	except Exception:
		logger.exception(f"Failed to close MIDI output {name!r}")


class MidoTransport:

	"""
	Transport backed by mido output ports.

	Destination handles are mido output port names.
	"""

	def open (self) -> PortPool:

		"""
		Check that a MIDI backend is usable and return a fresh port pool.

		Raises:
			DeviceUnavailable: If the backend cannot enumerate outputs.
		"""

		try:
			outputs = mido.get_output_names()
		except Exception as e:
			raise noteloop.errors.DeviceUnavailable(f"MIDI backend unavailable: {e}") from e

		logger.info(f"MIDI backend ready ({len(outputs)} outputs available)")

		return PortPool()

	def send (self, capability: PortPool, handle: str, data: typing.Sequence[int]) -> None:

		"""
		Send one 3-byte channel-voice message to the named port.

		Raises:
			SendFailure: For malformed bytes, an unknown port, a closed pool or
				a backend error.  A port that fails mid-send is discarded so
				the next send reopens it.
		"""

		if len(data) != 3:
			raise noteloop.errors.SendFailure(f"Expected a 3-byte message, got {len(data)} bytes")

		try:
			message = mido.Message.from_bytes(list(data))
		except (ValueError, TypeError) as e:
			raise noteloop.errors.SendFailure(f"Invalid MIDI bytes {list(data)}: {e}") from e

		port = capability.get(handle)

		try:
			port.send(message)
		except Exception as e:
			capability.discard(handle)
			raise noteloop.errors.SendFailure(f"MIDI send to {handle!r} failed (device may be disconnected): {e}") from e

	def close (self, capability: PortPool) -> None:

		"""Close every port the pool opened."""

		capability.close()
