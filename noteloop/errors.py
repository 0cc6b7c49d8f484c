"""Error types raised by the transport and destination layers.

None of these are allowed to escape into the sequencer timeline.  The
:class:`~noteloop.output_channel.OutputChannel` and
:class:`~noteloop.session.Session` catch them, log them, and carry on.
"""


class NoteloopError(Exception):
	pass


class DeviceUnavailable(NoteloopError):

	"""No transport capability could be opened (MIDI backend missing or broken)."""


class NoDestinationSelected(NoteloopError):

	"""A send was attempted while no destination was active."""


class SendFailure(NoteloopError):

	"""The transport rejected a specific message."""


class NotFound(NoteloopError):

	"""A destination key did not match any known destination."""

	def __init__ (self, key: str) -> None:

		super().__init__(f"Destination {key!r} not found")
		self.key = key
