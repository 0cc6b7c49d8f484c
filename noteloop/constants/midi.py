"""MIDI protocol constants.

Only the handful of channel-voice messages the sequencer emits are covered:
note-on, note-off and control change.  Channels are **0-indexed** (0-15), so
channel 0 here is "channel 1" on most hardware front panels.
"""

# Status bytes (high nibble), OR with the channel number
NOTE_OFF = 0x80
NOTE_ON = 0x90
CONTROL_CHANGE = 0xB0

# Controllers
ALL_NOTES_OFF = 123

# Channels
CHANNEL_COUNT = 16
DEFAULT_CHANNEL = 0

# Velocity
DEFAULT_VELOCITY = 100
NOTE_OFF_VELOCITY = 0

# Note numbers (C4 = 60, Middle C)
MIN_NOTE = 0
MAX_NOTE = 127
MIDDLE_C = 60
MIDDLE_C_OCTAVE = 4
SEMITONES_PER_OCTAVE = 12
