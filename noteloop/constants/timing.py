"""Tempo limits and fixed time windows, in BPM and seconds."""

MIN_BPM = 60.0
MAX_BPM = 240.0
DEFAULT_BPM = 120.0

MIN_OCTAVE = 2
MAX_OCTAVE = 6
DEFAULT_OCTAVE = 4

# How long each generated note sounds before its note-off
NOTE_SUSTAIN = 0.2

# How long lastPlayedPitch stays visible after a note
PITCH_DISPLAY_WINDOW = 0.2
