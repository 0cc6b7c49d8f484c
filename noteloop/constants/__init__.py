"""Constants for noteloop.

This package contains two sets of constants:

- ``noteloop.constants.midi`` - Channel-voice status bytes, controller numbers and ranges
- ``noteloop.constants.timing`` - Tempo limits, sustain and visual-feedback windows

Everything here is a plain module-level value so it can be imported anywhere
without pulling in the rest of the package.
"""
