"""Chat bot plugins: reminders, group management, MIDI note games and web lookups."""

__version__ = "0.1.0"