"""Energy assistant chat: completion relay and conversation manager."""

__version__ = "0.1.0"
