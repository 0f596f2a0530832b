"""Bus events — channel names, room naming and the typed event models."""
