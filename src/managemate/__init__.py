"""ManageMate realtime — live notification fan-out for the project tracker.

Producers (HTTP handlers, scheduled jobs) publish events to Redis. A single
bridge per process subscribes to those channels and hands each event to the
WebSocket gateway, which delivers it to the rooms that asked for it.
"""

__version__ = "0.1.0"
