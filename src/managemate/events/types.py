"""Event constants and room naming.

Broker channels are fixed; only the connection string is configurable.
Room names are part of the client contract and must not change format.
"""

# ─── Broker channels ─────────────────────────────────────

NOTIFICATIONS_CHANNEL = "notifications"
CHAT_CHANNEL = "chat"
CONFLICTS_CHANNEL = "conflicts"

BUS_CHANNELS = (NOTIFICATIONS_CHANNEL, CHAT_CHANNEL, CONFLICTS_CHANNEL)

# ─── Gateway → client event names ────────────────────────

NOTIFICATION_EVENT = "notification"
CHAT_MESSAGE_EVENT = "chat-message"
TASK_CONFLICT_EVENT = "task-conflict"

# ─── Client → gateway control messages ───────────────────

SUBSCRIBE = "subscribe"
UNSUBSCRIBE = "unsubscribe"
PING = "ping"
PONG = "pong"

# ─── Notification types (persisted on the notification row) ──

TASK_ASSIGNED = "TaskAssigned"
STATUS_UPDATE = "StatusUpdate"
CONFLICT_DETECTED = "ConflictDetected"

NOTIFICATION_TYPES = (TASK_ASSIGNED, STATUS_UPDATE, CONFLICT_DETECTED)

# Types that are summarised in the hourly email digest
CRITICAL_NOTIFICATION_TYPES = (TASK_ASSIGNED, CONFLICT_DETECTED)


def chat_room(module_id) -> str:
    """Room for chat messages scoped to a module."""
    return f"chat:{module_id}"


def user_room(user_id) -> str:
    """Room for events scoped to a single user."""
    return f"user:{user_id}"
