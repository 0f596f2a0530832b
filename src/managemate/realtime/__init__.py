"""Real-time infrastructure — Redis pub/sub + WebSocket rooms.

Learn: Events flow through two hops:
1. Producers → Redis PUBLISH on a fixed channel (notifications, chat, conflicts)
2. Redis SUBSCRIBE (one bridge per process) → gateway → WebSocket rooms

Rooms are joined by the client. The gateway only knows which connections
are in which room; it never talks back to Redis about membership.
"""
