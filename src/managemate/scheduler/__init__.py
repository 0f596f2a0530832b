"""Scheduled jobs — run on the server's event loop, not per request.

Learn: Two recurring jobs feed the realtime layer:
- conflicts: every 30 minutes, flag overlapping tasks per assignee and
  publish task-conflict events for tasks whose flag changed
- digest: every hour, email each user a summary of unread critical
  notifications

A failing run is logged and the next run happens on schedule.
"""
