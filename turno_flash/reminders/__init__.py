"""
Scheduled reminder dispatch.

Currently includes:
- ReminderScheduler: daily trigger of the `send-reminders` edge function
- `python -m turno_flash.reminders` runs the scheduler until interrupted
"""

from .scheduler import ReminderScheduler

__all__ = ["ReminderScheduler"]
