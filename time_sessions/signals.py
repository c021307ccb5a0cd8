"""
Events sent by SessionStore, with the store instance as sender.

Payload keyword arguments:
    sessions_loaded  sessions (list of TimeSession)
    session_created  session (TimeSession)
    session_updated  session (TimeSession)
    session_deleted  session_id (str)
    session_stopped  session (TimeSession)
    session_error    error (Exception), operation (str)
"""
from django.dispatch import Signal

sessions_loaded = Signal()
session_created = Signal()
session_updated = Signal()
session_deleted = Signal()
session_stopped = Signal()
session_error = Signal()
