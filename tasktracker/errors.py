"""
Error types raised by the backend collaborators.

NetworkError marks the backend as unreachable (connection refused, DNS,
timeout). Stores treat it as "offline" and fall back to cached data or queue
the write. Any other failure reported by the backend is a BackendError.
A missing record is not an error: collaborators return None / False.
"""


class BackendError(Exception):
    """The backend answered, but with an error."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class NetworkError(BackendError):
    """The backend could not be reached."""
