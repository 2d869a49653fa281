"""Background jobs."""

from .session_refresher import SessionRefresher, read_state_file, write_state_file

__all__ = ["SessionRefresher", "read_state_file", "write_state_file"]
