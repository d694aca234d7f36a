"""Error types shared by the tracker and the editor."""

from __future__ import annotations


class TrackerError(Exception):
    """Base exception for ptracker errors."""

    pass


class NotAuthenticated(TrackerError):
    """Raised when an operation needs a signed-in user and there is none."""

    def __init__(self) -> None:
        super().__init__("Not authenticated")


class RemoteCallFailed(TrackerError):
    """Raised when a store or identity call fails."""

    pass


class SessionAlreadyActive(TrackerError):
    """Raised when starting a session while another one is running."""

    def __init__(self, option_id: str) -> None:
        super().__init__(f"An activity is already running ({option_id}). Stop or switch it first.")
        self.option_id = option_id
