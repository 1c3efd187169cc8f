"""API routes package."""

from skoolife.api.routes import (
    auth,
    events,
    files,
    invites,
    schools,
    sessions,
    subjects,
    subscription,
)

__all__ = [
    "auth",
    "events",
    "files",
    "invites",
    "schools",
    "sessions",
    "subjects",
    "subscription",
]
