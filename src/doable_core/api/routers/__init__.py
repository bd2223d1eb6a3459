"""API routers for Doable Core."""

from . import chat, invitations

__all__ = ["chat", "invitations"]
