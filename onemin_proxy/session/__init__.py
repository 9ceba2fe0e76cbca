"""Upstream session context resolution."""

from .resolver import TEAM_ID_PATHS, SessionContextResolver, first_present

__all__ = ["SessionContextResolver", "TEAM_ID_PATHS", "first_present"]
