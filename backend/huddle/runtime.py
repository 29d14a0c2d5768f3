"""Process-wide runtime state shared by REST and WebSocket handlers."""

from __future__ import annotations

from huddle.core.config import Settings
from huddle.core.config import load_settings
from huddle.sessions.cleanup import CleanupScheduler
from huddle.sessions.registry import SessionRegistry
from huddle.ws.broadcast import evict_room


def build_registry(settings: Settings) -> SessionRegistry:
    return SessionRegistry(
        max_members=settings.huddle_max_members,
        max_username_length=settings.huddle_max_username_length,
        code_attempts=settings.huddle_code_attempts,
    )


def build_scheduler(settings: Settings, registry: SessionRegistry) -> CleanupScheduler:
    return CleanupScheduler(
        registry,
        evict=evict_room,
        grace_seconds=settings.huddle_empty_grace_seconds,
        max_age_seconds=settings.huddle_max_session_age_seconds,
        sweep_interval_seconds=settings.huddle_sweep_interval_seconds,
        end_delay_seconds=settings.huddle_end_disconnect_delay_seconds,
    )


settings = load_settings()
session_registry = build_registry(settings)
cleanup_scheduler = build_scheduler(settings, session_registry)


def startup() -> None:
    """Reload settings and reset in-memory session runtime state."""
    global settings, session_registry, cleanup_scheduler
    settings = load_settings()
    session_registry = build_registry(settings)
    cleanup_scheduler = build_scheduler(settings, session_registry)


__all__ = [
    "Settings",
    "cleanup_scheduler",
    "session_registry",
    "settings",
    "startup",
]
