# Application Package
from .preview import IntervalPreviewService, format_interval
from .scheduler import CardScheduler, clamp_interval, schedule
from .session_builder import build_session_queue, select_session_cards
from .study_queue import SESSION_COMPLETE, SessionComplete, StudyQueueManager

__all__ = [
    "CardScheduler",
    "IntervalPreviewService",
    "StudyQueueManager",
    "SessionComplete",
    "SESSION_COMPLETE",
    "build_session_queue",
    "select_session_cards",
    "clamp_interval",
    "format_interval",
    "schedule",
]
