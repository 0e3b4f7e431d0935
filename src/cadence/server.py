import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from cadence.application.config import ConfigSettingsProvider, resolve_config
from cadence.application.preview import IntervalPreviewService
from cadence.application.scheduler import CardScheduler
from cadence.consts import VERSION
from cadence.domain.errors import CadenceError, PreviewComputationError
from cadence.domain.models import CardSchedule, CardState, Rating
from cadence.domain.settings import SchedulerSettings

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cadence.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Cadence Server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("Cadence Server shutting down...")


app = FastAPI(
    title="Cadence Server",
    description="Interval previews and dry-run scheduling for study clients.",
    version=VERSION,
    lifespan=lifespan,
)

scheduler = CardScheduler()
preview_service = IntervalPreviewService(scheduler)


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


start_time = time.time()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


class CardScheduleModel(BaseModel):
    state: CardState
    due_at: datetime
    step_index: int = 0
    interval_days: int = 0
    ease: float = 0.0
    lapses: int = 0
    reps: int = 0
    suspended_from: CardState | None = None

    def to_domain(self) -> CardSchedule:
        return CardSchedule(**self.model_dump())

    @classmethod
    def from_domain(cls, schedule: CardSchedule) -> "CardScheduleModel":
        return cls(**asdict(schedule))


class SettingsMixin(BaseModel):
    # If None, use the configured settings for user_id.
    settings: dict[str, Any] | None = None
    learning_mode: str | None = None
    user_id: str | None = None
    now: datetime | None = None


class PreviewRequest(SettingsMixin):
    card: CardScheduleModel


class PreviewResponse(BaseModel):
    again: str
    hard: str
    good: str
    easy: str


class ScheduleRequest(SettingsMixin):
    card: CardScheduleModel
    rating: Rating


class ScheduleResponse(BaseModel):
    card: CardScheduleModel


@lru_cache(maxsize=1)
def configured_settings() -> ConfigSettingsProvider:
    """Settings provider over the configuration resolved on first use."""
    config = resolve_config()
    logger.info(f"Loaded configuration (learning_mode={config.learning_mode})")
    return ConfigSettingsProvider(config)


def _resolve_settings(req: SettingsMixin) -> SchedulerSettings:
    if req.settings is None and req.learning_mode is None:
        return configured_settings().load_settings(req.user_id)

    overrides = req.settings or {}
    if req.learning_mode:
        return SchedulerSettings.from_preset(req.learning_mode, **overrides)
    return SchedulerSettings.from_mapping(overrides)


@app.post("/preview", response_model=PreviewResponse)
async def preview_intervals(req: PreviewRequest):
    """
    Preview what each rating would schedule. Display only, nothing is stored.
    """
    try:
        settings = _resolve_settings(req)
        now = req.now or datetime.now(timezone.utc)
        result = preview_service.preview(req.card.to_domain(), settings, now)
    except PreviewComputationError as e:
        logger.error(f"Preview failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e
    except CadenceError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    return PreviewResponse(**result.as_dict())


@app.post("/schedule", response_model=ScheduleResponse)
async def schedule_card(req: ScheduleRequest):
    """
    Compute the next schedule for a rating without persisting it.
    """
    try:
        settings = _resolve_settings(req)
        now = req.now or datetime.now(timezone.utc)
        new_state = scheduler.schedule(req.card.to_domain(), req.rating, settings, now)
    except CadenceError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    return ScheduleResponse(card=CardScheduleModel.from_domain(new_state))
