from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Optional

import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator

from .config import Settings
from .engine import ScoringEngine
from .errors import InvalidScore, NotFound, StorageFailure
from .leaderboard import GROUP_FIELDS
from .logging import configure_logging, get_logger
from .repository import ScoreRepository

logger = get_logger(__name__)


# -----------------------
# Request bodies
# -----------------------
class CreateEvent(BaseModel):
    name: str = Field(min_length=1)


class CreateCategory(BaseModel):
    name: str = Field(min_length=1)
    weight: float = Field(ge=0, allow_inf_nan=False)


class CreateCriterion(BaseModel):
    name: str = Field(min_length=1)


class CreateCandidate(BaseModel):
    first_name: str
    middle_name: str = ""
    last_name: str
    gender: int
    candidate_number: int
    college: str = ""


class CreateJudge(BaseModel):
    name: str = Field(min_length=1)


class CreateScore(BaseModel):
    candidate_id: int
    category_id: int
    judge_id: int
    criterion_id: Optional[int] = None
    score: int = Field(ge=0)
    max: int = Field(gt=0)

    @model_validator(mode="after")
    def score_within_max(self) -> "CreateScore":
        if self.score > self.max:
            raise ValueError(f"Score {self.score} exceeds max {self.max}.")
        return self


class UpdateScore(BaseModel):
    score: int = Field(ge=0)


class CreateNote(BaseModel):
    candidate_id: int
    judge_id: int
    note: str = Field(min_length=1)


def result_dict(result) -> dict:
    out = asdict(result)
    out["indeterminate"] = result.indeterminate
    return out


# -----------------------
# App
# -----------------------
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    repository = ScoreRepository(settings.db_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        repository.init_schema()
        logger.info("Scoreboard database ready at %s", settings.db_path)
        yield

    app = FastAPI(title="Scoreboard", lifespan=lifespan)
    app.state.repository = repository
    app.state.engine = ScoringEngine(repository)

    @app.exception_handler(NotFound)
    async def _not_found(request: Request, exc: NotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidScore)
    async def _invalid_score(request: Request, exc: InvalidScore):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def _invalid_value(request: Request, exc: ValueError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(StorageFailure)
    async def _storage_failure(request: Request, exc: StorageFailure):
        logger.error("Storage failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": f"Storage failure: {exc}"})

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    repo: ScoreRepository = app.state.repository
    engine: ScoringEngine = app.state.engine

    # -----------------------
    # Routes: Events, categories, criteria
    # -----------------------
    @app.post("/events", status_code=201)
    def create_event(payload: CreateEvent):
        return asdict(repo.create_event(payload.name))

    @app.get("/events")
    def list_events():
        return [asdict(e) for e in repo.list_events()]

    @app.get("/events/{event_id}")
    def get_event(event_id: int):
        return asdict(repo.get_event(event_id))

    @app.post("/events/{event_id}/categories", status_code=201)
    def create_category(event_id: int, payload: CreateCategory):
        return asdict(repo.create_category(event_id, payload.name, payload.weight))

    @app.get("/events/{event_id}/categories")
    def list_categories(event_id: int):
        return [asdict(c) for c in repo.list_categories(event_id)]

    @app.post("/events/{event_id}/categories/{category_id}/activate")
    def activate_category(event_id: int, category_id: int):
        return asdict(repo.activate_category(event_id, category_id))

    @app.post("/categories/{category_id}/criteria", status_code=201)
    def create_criterion(category_id: int, payload: CreateCriterion):
        return asdict(repo.create_criterion(category_id, payload.name))

    @app.get("/categories/{category_id}/criteria")
    def list_criteria(category_id: int):
        return [asdict(c) for c in repo.list_criteria(category_id)]

    # -----------------------
    # Routes: Candidates, judges
    # -----------------------
    @app.post("/events/{event_id}/candidates", status_code=201)
    def create_candidate(event_id: int, payload: CreateCandidate):
        return asdict(repo.create_candidate(event_id, **payload.model_dump()))

    @app.get("/events/{event_id}/candidates")
    def list_candidates(event_id: int):
        return [asdict(c) for c in repo.list_candidates(event_id)]

    @app.get("/events/{event_id}/colleges")
    def list_colleges(event_id: int):
        return repo.list_colleges(event_id)

    @app.post("/events/{event_id}/judges", status_code=201)
    def create_judge(event_id: int, payload: CreateJudge):
        return asdict(repo.create_judge(event_id, payload.name))

    # -----------------------
    # Routes: Scores
    # -----------------------
    @app.post("/scores", status_code=201)
    def submit_score(payload: CreateScore):
        return asdict(repo.submit_score(**payload.model_dump()))

    @app.put("/scores/{score_id}")
    def update_score(score_id: int, payload: UpdateScore):
        return asdict(repo.update_score(score_id, payload.score))

    @app.get("/candidates/{candidate_id}/categories/{category_id}/scores")
    def candidate_scores(candidate_id: int, category_id: int):
        return [asdict(s) for s in repo.score_entries(candidate_id, category_id)]

    @app.get("/candidates/{candidate_id}/categories/{category_id}/total")
    def candidate_category_total(candidate_id: int, category_id: int):
        return asdict(engine.aggregate_category(candidate_id, category_id))

    # -----------------------
    # Routes: Notes
    # -----------------------
    @app.post("/notes", status_code=201)
    def create_note(payload: CreateNote):
        return asdict(repo.create_note(payload.candidate_id, payload.judge_id, payload.note))

    @app.get("/candidates/{candidate_id}/notes")
    def list_notes(candidate_id: int, judge_id: Optional[int] = None):
        return [asdict(n) for n in repo.list_notes(candidate_id, judge_id=judge_id)]

    # -----------------------
    # Routes: Results
    # -----------------------
    @app.get("/events/{event_id}/candidates/{candidate_id}/final-score")
    def candidate_final_score(event_id: int, candidate_id: int):
        return result_dict(engine.compute_final_score(candidate_id, event_id))

    @app.get("/events/{event_id}/final-scores")
    def final_scores(event_id: int):
        rows = []
        for candidate, result in engine.candidate_final_scores(event_id):
            rows.append({
                "candidate_id": candidate.id,
                "candidate_number": candidate.candidate_number,
                "first_name": candidate.first_name,
                "middle_name": candidate.middle_name,
                "last_name": candidate.last_name,
                "final_score": None if result.indeterminate else result.final_score,
                "indeterminate": result.indeterminate,
                "reason": result.reason if result.indeterminate else None,
            })
        return rows

    @app.get("/events/{event_id}/leaderboard")
    def leaderboard(
        event_id: int,
        group_by: Optional[str] = Query(None, description=f"One of: {', '.join(GROUP_FIELDS)}"),
        top_n: Optional[int] = Query(None, ge=1),
    ):
        return asdict(engine.leaderboard(event_id, group_by=group_by, top_n=top_n))

    @app.post("/events/{event_id}/final-scores/sync")
    def sync_final_scores(event_id: int):
        return asdict(engine.recompute_final_scores(event_id))


app = create_app()


def run() -> None:
    settings = Settings.from_env()
    uvicorn.run("scoreboard.main:app", host=settings.host, port=settings.port)
