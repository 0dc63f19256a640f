# api.py
"""
HTTP front end for the SQL practice core.

The lifespan opens the one shared database connection at startup and
closes it at shutdown; handlers are plain `def` functions, so FastAPI runs
them on its worker threadpool rather than the event loop.
"""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from config import AppConfig, load_app_config
from db import DatabaseService, SqlEngineError
from highlighter import HIGHLIGHT_CSS, highlight, render_html
from progress import ProgressStore
from questions import PracticeQuestion, QuestionRegistry, load_questions
from verifier import check_answer

logger = structlog.get_logger(__name__)

VERSION = "0.1.0"

CORRECT_MESSAGE = "Your answer is correct!"
INCORRECT_MESSAGE = "Your answer doesn't match the expected result."


class SqlRequest(BaseModel):
    sql: str


class HealthResponse(BaseModel):
    status: str
    version: str
    tables: int


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    config: AppConfig = app.state.config
    setup_file = Path(config.database.setup_sql) if config.database.setup_sql else None
    app.state.db = DatabaseService.connect(database=config.database.path, setup_file=setup_file)
    app.state.questions = load_questions(config.questions_file)
    app.state.progress = ProgressStore()
    app.state.cell_equal = config.comparison.cell_comparator()
    logger.info("api_startup", database=config.database.path,
                questions=len(app.state.questions),
                comparison=config.comparison.strategy)
    try:
        yield
    finally:
        app.state.db.shutdown()


# ----------------------------
# Helpers
# ----------------------------
def _db(request: Request) -> DatabaseService:
    return request.app.state.db


def _questions(request: Request) -> QuestionRegistry:
    return request.app.state.questions


def _progress(request: Request) -> ProgressStore:
    return request.app.state.progress


def get_question_or_404(request: Request, question_id: str) -> PracticeQuestion:
    question = _questions(request).get(question_id)
    if question is None:
        raise HTTPException(status_code=404, detail="Invalid question id")
    return question


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    app = FastAPI(
        title="SQL Practice API",
        description="Highlighting, execution and answer checking for SQL practice",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.config = config or load_app_config()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def read_root():
        return {"message": "SQL Practice Service is running."}

    @app.get("/health", response_model=HealthResponse)
    def health(request: Request) -> HealthResponse:
        return HealthResponse(status="ok", version=VERSION,
                              tables=len(_db(request).list_tables()))

    # ----------------------------
    # Editor support
    # ----------------------------
    @app.post("/highlight")
    def highlight_sql(req: SqlRequest):
        spans = highlight(req.sql)
        return {
            "spans": [s.to_dict() for s in spans],
            "html": render_html(req.sql, spans),
        }

    @app.get("/highlight.css", response_class=PlainTextResponse)
    def highlight_css():
        return PlainTextResponse(HIGHLIGHT_CSS, media_type="text/css")

    # ----------------------------
    # Execution
    # ----------------------------
    @app.post("/execute")
    def execute_sql(req: SqlRequest, request: Request):
        result = _db(request).execute(req.sql)
        if result.error_kind != "empty_input":
            _progress(request).record_execution(result.success)
        return result.to_dict()

    @app.post("/validate")
    def validate_sql(req: SqlRequest, request: Request):
        result = _db(request).validate(req.sql)
        return {"valid": result.valid, "message": result.message}

    @app.post("/reset")
    def reset_database(request: Request):
        try:
            _db(request).reset()
        except SqlEngineError as e:
            logger.error("database_reset_failed", error=str(e))
            raise HTTPException(status_code=500, detail=f"Database reset failed: {e}")
        return {"message": "Database reset successfully"}

    @app.get("/tables")
    def list_tables(request: Request):
        return {"tables": _db(request).list_tables()}

    @app.get("/tables/{name}")
    def table_structure(name: str, request: Request):
        columns = _db(request).table_columns(name)
        if not columns:
            raise HTTPException(status_code=404, detail=f"Unknown table {name!r}")
        return {
            "table": name,
            "columns": [
                {"name": c.name, "type": c.type, "size": c.size,
                 "nullable": c.nullable, "display": str(c)}
                for c in columns
            ],
        }

    # ----------------------------
    # Practice questions
    # ----------------------------
    @app.get("/questions")
    def list_questions(request: Request, difficulty: str = "all"):
        try:
            questions = _questions(request).by_difficulty(difficulty)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown difficulty {difficulty!r}")
        progress = _progress(request)
        return {
            "questions": [
                {**q.to_public_dict(), "completed": progress.is_completed(q.id)}
                for q in questions
            ],
        }

    @app.get("/questions/{question_id}")
    def get_question(question_id: str, request: Request):
        question = get_question_or_404(request, question_id)
        return {**question.to_public_dict(),
                "completed": _progress(request).is_completed(question.id)}

    @app.post("/questions/{question_id}/submit")
    def submit_answer(question_id: str, req: SqlRequest, request: Request):
        question = get_question_or_404(request, question_id)
        progress = _progress(request)

        result = _db(request).execute(req.sql)
        if result.error_kind != "empty_input":
            progress.record_execution(result.success)

        if not result.success:
            progress.reset_streak()
            return {
                "correct": False,
                "message": result.message,
                "error_kind": result.error_kind,
                "execution": result.to_dict(),
            }

        verdict = check_answer(question, result.query_result, request.app.state.cell_equal)
        if verdict:
            progress.mark_completed(question.id)
            return {"correct": True, "message": CORRECT_MESSAGE,
                    "execution": result.to_dict()}

        progress.reset_streak()
        return {
            "correct": False,
            "message": INCORRECT_MESSAGE,
            "hint": question.hint,
            "execution": result.to_dict(),
        }

    @app.get("/progress")
    def get_progress(request: Request):
        registry = _questions(request)
        progress = _progress(request)
        return {
            **progress.snapshot(),
            "completed_count": progress.completed_count,
            "total_questions": registry.total,
            "completed_by_difficulty": progress.completed_by_difficulty(registry),
            "questions_by_difficulty": registry.counts_by_difficulty(),
        }

    return app


# Default app instance for uvicorn (uvicorn api:app)
app = create_app()
