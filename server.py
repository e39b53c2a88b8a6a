# server.py
"""
HTTP API of the wizard backend.

    python server.py                      # BACKEND_HOST / BACKEND_PORT from .env
    uvicorn server:create_app --factory   # same app through the uvicorn CLI

Wizard routes answer plain JSON; the legacy idea -> plan routes (used by the Telegram
bot) answer ``{"success": true, "data": ...}``.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Body, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from vibe_assistant.backend import Backend
from vibe_assistant.entities import (
    AdaptiveQuestionsRequest,
    AnalyzeCategoryRequest,
    AnalyzeIdeaRequest,
    DebugPromptRequest,
    GeneratePlanRequest,
    GeneratePrdRequest,
    GeneratePromptsRequest,
    UpdateVisionRequest,
    ValidateAnswersRequest,
)
from vibe_assistant.error_handler import ErrorHandler
from vibe_assistant.housekeeping import SessionSweeper
from vibe_assistant.settings import Settings, configure_logging

logger = logging.getLogger("vibe_assistant")


def _backend(request: Request) -> Backend:
    return request.app.state.backend


def _ok(data: Any) -> dict:
    return {"success": True, "data": data}


def create_app(backend: Optional[Backend] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    backend = backend or Backend.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper = SessionSweeper(app.state.backend, interval=settings.session_sweep_interval)
        sweeper.start()
        if settings.prompt_hot_reload:
            app.state.backend.prompts.start_hot_reload()
        logger.info("Backend ready (env=%s, model=%s)", settings.app_env, settings.model_name)
        try:
            yield
        finally:
            await sweeper.stop()
            app.state.backend.prompts.stop_hot_reload()

    app = FastAPI(title="Vibe Assistant", lifespan=lifespan)
    app.state.backend = backend
    app.state.settings = settings

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("%s %s", request.method, request.url.path)
        return await call_next(request)

    ErrorHandler().register_exception_handlers(app)

    # -----------------------
    # Sessions
    # -----------------------

    @app.post("/api/sessions")
    def create_session(request: Request):
        return _backend(request).create_session()

    @app.get("/api/sessions/{session_id}")
    def get_session(session_id: str, request: Request):
        return _backend(request).get_session(session_id)

    @app.put("/api/sessions/{session_id}")
    def update_session(session_id: str, request: Request, fields: dict[str, Any] = Body(...)):
        return _backend(request).update_session(session_id, fields)

    @app.post("/api/sessions/{session_id}/reset")
    def reset_session(session_id: str, request: Request):
        return _backend(request).reset_session(session_id)

    @app.delete("/api/sessions/{session_id}")
    def delete_session(session_id: str, request: Request):
        return _backend(request).delete_session(session_id)

    # -----------------------
    # Questions
    # -----------------------

    @app.get("/api/questions/base")
    def base_questions(request: Request):
        return _backend(request).base_questions()

    @app.post("/api/questions/validate")
    def validate_answers(body: ValidateAnswersRequest, request: Request):
        return _backend(request).validate_answers(body.answers)

    # -----------------------
    # Wizard generation
    # -----------------------

    @app.post("/api/analyze-category")
    def analyze_category(body: AnalyzeCategoryRequest, request: Request):
        return _backend(request).analyze_category(body.ideaDescription)

    @app.post("/api/generate-adaptive-questions")
    def generate_adaptive_questions(body: AdaptiveQuestionsRequest, request: Request):
        return _backend(request).adaptive_questions(body.ideaDescription, body.category, body.baseAnswers)

    @app.post("/api/generate-prd")
    def generate_prd(body: GeneratePrdRequest, request: Request):
        return _backend(request).generate_prd(body.ideaDescription, body.category, body.allAnswers, body.goal)

    @app.post("/api/generate-prompts")
    def generate_prompts(body: GeneratePromptsRequest, request: Request):
        return _backend(request).generate_prompts(body.prd, body.goal, body.category)

    @app.post("/api/generate-debug-prompt")
    def generate_debug_prompt(body: DebugPromptRequest, request: Request):
        return _backend(request).generate_debug_prompt(body.errorDescription, body.prd)

    @app.get("/api/export/{session_id}")
    def export_session(session_id: str, request: Request):
        filename, data = _backend(request).export_session(session_id)
        return Response(
            content=data,
            media_type="application/zip",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.get("/api/stats")
    def stats(request: Request):
        return _backend(request).stats()

    # -----------------------
    # Legacy idea -> plan flow
    # -----------------------

    @app.post("/api/analyze-idea")
    def analyze_idea(body: AnalyzeIdeaRequest, request: Request):
        return _ok(_backend(request).analyze_idea(body.idea))

    @app.put("/api/analyze-idea/{project_id}")
    def update_vision(project_id: str, body: UpdateVisionRequest, request: Request):
        return _ok(_backend(request).update_vision(
            project_id, body.productVision, body.keyFeatures, body.corrections,
        ))

    @app.post("/api/generate-plan")
    def generate_plan(body: GeneratePlanRequest, request: Request):
        return _ok(_backend(request).generate_plan(body.projectId))

    @app.get("/api/generate-plan/{project_id}")
    def get_plan(project_id: str, request: Request):
        return _ok(_backend(request).get_plan(project_id))

    @app.get("/api/steps/step/{step_id}")
    def get_step(step_id: str, request: Request):
        return _ok(_backend(request).get_step(step_id))

    @app.get("/api/steps/{project_id}")
    def get_steps(project_id: str, request: Request):
        return _ok(_backend(request).get_steps(project_id))

    @app.post("/api/steps/{step_id}/complete")
    def complete_step(step_id: str, request: Request):
        return _ok(_backend(request).set_step_completed(step_id, True))

    @app.post("/api/steps/{step_id}/uncomplete")
    def uncomplete_step(step_id: str, request: Request):
        return _ok(_backend(request).set_step_completed(step_id, False))

    # -----------------------
    # Health
    # -----------------------

    @app.get("/health")
    def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


def main() -> None:
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    app = create_app(settings=settings)
    uvicorn.run(app, host=settings.backend_host, port=settings.backend_port)


if __name__ == "__main__":
    main()
