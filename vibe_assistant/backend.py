# vibe_assistant/backend.py

import logging
from typing import Any, Optional

from vibe_assistant.ai_service import AIService
from vibe_assistant.errors import NotFoundError, UpstreamError, ValidationError
from vibe_assistant.export_service import archive_filename, build_session_archive
from vibe_assistant.llm_client import ChatLlmClient
from vibe_assistant.project_store import ProjectStore
from vibe_assistant.prompt_loader import PromptStore
from vibe_assistant.question_service import QuestionService
from vibe_assistant.session_cache import SESSION_NOT_FOUND, SessionStore
from vibe_assistant.settings import Settings

logger = logging.getLogger("vibe_assistant")

MISSING_PARAMS = "Не переданы все необходимые параметры"
IDEA_MIN_LENGTH = 20
IDEA_MAX_LENGTH = 2000


class Backend:
    """
    Request-level logic behind the HTTP routes. Owns the stores and the AI service;
    one instance per application, held in ``app.state.backend``.
    """

    def __init__(
        self,
        *,
        prompts: PromptStore,
        ai: AIService,
        sessions: Optional[SessionStore] = None,
        projects: Optional[ProjectStore] = None,
        questions: Optional[QuestionService] = None,
    ):
        self.prompts = prompts
        self.ai = ai
        self.sessions = sessions or SessionStore()
        self.projects = projects or ProjectStore()
        self.questions = questions or QuestionService()

    @classmethod
    def from_settings(cls, settings: Settings, llm=None) -> "Backend":
        prompts = PromptStore(settings.prompts_dir)
        questions = QuestionService()
        ai = AIService(
            prompts,
            llm or ChatLlmClient.from_settings(settings),
            confidence_threshold=settings.category_confidence_threshold,
            questions=questions,
        )
        return cls(
            prompts=prompts,
            ai=ai,
            sessions=SessionStore(ttl_seconds=settings.session_ttl_seconds),
            projects=ProjectStore(),
            questions=questions,
        )

    # -----------------------
    # Sessions
    # -----------------------

    def create_session(self) -> dict:
        return self.sessions.create()

    def get_session(self, session_id: str) -> dict:
        session = self.sessions.get(session_id)
        if session is None:
            raise NotFoundError(SESSION_NOT_FOUND)
        return session

    def update_session(self, session_id: str, fields: dict[str, Any]) -> dict:
        return self.sessions.update(session_id, fields)

    def reset_session(self, session_id: str) -> dict:
        return self.sessions.reset(session_id)

    def delete_session(self, session_id: str) -> dict:
        return {"deleted": self.sessions.delete(session_id)}

    def stats(self) -> dict:
        return self.sessions.stats()

    def export_session(self, session_id: str) -> tuple[str, bytes]:
        session = self.get_session(session_id)
        category_name = self.questions.get_category_name(session.get("category"))
        return archive_filename(session["id"]), build_session_archive(session, category_name)

    # -----------------------
    # Questions
    # -----------------------

    def base_questions(self) -> list[dict]:
        return self.questions.get_base_questions()

    def validate_answers(self, answers: Optional[dict]) -> dict:
        if not answers:
            raise ValidationError("Не переданы ответы для валидации")
        return self.questions.validate_base_answers(answers)

    # -----------------------
    # Wizard generation
    # -----------------------

    def analyze_category(self, idea_description: Optional[str]) -> dict:
        if not idea_description:
            raise ValidationError("Не передано описание идеи")
        result = self.ai.analyze_idea_category(idea_description)
        return result or {"category": None, "confidence": 0, "requiresManualSelection": True}

    def adaptive_questions(self, idea_description, category, base_answers) -> dict:
        if not idea_description or not category or not base_answers:
            raise ValidationError(MISSING_PARAMS)
        return {"questions": self.ai.generate_adaptive_questions(idea_description, category, base_answers)}

    def generate_prd(self, idea_description, category, all_answers, goal) -> dict:
        if not idea_description or not category or not all_answers or not goal:
            raise ValidationError(MISSING_PARAMS)
        return {"prd": self.ai.generate_prd(idea_description, category, all_answers, goal)}

    def generate_prompts(self, prd, goal, category) -> dict:
        if not prd or not goal or not category:
            raise ValidationError(MISSING_PARAMS)
        return {"prompts": self.ai.generate_prompts(prd, goal, category)}

    def generate_debug_prompt(self, error_description, prd=None) -> dict:
        if not error_description:
            raise ValidationError("Не передано описание ошибки")
        return {"debugPrompt": self.ai.generate_debug_prompt(error_description, prd or "")}

    # -----------------------
    # Legacy idea -> plan flow
    # -----------------------

    def analyze_idea(self, idea: Any) -> dict:
        if not isinstance(idea, str) or not idea.strip():
            raise ValidationError("Идея не может быть пустой")
        if len(idea) < IDEA_MIN_LENGTH:
            raise ValidationError(
                f"Идея слишком короткая. Опишите подробнее (минимум {IDEA_MIN_LENGTH} символов)"
            )
        if len(idea) > IDEA_MAX_LENGTH:
            raise ValidationError(f"Идея слишком длинная. Сократите до {IDEA_MAX_LENGTH} символов")

        logger.info("Analyzing idea: %r", idea[:50])
        analysis = self.ai.analyze_idea(idea)
        project = self.projects.create_project(idea, analysis)
        return {
            "projectId": project["id"],
            "problem": project["problem"],
            "productVision": project["productVision"],
            "keyFeatures": project["keyFeatures"],
            "createdAt": project["createdAt"],
        }

    def update_vision(self, project_id: str, product_vision=None, key_features=None, corrections=None) -> dict:
        if not product_vision and not corrections:
            raise ValidationError("Необходимо указать productVision или corrections")

        project = self.projects.get_project(project_id)
        if corrections:
            correction_prompt = (
                f"{project['productVision']}\n\nПользователь попросил скорректировать:\n{corrections}"
            )
            analysis = self.ai.analyze_idea(correction_prompt)
            product_vision = analysis.get("productVision")
            key_features = analysis.get("keyFeatures")

        updated = self.projects.update_product_vision(project_id, product_vision, key_features)
        return {
            "projectId": updated["id"],
            "productVision": updated["productVision"],
            "keyFeatures": updated["keyFeatures"],
            "updatedAt": updated["updatedAt"],
        }

    def generate_plan(self, project_id: Optional[str]) -> dict:
        if not project_id:
            raise ValidationError("projectId обязателен")

        project = self.projects.get_project(project_id)
        if not project["productVision"]:
            raise ValidationError("Образ продукта не определен. Сначала проанализируйте идею.")

        logger.info("Generating plan for project: %s", project_id)
        steps = self.ai.generate_plan(project["productVision"], project["keyFeatures"])
        if not steps:
            raise UpstreamError("Не удалось сгенерировать план. Попробуйте еще раз.", "bad_response")

        created = self.projects.add_steps(project_id, steps)
        return {"projectId": project_id, "steps": created, "totalSteps": len(created)}

    def get_plan(self, project_id: str) -> dict:
        project = self.projects.get_project(project_id)
        return {
            "projectId": project_id,
            "productVision": project["productVision"],
            "keyFeatures": project["keyFeatures"],
            "steps": self.projects.get_steps(project_id),
            "progress": project["progress"],
        }

    def get_steps(self, project_id: str) -> dict:
        steps = self.projects.get_steps(project_id)
        project = self.projects.get_project(project_id)
        return {"projectId": project_id, "steps": steps, "progress": project["progress"]}

    def get_step(self, step_id: str) -> dict:
        return self.projects.get_step(step_id)

    def set_step_completed(self, step_id: str, completed: bool) -> dict:
        if completed:
            step = self.projects.complete_step(step_id)
        else:
            step = self.projects.uncomplete_step(step_id)
        project = self.projects.get_project(step["projectId"])
        return {"step": step, "progress": project["progress"]}

    # -----------------------
    # Housekeeping
    # -----------------------

    def sweep(self) -> int:
        removed = self.sessions.sweep_expired()
        if removed:
            logger.info("Session sweep: removed %d expired sessions", removed)
        return removed
