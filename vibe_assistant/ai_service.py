# vibe_assistant/ai_service.py

import logging
import time
from typing import Any, Optional

import openai
from langchain_core.messages import HumanMessage, SystemMessage

from vibe_assistant.base_utils import BaseUtils
from vibe_assistant.errors import UpstreamError
from vibe_assistant.prompt_loader import PromptStore
from vibe_assistant.question_service import QuestionService

logger = logging.getLogger("vibe_assistant")

CLASSIFIER_ROLE = "Ты эксперт по классификации типов программных продуктов."
DISCOVERY_ROLE = "Ты эксперт по product discovery. Задаешь правильные вопросы о продукте."
PRD_ROLE = "Ты опытный product manager и архитектор. Пишешь детальные PRD на русском языке."
ANALYST_ROLE = "Ты опытный продуктовый аналитик. Помогаешь превратить сырую идею в понятный образ продукта."
PLANNER_ROLE = "Ты опытный тимлид. Разбиваешь разработку MVP на небольшие проверяемые шаги."

CLASSIFY_TEMPERATURE = 0.3
CLASSIFY_MAX_TOKENS = 500
DEFAULT_TEMPERATURE = 0.7

# generate_prompts() result key -> template name
PROMPT_TEMPLATES = {
    "setup": "setup-prompt",
    "planning": "planning-prompt",
    "implementation": "implementation-prompt",
    "deployVercel": "deploy-vercel",
    "deployDocker": "deploy-docker",
    "deployLocal": "deploy-local",
}


def handle_ai_error(error: Exception, context: str = "AI запрос") -> UpstreamError:
    """
    Maps an openai SDK failure to an UpstreamError with a message the end user can act on.
    Returns the exception; the caller raises it.
    """
    logger.error("AI call failed (%s): %r", context, error)

    # APITimeoutError subclasses APIConnectionError, so it goes first
    if isinstance(error, openai.APITimeoutError):
        return UpstreamError(
            "Превышено время ожидания. Проверьте интернет-соединение и попробуйте снова.", "timeout"
        )
    if isinstance(error, openai.APIConnectionError):
        return UpstreamError("Нет связи с сервером AI. Проверьте интернет-соединение.", "network")

    status = getattr(error, "status_code", None)
    if isinstance(error, openai.RateLimitError) or status == 429:
        return UpstreamError("Превышен лимит запросов. Подождите минуту и попробуйте снова.", "rate_limit")
    if status in (401, 403):
        return UpstreamError("Ошибка аутентификации. Проверьте API ключ в настройках.", "auth")
    if status == 400:
        return UpstreamError(
            "Некорректный запрос к AI. Попробуйте переформулировать или обратитесь в поддержку.",
            "bad_request",
        )
    if isinstance(status, int) and status >= 500:
        return UpstreamError("Ошибка сервера AI. Попробуйте позже.", "server")

    return UpstreamError(f"Ошибка AI: {error or 'Неизвестная ошибка'}", "unknown")


class AIService(BaseUtils):
    """
    LLM-backed wizard operations. Each one renders a template from the PromptStore,
    makes at most one chat call and parses the answer.

    Template errors (missing file, unreadable directory) are not wrapped: they surface
    as TemplateNotFoundError / OSError.
    """

    def __init__(
        self,
        prompts: PromptStore,
        llm,
        *,
        confidence_threshold: float = 0.7,
        questions: Optional[QuestionService] = None,
    ):
        self.prompts = prompts
        self.llm = llm
        self.confidence_threshold = confidence_threshold
        self.questions = questions or QuestionService()

    def _chat(self, system: str, prompt: str, context: str, **kwargs) -> str:
        try:
            return self.llm.invoke(
                [SystemMessage(content=system), HumanMessage(content=prompt)],
                **kwargs,
            )
        except openai.OpenAIError as e:
            raise handle_ai_error(e, context) from e

    def _parse_json(self, content: str, opener: str, context: str) -> Any:
        span = self.extract_json_span(content, opener)
        if span is None:
            raise UpstreamError(f"AI не вернул валидный JSON ({context})", "bad_response")
        try:
            return self.load_fault_tolerant_json(span)
        except ValueError as e:
            raise UpstreamError(f"AI вернул некорректный JSON ({context})", "bad_response") from e

    # -----------------------
    # Wizard
    # -----------------------

    def analyze_idea_category(self, idea_description: str) -> Optional[dict]:
        """
        Returns {"category", "confidence", "reasoning"} or None when the model's answer
        holds no JSON or its confidence is below the threshold.
        """
        prompt = self.prompts.render("analyze-category", {"ideaDescription": idea_description})
        content = self._chat(
            CLASSIFIER_ROLE, prompt, "определение категории",
            temperature=CLASSIFY_TEMPERATURE, max_tokens=CLASSIFY_MAX_TOKENS,
        )

        span = self.extract_json_span(content, "{")
        if span is None:
            logger.warning("Category classification returned no JSON")
            return None
        try:
            result = self.load_fault_tolerant_json(span)
        except ValueError:
            logger.warning("Category classification returned unparseable JSON")
            return None
        if not isinstance(result, dict):
            return None

        try:
            confidence = float(result.get("confidence") or 0)
        except (TypeError, ValueError):
            confidence = 0.0
        if confidence < self.confidence_threshold:
            logger.info("Low category confidence: %s", result.get("confidence"))
            return None

        result["confidence"] = confidence
        logger.info("Category detected: %s (confidence %.2f)", result.get("category"), confidence)
        return result

    def generate_adaptive_questions(self, idea_description: str, category: str, base_answers: dict) -> list:
        prompt = self.prompts.render("generate-adaptive-questions", {
            "ideaDescription": idea_description,
            "category": category,
            "baseAnswers": self._coerce_field_to_str(base_answers),
        })
        content = self._chat(
            DISCOVERY_ROLE, prompt, "генерация адаптивных вопросов", temperature=DEFAULT_TEMPERATURE,
        )
        questions = self._parse_json(content, "[", "адаптивные вопросы")
        if not isinstance(questions, list):
            raise UpstreamError("AI не вернул валидный JSON массив вопросов", "bad_response")

        logger.info("Generated %d adaptive questions", len(questions))
        return questions

    def generate_prd(self, idea_description: str, category: str, all_answers: dict, goal: str) -> str:
        prompt = self.prompts.render("generate-prd", {
            "ideaDescription": idea_description,
            "category": category,
            "allAnswers": self._coerce_field_to_str(all_answers),
            "goal": goal,
        })
        start = time.monotonic()
        prd = self._chat(PRD_ROLE, prompt, "генерация PRD", temperature=DEFAULT_TEMPERATURE)
        logger.info("PRD generated in %.1fs (%d chars)", time.monotonic() - start, len(prd))
        return prd

    def generate_prompts(self, prd: str, goal: str, category: str) -> dict[str, str]:
        bindings = {
            "prd": prd,
            "goal": goal,
            "category": category,
            "testsRequired": self.questions.are_tests_required(goal),
        }
        prompts = {key: self.prompts.render(name, bindings) for key, name in PROMPT_TEMPLATES.items()}
        logger.info("Rendered %d editor prompts", len(prompts))
        return prompts

    def generate_debug_prompt(self, error_description: str, prd: Optional[str] = None) -> str:
        return self.prompts.render("debug-prompt", {
            "errorDescription": error_description,
            "prd": prd or "",
        })

    # -----------------------
    # Legacy idea -> plan flow
    # -----------------------

    def analyze_idea(self, idea: str) -> dict:
        prompt = self.prompts.render("analyze-idea", {"idea": idea})
        content = self._chat(ANALYST_ROLE, prompt, "анализ идеи", temperature=DEFAULT_TEMPERATURE)
        analysis = self._parse_json(content, "{", "анализ идеи")
        if not isinstance(analysis, dict):
            raise UpstreamError("AI не вернул образ продукта", "bad_response")

        features = analysis.get("keyFeatures")
        analysis["keyFeatures"] = features if isinstance(features, list) else []
        return analysis

    def generate_plan(self, product_vision: str, key_features: list) -> list[dict]:
        prompt = self.prompts.render("generate-plan", {
            "productVision": product_vision or "",
            "keyFeatures": "\n".join(f"- {f}" for f in key_features or []),
        })
        content = self._chat(PLANNER_ROLE, prompt, "генерация плана", temperature=DEFAULT_TEMPERATURE)
        steps = self._parse_json(content, "[", "план разработки")
        if not isinstance(steps, list):
            raise UpstreamError("AI не вернул план в виде массива шагов", "bad_response")
        return [s for s in steps if isinstance(s, dict)]
