"""Tests for the LLM-backed wizard operations (vibe_assistant.ai_service)."""

import json

import httpx
import openai
import pytest

from vibe_assistant.ai_service import AIService, handle_ai_error
from vibe_assistant.errors import TemplateNotFoundError, UpstreamError
from vibe_assistant.prompt_loader import PromptStore

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _status_error(cls, status: int):
    return cls("failed", response=httpx.Response(status, request=REQUEST), body=None)


def _prompt_text(fake_llm) -> str:
    messages = fake_llm.invoke.call_args.args[0]
    return messages[-1].content


# ---------------------------------------------------------------------------
# Category classification
# ---------------------------------------------------------------------------


class TestAnalyzeIdeaCategory:
    def test_confident_result(self, ai_service, fake_llm):
        fake_llm.invoke.return_value = (
            'Вот ответ: {"category": "BOT", "confidence": 0.92, "reasoning": "телеграм"}'
        )
        result = ai_service.analyze_idea_category("Бот для записи к врачу")
        assert result["category"] == "BOT"
        assert result["confidence"] == pytest.approx(0.92)

        assert "Бот для записи к врачу" in _prompt_text(fake_llm)
        kwargs = fake_llm.invoke.call_args.kwargs
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 500

    def test_low_confidence_is_discarded(self, ai_service, fake_llm):
        fake_llm.invoke.return_value = '{"category": "WEB_APP", "confidence": 0.5}'
        assert ai_service.analyze_idea_category("что-то") is None

    def test_threshold_is_configurable(self, packaged_store, fake_llm):
        fake_llm.invoke.return_value = '{"category": "WEB_APP", "confidence": 0.5}'
        service = AIService(packaged_store, fake_llm, confidence_threshold=0.4)
        assert service.analyze_idea_category("что-то")["category"] == "WEB_APP"

    def test_no_json_returns_none(self, ai_service, fake_llm):
        fake_llm.invoke.return_value = "Не могу определить"
        assert ai_service.analyze_idea_category("что-то") is None

    def test_fenced_json_is_accepted(self, ai_service, fake_llm):
        fake_llm.invoke.return_value = '```json\n{"category": "MOBILE_APP", "confidence": 0.8,}\n```'
        assert ai_service.analyze_idea_category("приложение")["category"] == "MOBILE_APP"


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


class TestGeneration:
    def test_adaptive_questions(self, ai_service, fake_llm):
        questions = [{"id": "q1", "question": "Сколько пользователей?"}]
        fake_llm.invoke.return_value = "Вопросы:\n" + json.dumps(questions, ensure_ascii=False)

        result = ai_service.generate_adaptive_questions("идея", "BOT", {"audience": "врачи"})
        assert result == questions

        prompt = _prompt_text(fake_llm)
        assert '"audience": "врачи"' in prompt
        assert "{{" not in prompt

    def test_adaptive_questions_without_array(self, ai_service, fake_llm):
        fake_llm.invoke.return_value = '{"questions": "нет"}'
        with pytest.raises(UpstreamError) as exc_info:
            ai_service.generate_adaptive_questions("идея", "BOT", {})
        assert exc_info.value.kind == "bad_response"

    def test_prd_is_raw_text(self, ai_service, fake_llm):
        fake_llm.invoke.return_value = "# PRD\n\nТекст"
        prd = ai_service.generate_prd("идея", "WEB_APP", {"audience": "все"}, "Портфолио")
        assert prd == "# PRD\n\nТекст"
        assert fake_llm.invoke.call_args.kwargs["temperature"] == 0.7

    def test_generate_prompts_renders_without_llm(self, ai_service, fake_llm):
        prompts = ai_service.generate_prompts("# PRD бота", "Для пользователей", "BOT")

        assert set(prompts) == {
            "setup", "planning", "implementation", "deployVercel", "deployDocker", "deployLocal",
        }
        assert all("# PRD бота" in text for text in prompts.values())
        assert "Telegram Bot API" in prompts["setup"]
        assert "тестовый фреймворк" in prompts["setup"]
        fake_llm.invoke.assert_not_called()

    def test_setup_prompt_without_tests_for_learning(self, ai_service):
        prompts = ai_service.generate_prompts("# PRD", "Обучение и практика", "WEB_APP")
        assert "тестовый фреймворк" not in prompts["setup"]
        assert "frontend и backend" in prompts["setup"]

    def test_debug_prompt_with_and_without_prd(self, ai_service, fake_llm):
        with_prd = ai_service.generate_debug_prompt("TypeError в api.js", "# PRD")
        without_prd = ai_service.generate_debug_prompt("TypeError в api.js")

        assert "TypeError в api.js" in with_prd
        assert "КОНТЕКСТ ПРОЕКТА" in with_prd
        assert "КОНТЕКСТ ПРОЕКТА" not in without_prd
        fake_llm.invoke.assert_not_called()

    def test_missing_template_propagates(self, tmp_path, fake_llm):
        service = AIService(PromptStore(tmp_path), fake_llm)
        with pytest.raises(TemplateNotFoundError):
            service.generate_prompts("prd", "Портфолио", "BOT")


class TestLegacyFlow:
    def test_analyze_idea(self, ai_service, fake_llm):
        fake_llm.invoke.return_value = json.dumps({
            "problem": "p", "productVision": "v", "keyFeatures": "не список",
        })
        analysis = ai_service.analyze_idea("Трекер привычек для студентов")
        assert analysis["productVision"] == "v"
        assert analysis["keyFeatures"] == []

    def test_generate_plan(self, ai_service, fake_llm):
        fake_llm.invoke.return_value = json.dumps([
            {"order": 1, "title": "Каркас", "prompt": "Создай", "dod": ["ok"]},
            "мусор",
        ], ensure_ascii=False)
        steps = ai_service.generate_plan("образ", ["Напоминания", "Статистика"])
        assert [s["title"] for s in steps] == ["Каркас"]
        assert "- Напоминания" in _prompt_text(fake_llm)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    @pytest.mark.parametrize("error,kind,fragment", [
        (_status_error(openai.RateLimitError, 429), "rate_limit", "лимит"),
        (_status_error(openai.AuthenticationError, 401), "auth", "аутентификации"),
        (_status_error(openai.PermissionDeniedError, 403), "auth", "аутентификации"),
        (_status_error(openai.BadRequestError, 400), "bad_request", "Некорректный запрос"),
        (_status_error(openai.InternalServerError, 503), "server", "сервера AI"),
        (openai.APITimeoutError(request=REQUEST), "timeout", "время ожидания"),
        (openai.APIConnectionError(request=REQUEST), "network", "Нет связи"),
    ])
    def test_mapping(self, error, kind, fragment):
        mapped = handle_ai_error(error)
        assert isinstance(mapped, UpstreamError)
        assert mapped.kind == kind
        assert fragment in str(mapped)

    def test_generic(self):
        mapped = handle_ai_error(_status_error(openai.NotFoundError, 404))
        assert mapped.kind == "unknown"
        assert str(mapped).startswith("Ошибка AI:")

    def test_llm_failure_is_not_retried(self, ai_service, fake_llm):
        fake_llm.invoke.side_effect = _status_error(openai.RateLimitError, 429)
        with pytest.raises(UpstreamError) as exc_info:
            ai_service.generate_prd("идея", "BOT", {"a": "b"}, "Портфолио")
        assert exc_info.value.kind == "rate_limit"
        assert fake_llm.invoke.call_count == 1
