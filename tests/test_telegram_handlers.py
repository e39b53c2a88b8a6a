"""Tests for the Telegram conversation flow (vibe_assistant.telegram_handlers)."""

import re
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from vibe_assistant import telegram_handlers as th
from vibe_assistant.backend_client import BackendApiError


def _message(text: str = "") -> MagicMock:
    message = MagicMock()
    message.text = text
    message.reply_text = AsyncMock(return_value=MagicMock(delete=AsyncMock()))
    return message


def _text_update(text: str):
    message = _message(text)
    return SimpleNamespace(effective_message=message, callback_query=None), message


def _query_update():
    query = MagicMock()
    query.answer = AsyncMock()
    query.edit_message_text = AsyncMock()
    query.message = _message()
    return SimpleNamespace(effective_message=query.message, callback_query=query), query


def _context(api=None, user_data=None, match=None):
    return SimpleNamespace(
        user_data=user_data if user_data is not None else {},
        bot_data={"api": api or AsyncMock()},
        match=match,
        error=None,
    )


STEPS = [
    {"id": "s1", "order": 1, "title": "Каркас", "prompt": "p1", "dod": [], "estimatedMinutes": 30, "completed": False},
    {"id": "s2", "order": 2, "title": "API", "prompt": "p2", "dod": [], "estimatedMinutes": 45, "completed": False},
]


# ---------------------------------------------------------------------------
# Commands and text
# ---------------------------------------------------------------------------

class TestTextFlow:
    async def test_start_resets_state(self):
        update, message = _text_update("/start")
        context = _context(user_data={"projectId": "old"})
        await th.start(update, context)
        assert context.user_data == {"stage": "waiting_idea"}
        message.reply_text.assert_awaited_once()

    async def test_short_idea_is_rejected_without_backend_call(self):
        update, message = _text_update("коротко")
        context = _context()
        await th.on_text(update, context)
        context.bot_data["api"].analyze_idea.assert_not_awaited()
        assert "слишком короткое" in message.reply_text.await_args.args[0]

    async def test_long_idea_is_rejected(self):
        update, message = _text_update("x" * 2001)
        await th.on_text(update, _context())
        assert "слишком длинное" in message.reply_text.await_args.args[0]

    async def test_idea_is_analyzed(self):
        api = AsyncMock()
        api.analyze_idea.return_value = {
            "projectId": "p1", "productVision": "Бот-напоминалка", "keyFeatures": ["Напоминания"],
        }
        update, message = _text_update("Телеграм-бот, который напоминает пить воду")
        context = _context(api=api)

        await th.on_text(update, context)

        api.analyze_idea.assert_awaited_once_with("Телеграм-бот, который напоминает пить воду")
        assert context.user_data["stage"] == "reviewing_vision"
        assert context.user_data["projectId"] == "p1"
        last = message.reply_text.await_args
        assert "Бот-напоминалка" in last.args[0]
        assert last.kwargs["reply_markup"] is not None

    async def test_analysis_failure_clears_state(self):
        api = AsyncMock()
        api.analyze_idea.side_effect = BackendApiError("AI недоступен", 500)
        update, message = _text_update("Телеграм-бот, который напоминает пить воду")
        context = _context(api=api, user_data={"stage": "waiting_idea"})

        await th.on_text(update, context)

        assert context.user_data == {}
        assert "AI недоступен" in message.reply_text.await_args.args[0]

    async def test_correction_updates_vision(self):
        api = AsyncMock()
        api.update_product_vision.return_value = {"productVision": "Новый образ", "keyFeatures": []}
        update, message = _text_update("Добавьте экспорт")
        context = _context(api=api, user_data={"stage": "waiting_correction", "projectId": "p1"})

        await th.on_text(update, context)

        api.update_product_vision.assert_awaited_once_with("p1", "Добавьте экспорт")
        assert context.user_data["stage"] == "reviewing_vision"
        assert "Образ продукта обновлен" in message.reply_text.await_args.args[0]

    async def test_correction_without_project(self):
        update, message = _text_update("Добавьте экспорт")
        context = _context(user_data={"stage": "waiting_correction"})
        await th.handle_correction(update, context)
        context.bot_data["api"].update_product_vision.assert_not_awaited()
        assert "проект не найден" in message.reply_text.await_args.args[0]


# ---------------------------------------------------------------------------
# Buttons
# ---------------------------------------------------------------------------

class TestButtons:
    async def test_accept_vision_generates_plan(self):
        api = AsyncMock()
        api.generate_plan.return_value = {"steps": STEPS}
        update, query = _query_update()
        context = _context(api=api, user_data={"projectId": "p1", "stage": "reviewing_vision"})

        await th.accept_vision(update, context)

        api.generate_plan.assert_awaited_once_with("p1")
        assert context.user_data["stage"] == "viewing_plan"
        assert context.user_data["steps"] == STEPS
        assert "Всего шагов: 2" in query.message.reply_text.await_args.args[0]

    async def test_accept_vision_empty_plan_is_an_error(self):
        api = AsyncMock()
        api.generate_plan.return_value = {"steps": []}
        update, query = _query_update()
        context = _context(api=api, user_data={"projectId": "p1"})

        await th.accept_vision(update, context)

        assert "steps" not in context.user_data
        assert "ошибка при генерации плана" in query.message.reply_text.await_args.args[0]

    async def test_accept_vision_without_project(self):
        update, query = _query_update()
        await th.accept_vision(update, _context())
        query.answer.assert_awaited_once_with("Ошибка: проект не найден")

    async def test_correct_vision_waits_for_text(self):
        update, query = _query_update()
        context = _context(user_data={"projectId": "p1"})
        await th.correct_vision(update, context)
        assert context.user_data["stage"] == "waiting_correction"

    async def test_view_step(self):
        update, query = _query_update()
        context = _context(
            user_data={"projectId": "p1", "steps": STEPS},
            match=re.match(r"^view_step_(.+)$", "view_step_s2"),
        )
        await th.view_step(update, context)
        assert "Шаг 2: API" in query.message.reply_text.await_args.args[0]

    async def test_view_unknown_step(self):
        update, query = _query_update()
        context = _context(
            user_data={"projectId": "p1", "steps": STEPS},
            match=re.match(r"^view_step_(.+)$", "view_step_zzz"),
        )
        await th.view_step(update, context)
        query.answer.assert_awaited_once_with("Шаг не найден")

    async def test_complete_step_updates_local_copy(self):
        api = AsyncMock()
        update, query = _query_update()
        context = _context(
            api=api,
            user_data={"projectId": "p1", "steps": [dict(s) for s in STEPS]},
            match=re.match(r"^complete_step_(.+)$", "complete_step_s1"),
        )

        await th.complete_step(update, context)

        api.complete_step.assert_awaited_once_with("s1")
        assert context.user_data["steps"][0]["completed"] is True
        assert context.user_data["steps"][1]["completed"] is False
        query.edit_message_text.assert_awaited_once()

    async def test_uncomplete_failure_keeps_state(self):
        api = AsyncMock()
        api.uncomplete_step.side_effect = BackendApiError("Шаг не найден", 404)
        steps = [{**STEPS[0], "completed": True}]
        update, query = _query_update()
        context = _context(
            api=api,
            user_data={"projectId": "p1", "steps": steps},
            match=re.match(r"^uncomplete_step_(.+)$", "uncomplete_step_s1"),
        )

        await th.uncomplete_step(update, context)

        assert context.user_data["steps"][0]["completed"] is True
        query.answer.assert_awaited_once_with("❌ Ошибка отмены шага")
        query.edit_message_text.assert_not_awaited()

    async def test_show_plan_counts_completed(self):
        steps = [{**STEPS[0], "completed": True}, STEPS[1]]
        update, query = _query_update()
        await th.show_plan(update, _context(user_data={"projectId": "p1", "steps": steps}))
        assert "1/2 шагов (50%)" in query.message.reply_text.await_args.args[0]


@pytest.mark.parametrize("steps,expected_rows", [(STEPS, 2), ([{**STEPS[0], "id": str(i)} for i in range(15)], 10)])
def test_step_buttons_are_capped(steps, expected_rows):
    assert len(th.step_buttons(steps).inline_keyboard) == expected_rows


def test_long_step_titles_are_truncated_on_buttons():
    steps = [{**STEPS[0], "title": "Очень длинное название шага " * 5}]
    label = th.step_buttons(steps).inline_keyboard[0][0].text
    assert len(label) == th.STEP_BUTTON_MAX_LENGTH
    assert label.endswith("...")
    assert label.startswith("⏸️ Шаг 1: Очень")
