# vibe_assistant/telegram_handlers.py
"""
Telegram flow: idea -> product vision (accept / correct) -> plan -> steps.

Per-user progress lives in ``context.user_data``:
    stage          waiting_idea | reviewing_vision | waiting_correction | viewing_plan
    projectId, productVision, keyFeatures, steps
The backend client is shared through ``context.bot_data["api"]``.
"""

import logging

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from vibe_assistant.backend_client import BackendApiError, BackendClient
from vibe_assistant.bot_formatter import format_plan, format_product_vision, format_step, truncate

logger = logging.getLogger("vibe_assistant")

IDEA_MIN_LENGTH = 20
IDEA_MAX_LENGTH = 2000
MAX_STEP_BUTTONS = 10
STEP_BUTTON_MAX_LENGTH = 60

WELCOME_TEXT = (
    "👋 *Привет! Я помогу превратить идею в план разработки.*\n\n"
    "Опишите идею вашего продукта одним сообщением: что он делает и для кого.\n\n"
    "Я сформулирую образ продукта, а после вашего подтверждения составлю пошаговый план "
    "с готовыми промптами для AI-редактора кода.\n\n"
    "/cancel — начать заново"
)


def _api(context: ContextTypes.DEFAULT_TYPE) -> BackendClient:
    return context.bot_data["api"]


def _vision_keyboard(correct_label: str = "✏️ Скорректировать") -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [InlineKeyboardButton("✅ Принять и создать план", callback_data="accept_vision")],
        [InlineKeyboardButton(correct_label, callback_data="correct_vision")],
        [InlineKeyboardButton("❌ Отменить", callback_data="start_new")],
    ])


def step_buttons(steps: list[dict]) -> InlineKeyboardMarkup:
    rows = []
    for step in steps[:MAX_STEP_BUTTONS]:
        icon = "✅" if step.get("completed") else "⏸️"
        rows.append([InlineKeyboardButton(
            truncate(f"{icon} Шаг {step.get('order')}: {step.get('title')}", STEP_BUTTON_MAX_LENGTH),
            callback_data=f"view_step_{step['id']}",
        )])
    return InlineKeyboardMarkup(rows)


def _step_keyboard(step: dict, project_id: str) -> InlineKeyboardMarkup:
    if step.get("completed"):
        toggle = InlineKeyboardButton("❌ Отменить выполнение", callback_data=f"uncomplete_step_{step['id']}")
    else:
        toggle = InlineKeyboardButton("✅ Отметить выполненным", callback_data=f"complete_step_{step['id']}")
    return InlineKeyboardMarkup([
        [toggle],
        [InlineKeyboardButton("📋 Вернуться к плану", callback_data=f"show_plan_{project_id}")],
    ])


async def _delete_quietly(message) -> None:
    try:
        await message.delete()
    except TelegramError as e:
        logger.debug("Could not delete status message: %s", e)


# -----------------------
# Commands and text
# -----------------------

async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    context.user_data.clear()
    context.user_data["stage"] = "waiting_idea"
    await update.effective_message.reply_text(WELCOME_TEXT, parse_mode=ParseMode.MARKDOWN)


async def cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    context.user_data.clear()
    context.user_data["stage"] = "waiting_idea"
    await update.effective_message.reply_text("Хорошо, начнем заново. Опишите вашу идею.")


async def on_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if context.user_data.get("stage") == "waiting_correction":
        await handle_correction(update, context)
    else:
        await handle_idea(update, context)


async def handle_idea(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    idea = message.text or ""

    if len(idea) < IDEA_MIN_LENGTH:
        await message.reply_text(
            "⚠️ Описание слишком короткое.\n\n"
            f"Опишите идею подробнее (минимум {IDEA_MIN_LENGTH} символов)."
        )
        return
    if len(idea) > IDEA_MAX_LENGTH:
        await message.reply_text(
            f"⚠️ Описание слишком длинное.\n\nСократите до {IDEA_MAX_LENGTH} символов."
        )
        return

    status = await message.reply_text("⏳ Анализирую вашу идею...\n\nЭто может занять несколько секунд.")
    try:
        data = await _api(context).analyze_idea(idea)
    except BackendApiError as e:
        await _delete_quietly(status)
        context.user_data.clear()
        await message.reply_text(
            "❌ Произошла ошибка при анализе идеи.\n\n"
            f"Детали: {e}\n\n"
            "Попробуйте еще раз или используйте /cancel для отмены.",
            reply_markup=InlineKeyboardMarkup([
                [InlineKeyboardButton("🔄 Попробовать снова", callback_data="start_new")],
            ]),
        )
        return

    context.user_data.update({
        "stage": "reviewing_vision",
        "projectId": data["projectId"],
        "productVision": data.get("productVision"),
        "keyFeatures": data.get("keyFeatures") or [],
        "originalIdea": idea,
    })
    await _delete_quietly(status)
    await message.reply_text(
        format_product_vision(data.get("productVision"), data.get("keyFeatures")),
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=_vision_keyboard(),
    )


async def handle_correction(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    project_id = context.user_data.get("projectId")
    if not project_id:
        context.user_data.clear()
        await message.reply_text("Ошибка: проект не найден. Используйте /start чтобы начать заново.")
        return

    status = await message.reply_text("⏳ Обновляю образ продукта...")
    try:
        data = await _api(context).update_product_vision(project_id, message.text or "")
    except BackendApiError as e:
        await _delete_quietly(status)
        await message.reply_text(
            "❌ Произошла ошибка при обновлении образа.\n\n"
            f"Детали: {e}\n\n"
            "Попробуйте еще раз или используйте /cancel.",
            reply_markup=InlineKeyboardMarkup([
                [InlineKeyboardButton("🔄 Вернуться к образу", callback_data="accept_vision")],
            ]),
        )
        return

    context.user_data.update({
        "stage": "reviewing_vision",
        "productVision": data.get("productVision"),
        "keyFeatures": data.get("keyFeatures") or [],
    })
    await _delete_quietly(status)
    await message.reply_text(
        "✨ *Образ продукта обновлен*\n\n"
        + format_product_vision(data.get("productVision"), data.get("keyFeatures")),
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=_vision_keyboard("✏️ Скорректировать еще"),
    )


# -----------------------
# Buttons
# -----------------------

async def accept_vision(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    project_id = context.user_data.get("projectId")
    if not project_id:
        await query.answer("Ошибка: проект не найден")
        return

    await query.answer()
    status = await query.message.reply_text(
        "⏳ Генерирую план разработки...\n\nЭто может занять 10-15 секунд."
    )
    try:
        data = await _api(context).generate_plan(project_id)
        steps = data.get("steps") if data else None
        if not steps:
            raise BackendApiError("Не удалось сгенерировать план")
    except BackendApiError as e:
        await _delete_quietly(status)
        await query.message.reply_text(
            "❌ Произошла ошибка при генерации плана.\n\n"
            f"Детали: {e}\n\n"
            "Попробуйте еще раз.",
            reply_markup=InlineKeyboardMarkup([
                [InlineKeyboardButton("🔄 Попробовать снова", callback_data="accept_vision")],
            ]),
        )
        return

    context.user_data.update({"stage": "viewing_plan", "steps": steps})
    await _delete_quietly(status)
    await query.message.reply_text(
        format_plan(steps, {"total": len(steps), "completed": 0}),
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=step_buttons(steps),
    )


async def correct_vision(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    if not context.user_data.get("projectId"):
        await query.answer("Ошибка: состояние не найдено")
        return

    context.user_data["stage"] = "waiting_correction"
    await query.answer()
    await query.message.reply_text(
        "✏️ *Что нужно изменить или дополнить?*\n\n"
        "Опишите ваши корректировки, например:\n"
        "• Добавьте функцию экспорта данных\n"
        "• Упростите интерфейс\n"
        "• Сделайте акцент на мобильной версии",
        parse_mode=ParseMode.MARKDOWN,
    )


async def start_new(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.callback_query.answer()
    await start(update, context)


def _find_step(context: ContextTypes.DEFAULT_TYPE, step_id: str):
    for step in context.user_data.get("steps") or []:
        if step["id"] == step_id:
            return step
    return None


async def view_step(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    step_id = context.match.group(1)
    if not context.user_data.get("steps"):
        await query.answer("Ошибка: план не найден")
        return

    step = _find_step(context, step_id)
    if step is None:
        await query.answer("Шаг не найден")
        return

    await query.answer()
    await query.message.reply_text(
        format_step(step),
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=_step_keyboard(step, context.user_data["projectId"]),
    )


async def _toggle_step(update: Update, context: ContextTypes.DEFAULT_TYPE, completed: bool) -> None:
    query = update.callback_query
    step_id = context.match.group(1)
    if not context.user_data.get("steps"):
        await query.answer("Ошибка: состояние не найдено")
        return

    api = _api(context)
    try:
        if completed:
            await api.complete_step(step_id)
        else:
            await api.uncomplete_step(step_id)
    except BackendApiError as e:
        logger.error("Step toggle failed for %s: %s", step_id, e)
        await query.answer("❌ Ошибка отметки шага" if completed else "❌ Ошибка отмены шага")
        return

    steps = [
        {**s, "completed": completed} if s["id"] == step_id else s
        for s in context.user_data["steps"]
    ]
    context.user_data["steps"] = steps
    await query.answer("✅ Шаг отмечен как выполненный!" if completed else "Отметка снята")

    step = _find_step(context, step_id)
    if step is not None:
        await query.edit_message_text(
            format_step(step),
            parse_mode=ParseMode.MARKDOWN,
            reply_markup=_step_keyboard(step, context.user_data["projectId"]),
        )


async def complete_step(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _toggle_step(update, context, True)


async def uncomplete_step(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _toggle_step(update, context, False)


async def show_plan(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    steps = context.user_data.get("steps")
    if not steps:
        await query.answer("Ошибка: план не найден")
        return

    await query.answer()
    completed = sum(1 for s in steps if s.get("completed"))
    await query.message.reply_text(
        format_plan(steps, {"total": len(steps), "completed": completed}),
        parse_mode=ParseMode.MARKDOWN,
        reply_markup=step_buttons(steps),
    )


async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error("Bot error: %s", context.error, exc_info=context.error)
    if isinstance(update, Update) and update.effective_message is not None:
        await update.effective_message.reply_text("Произошла ошибка. Попробуйте /start для перезапуска.")


def build_application(token: str, api: BackendClient) -> Application:
    application = Application.builder().token(token).build()
    application.bot_data["api"] = api

    application.add_handler(CommandHandler("start", start))
    application.add_handler(CommandHandler("cancel", cancel))
    application.add_handler(CallbackQueryHandler(accept_vision, pattern=r"^accept_vision$"))
    application.add_handler(CallbackQueryHandler(correct_vision, pattern=r"^correct_vision$"))
    application.add_handler(CallbackQueryHandler(start_new, pattern=r"^start_new$"))
    application.add_handler(CallbackQueryHandler(view_step, pattern=r"^view_step_(.+)$"))
    application.add_handler(CallbackQueryHandler(complete_step, pattern=r"^complete_step_(.+)$"))
    application.add_handler(CallbackQueryHandler(uncomplete_step, pattern=r"^uncomplete_step_(.+)$"))
    application.add_handler(CallbackQueryHandler(show_plan, pattern=r"^show_plan_(.+)$"))
    application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, on_text))
    application.add_error_handler(on_error)
    return application
