# vibe_assistant/bot_formatter.py
"""Telegram message texts (legacy Markdown parse mode)."""

PROGRESS_BAR_WIDTH = 10


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def format_product_vision(vision: str, features=None) -> str:
    text = "📦 *Образ вашего продукта*\n\n"
    text += f"{vision}\n\n"
    if features:
        text += "*Основные функции MVP:*\n"
        for feature in features:
            text += f"✓ {feature}\n"
    return text


def generate_progress_bar(percentage: int) -> str:
    filled = _round_half_up(percentage / 10)
    filled = max(0, min(PROGRESS_BAR_WIDTH, filled))
    return "▓" * filled + "░" * (PROGRESS_BAR_WIDTH - filled)


def format_progress(progress: dict) -> str:
    total = progress.get("total", 0)
    completed = progress.get("completed", 0)
    percentage = _round_half_up(completed / total * 100) if total > 0 else 0

    text = f"*Прогресс:* {completed}/{total} шагов ({percentage}%)\n"
    text += generate_progress_bar(percentage)
    if percentage == 100:
        text += "\n\n🎉 *Все шаги выполнены!*"
    return text


def format_plan(steps: list, progress: dict) -> str:
    text = "📋 *План разработки*\n\n"
    text += format_progress(progress)
    text += "\n\n*Шаги разработки:*\n"
    text += f"_Всего шагов: {len(steps)}_\n\n"
    text += "Нажмите на шаг для просмотра деталей 👇"
    return text


def format_step(step: dict) -> str:
    icon = "✅" if step.get("completed") else "📝"
    text = f"{icon} *Шаг {step.get('order')}: {step.get('title')}*\n\n"

    if step.get("estimatedMinutes"):
        text += f"⏱ _Примерное время: {step['estimatedMinutes']} мин_\n\n"

    # code blocks need no escaping
    text += "*Промпт для IDE:*\n```\n"
    text += step.get("prompt") or ""
    text += "\n```\n\n"

    if step.get("dod"):
        text += "*Definition of Done:*\n"
        for criterion in step["dod"]:
            text += f"✓ {criterion}\n"

    if step.get("completed"):
        text += "\n✅ _Шаг отмечен как выполненный_"
    return text


def truncate(text: str, max_length: int = 100) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."
