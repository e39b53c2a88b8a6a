# vibe_assistant/question_service.py

import copy

CATEGORIES = {
    "WEB_APP": "WEB_APP",
    "BOT": "BOT",
    "MOBILE_APP": "MOBILE_APP",
}

CATEGORY_NAMES = {
    "WEB_APP": "Web приложение",
    "BOT": "Telegram бот",
    "MOBILE_APP": "Мобильное приложение",
}

CATEGORY_EMOJIS = {
    "WEB_APP": "🌐",
    "BOT": "🤖",
    "MOBILE_APP": "📱",
}

GOAL_LEARNING = "Обучение и практика"
GOAL_PERSONAL = "Использовать самому"
GOAL_USERS = "Для пользователей"
GOAL_PORTFOLIO = "Портфолио"

# same 4 questions for every category
BASE_QUESTIONS = [
    {
        "id": "audience",
        "question": "Для кого этот продукт?",
        "explanation": "Понимание аудитории определит UI/UX, сложность интерфейса и терминологию в коде.",
        "placeholder": "Например: для студентов, для себя, для малого бизнеса...",
        "type": "text",
        "required": True,
    },
    {
        "id": "problem",
        "question": "Какую конкретную проблему он решает?",
        "explanation": "Это ядро PRD. Помогает определить главные функции и отсечь лишнее в MVP.",
        "placeholder": "Опишите проблему или задачу...",
        "type": "text",
        "required": True,
    },
    {
        "id": "result",
        "question": "Какой главный результат получит пользователь?",
        "explanation": "Определяет критерий успеха продукта и помогает приоритизировать фичи.",
        "placeholder": "Что изменится для пользователя после использования?",
        "type": "text",
        "required": True,
    },
    {
        "id": "goal",
        "question": "Какую цель вы преследуете этим проектом?",
        "explanation": "Влияет на уровень качества кода, нужны ли тесты, документация и production-деплой.",
        "type": "select",
        "required": True,
        "options": [
            {
                "value": GOAL_LEARNING,
                "label": GOAL_LEARNING,
                "description": "Простой код, без тестов, локальный запуск",
            },
            {
                "value": GOAL_PERSONAL,
                "label": GOAL_PERSONAL,
                "description": "Рабочий код, опциональные тесты",
            },
            {
                "value": GOAL_USERS,
                "label": GOAL_USERS,
                "description": "Production-ready, тесты обязательны, облачный деплой",
            },
            {
                "value": GOAL_PORTFOLIO,
                "label": GOAL_PORTFOLIO,
                "description": "Идеальный код, полное покрытие тестами, красивый деплой",
            },
        ],
    },
]

RECOMMENDED_DEPLOY_TYPES = {
    GOAL_LEARNING: "local",
    GOAL_PERSONAL: "docker",
    GOAL_USERS: "vercel",
    GOAL_PORTFOLIO: "vercel",
}

MIN_TEXT_ANSWER_LENGTH = 3


class QuestionService:
    """Static catalog of base questions, product categories and project goals."""

    def __init__(self):
        self.categories = dict(CATEGORIES)
        self.base_questions = copy.deepcopy(BASE_QUESTIONS)

    def get_base_questions(self) -> list[dict]:
        return copy.deepcopy(self.base_questions)

    def get_categories(self) -> list[str]:
        return list(self.categories.values())

    def get_category_name(self, category):
        return CATEGORY_NAMES.get(category, category)

    def get_category_emoji(self, category) -> str:
        return CATEGORY_EMOJIS.get(category, "📦")

    def get_goal_values(self) -> list[str]:
        question = self._find_question("goal")
        return [o["value"] for o in question["options"]] if question else []

    def validate_base_answers(self, answers: dict) -> dict:
        """
        Returns {"valid": bool, "errors": [{"field", "message"}, ...]}.
        """
        answers = answers or {}
        errors = []

        for question in self.base_questions:
            qid = question["id"]
            value = answers.get(qid)

            if question.get("required") and not value:
                errors.append({
                    "field": qid,
                    "message": f'Поле "{question["question"]}" обязательно для заполнения',
                })
                continue

            if question["type"] == "text" and value:
                if len(str(value).strip()) < MIN_TEXT_ANSWER_LENGTH:
                    errors.append({
                        "field": qid,
                        "message": f'Поле "{question["question"]}" слишком короткое (минимум {MIN_TEXT_ANSWER_LENGTH} символа)',
                    })

            if question["type"] == "select" and value:
                valid_options = [o["value"] for o in question["options"]]
                if value not in valid_options:
                    errors.append({
                        "field": qid,
                        "message": f'Некорректное значение для "{question["question"]}"',
                    })

        return {"valid": len(errors) == 0, "errors": errors}

    def get_goal_description(self, goal):
        question = self._find_question("goal")
        if not question:
            return None
        for option in question["options"]:
            if option["value"] == goal:
                return option["description"]
        return None

    def get_recommended_deploy_type(self, goal) -> str:
        return RECOMMENDED_DEPLOY_TYPES.get(goal, "local")

    def are_tests_required(self, goal) -> bool:
        return goal in (GOAL_USERS, GOAL_PORTFOLIO)

    def is_documentation_required(self, goal) -> bool:
        return goal == GOAL_PORTFOLIO

    def _find_question(self, qid: str):
        for question in self.base_questions:
            if question["id"] == qid:
                return question
        return None
