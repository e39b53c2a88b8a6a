# vibe_assistant/project_store.py

import copy
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from vibe_assistant.errors import NotFoundError

logger = logging.getLogger("vibe_assistant")

PROJECT_NOT_FOUND = "Проект не найден"
STEP_NOT_FOUND = "Шаг не найден"
DEFAULT_STEP_MINUTES = 30


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _step_order(value, position: int) -> int:
    # LLM plans may give "2" or 2.0; anything unusable falls back to the 1-based position
    try:
        order = int(value)
    except (TypeError, ValueError):
        return position
    return order or position


class ProjectStore:
    """
    Legacy idea -> plan flow: projects and their ordered development steps.

    A project keeps the ids of its steps in ``steps``; the step records live in a
    separate map so a step can be looked up (and completed) by id alone.
    """

    def __init__(self, clock: Optional[Callable[[], str]] = None):
        self._clock = clock or _utcnow_iso
        self._lock = threading.RLock()
        self._projects: dict[str, dict] = {}
        self._steps: dict[str, dict] = {}

    # -----------------------
    # Projects
    # -----------------------

    def create_project(self, idea: str, analysis: dict[str, Any]) -> dict:
        now = self._clock()
        project = {
            "id": str(uuid.uuid4()),
            "idea": idea,
            "problem": analysis.get("problem"),
            "productVision": analysis.get("productVision"),
            "keyFeatures": analysis.get("keyFeatures") or [],
            "steps": [],
            "createdAt": now,
            "updatedAt": now,
            "progress": {"total": 0, "completed": 0},
        }
        with self._lock:
            self._projects[project["id"]] = project
            out = copy.deepcopy(project)
        logger.info("Project created: %s", project["id"])
        return out

    def _project(self, project_id: str) -> dict:
        project = self._projects.get(str(project_id))
        if project is None:
            raise NotFoundError(PROJECT_NOT_FOUND)
        return project

    def get_project(self, project_id: str) -> dict:
        with self._lock:
            return copy.deepcopy(self._project(project_id))

    def update_product_vision(self, project_id: str, product_vision, key_features=None) -> dict:
        with self._lock:
            project = self._project(project_id)
            project["productVision"] = product_vision
            if key_features:
                project["keyFeatures"] = list(key_features)
            project["updatedAt"] = self._clock()
            out = copy.deepcopy(project)
        logger.info("Product vision updated for project: %s", project_id)
        return out

    def delete_project(self, project_id: str) -> None:
        with self._lock:
            project = self._project(project_id)
            for step_id in project["steps"]:
                self._steps.pop(step_id, None)
            del self._projects[project["id"]]
        logger.info("Project deleted: %s", project_id)

    def all(self) -> list[dict]:
        with self._lock:
            return [copy.deepcopy(p) for p in self._projects.values()]

    # -----------------------
    # Steps
    # -----------------------

    def add_steps(self, project_id: str, steps: list[dict]) -> list[dict]:
        """
        Replaces the project's plan with ``steps``. Missing ``order`` defaults to the
        1-based position, a non-list ``dod`` becomes [], and ``estimatedMinutes``
        defaults to 30.
        """
        with self._lock:
            project = self._project(project_id)

            created = []
            for index, step in enumerate(steps):
                dod = step.get("dod")
                record = {
                    "id": str(uuid.uuid4()),
                    "projectId": project["id"],
                    "order": _step_order(step.get("order"), index + 1),
                    "title": step.get("title"),
                    "prompt": step.get("prompt"),
                    "dod": list(dod) if isinstance(dod, list) else [],
                    "estimatedMinutes": step.get("estimatedMinutes") or DEFAULT_STEP_MINUTES,
                    "completed": False,
                    "completedAt": None,
                }
                self._steps[record["id"]] = record
                created.append(record)

            project["steps"] = [s["id"] for s in created]
            project["progress"]["total"] = len(created)
            project["progress"]["completed"] = 0
            project["updatedAt"] = self._clock()
            out = copy.deepcopy(created)

        logger.info("Added %d steps to project: %s", len(out), project_id)
        return out

    def get_steps(self, project_id: str) -> list[dict]:
        with self._lock:
            project = self._project(project_id)
            steps = [self._steps[sid] for sid in project["steps"] if sid in self._steps]
            return copy.deepcopy(sorted(steps, key=lambda s: s["order"]))

    def _step(self, step_id: str) -> dict:
        step = self._steps.get(str(step_id))
        if step is None:
            raise NotFoundError(STEP_NOT_FOUND)
        return step

    def get_step(self, step_id: str) -> dict:
        with self._lock:
            return copy.deepcopy(self._step(step_id))

    def complete_step(self, step_id: str) -> dict:
        return self._set_completed(step_id, True)

    def uncomplete_step(self, step_id: str) -> dict:
        return self._set_completed(step_id, False)

    def _set_completed(self, step_id: str, completed: bool) -> dict:
        with self._lock:
            step = self._step(step_id)
            if step["completed"] == completed:
                return copy.deepcopy(step)

            step["completed"] = completed
            step["completedAt"] = self._clock() if completed else None

            project = self._project(step["projectId"])
            project["progress"]["completed"] = sum(
                1 for sid in project["steps"]
                if sid in self._steps and self._steps[sid]["completed"]
            )
            project["updatedAt"] = self._clock()
            progress = dict(project["progress"])
            out = copy.deepcopy(step)

        logger.info(
            "Step %s: %s (%d/%d)",
            "completed" if completed else "uncompleted",
            step_id, progress["completed"], progress["total"],
        )
        return out
