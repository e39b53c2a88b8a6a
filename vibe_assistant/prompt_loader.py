# vibe_assistant/prompt_loader.py
"""
Prompt templates: loading, caching and rendering.

Templates are ``<name>.txt`` files in a single directory. Rendering runs two passes:

1. ``{{variable}}`` substitution. Unbound names stay in the output verbatim, so a
   missing binding is visible in the prompt instead of silently disappearing.
2. ``{{#if <condition>}}...{{/if}}`` blocks. The first ``{{/if}}`` after an opening
   marker closes it, so blocks cannot be nested. Conditions support ``||``, ``&&``,
   ``name == "value"`` (``===`` is the same thing) and bare ``name`` truthiness;
   anything else is false.

Rendering never fails because of bindings or conditions; only a missing or unreadable
template raises.
"""

import logging
import re
import threading
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from vibe_assistant.errors import TemplateNotFoundError
from vibe_assistant.prompt_watcher import NullPromptWatcher, PromptWatcher, WatchEvent

logger = logging.getLogger("vibe_assistant")

TEMPLATE_SUFFIX = ".txt"

_VARIABLE_PATTERN = re.compile(r"\{\{([A-Za-z0-9_]+)\}\}")
_CONDITION_BLOCK_PATTERN = re.compile(r"\{\{#if\s+(.+?)\}\}([\s\S]*?)\{\{/if\}\}")
_EQUALITY_PATTERN = re.compile(r"""^([A-Za-z0-9_]+)\s*===?\s*["'](.+?)["']$""")
_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


def substitute_variables(template: str, bindings: Mapping[str, Any]) -> str:
    missing_keys = []

    def replacer(match):
        key = match.group(1)
        if key in bindings:
            return str(bindings[key])
        missing_keys.append(key)
        return match.group(0)

    result = _VARIABLE_PATTERN.sub(replacer, template)
    if missing_keys:
        logger.debug("Unbound prompt variables left in place: %s", ", ".join(missing_keys))
    return result


def evaluate_condition(condition: str, bindings: Mapping[str, Any]) -> bool:
    condition = condition.strip()

    if "||" in condition:
        return any(evaluate_condition(part, bindings) for part in condition.split("||"))

    if "&&" in condition:
        return all(evaluate_condition(part, bindings) for part in condition.split("&&"))

    eq_match = _EQUALITY_PATTERN.match(condition)
    if eq_match:
        name, literal = eq_match.groups()
        return name in bindings and bindings[name] == literal

    if _IDENTIFIER_PATTERN.match(condition) and condition in bindings:
        return bool(bindings[condition])

    return False


def resolve_conditions(template: str, bindings: Mapping[str, Any]) -> str:
    def replacer(match):
        return match.group(2) if evaluate_condition(match.group(1), bindings) else ""

    return _CONDITION_BLOCK_PATTERN.sub(replacer, template)


def render_text(template: str, bindings: Optional[Mapping[str, Any]] = None) -> str:
    bindings = bindings or {}
    return resolve_conditions(substitute_variables(template, bindings), bindings)


class PromptStore:
    """
    Name -> template text, backed by ``<prompts_dir>/<name>.txt``.

    The files are the source of truth; the cache is only a view of them. Two concurrent
    misses for the same name may both read the file and both store it, which is harmless.
    Hot reload (development only) watches the directory and invalidates changed names.
    """

    def __init__(
        self,
        prompts_dir,
        *,
        hot_reload: bool = False,
        watcher_factory: Optional[Callable[..., PromptWatcher]] = None,
        poll_interval: float = 1.0,
    ):
        self.prompts_dir = Path(prompts_dir)
        self._lock = threading.Lock()
        self._cache: dict[str, str] = {}
        self._watcher_factory = watcher_factory or PromptWatcher
        self._poll_interval = poll_interval
        self.watcher = NullPromptWatcher()

        if hot_reload:
            self.start_hot_reload()

    def _path_for(self, name: str) -> Path:
        return self.prompts_dir / f"{name}{TEMPLATE_SUFFIX}"

    # -----------------------
    # Cache
    # -----------------------

    def load(self, name: str) -> str:
        with self._lock:
            cached = self._cache.get(name)
        if cached is not None:
            return cached

        path = self._path_for(name)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise TemplateNotFoundError(name, self.prompts_dir) from None

        with self._lock:
            self._cache[name] = content
        return content

    def invalidate(self, name: str) -> None:
        with self._lock:
            removed = self._cache.pop(name, None)
        if removed is not None:
            logger.info("Prompt '%s' invalidated", name)

    def invalidate_all(self) -> int:
        with self._lock:
            removed = len(self._cache)
            self._cache.clear()
        logger.info("Prompt cache cleared (%d entries)", removed)
        return removed

    def is_cached(self, name: str) -> bool:
        with self._lock:
            return name in self._cache

    def list_prompts(self) -> list[str]:
        try:
            return sorted(
                p.stem for p in self.prompts_dir.iterdir()
                if p.is_file() and p.suffix == TEMPLATE_SUFFIX
            )
        except OSError as e:
            logger.error("Could not list prompts in %s: %s", self.prompts_dir, e)
            return []

    # -----------------------
    # Rendering
    # -----------------------

    def render(self, name: str, bindings: Optional[Mapping[str, Any]] = None) -> str:
        return render_text(self.load(name), bindings)

    # -----------------------
    # Hot reload
    # -----------------------

    def start_hot_reload(self) -> bool:
        if self.watcher.running:
            logger.info("Prompt hot reload already running")
            return True
        try:
            watcher = self._watcher_factory(
                self.prompts_dir,
                on_change=self._on_prompt_events,
                patterns=[f"*{TEMPLATE_SUFFIX}"],
                poll_interval=self._poll_interval,
            )
            watcher.start()
        except Exception as e:
            logger.warning("Prompt hot reload disabled: %s", e)
            self.watcher = NullPromptWatcher()
            return False

        self.watcher = watcher
        logger.info("Watching prompt changes in %s", self.prompts_dir)
        return True

    def stop_hot_reload(self) -> None:
        if self.watcher.running:
            self.watcher.stop()
            logger.info("Prompt hot reload stopped")
        self.watcher = NullPromptWatcher()

    def _on_prompt_events(self, events: list[WatchEvent]) -> None:
        for event in events:
            name = event.path.stem
            self.invalidate(name)
            logger.info("Hot reload: %s%s %s", name, TEMPLATE_SUFFIX, event.event_type)
