# vibe_assistant/base_utils.py

import json
import logging
import re
from collections import OrderedDict

import commentjson
import yaml
from json_repair import repair_json

logger = logging.getLogger("vibe_assistant")

_FENCE_PATTERN = re.compile(r"```[a-zA-Z]*\n?|```\n?")
_COMMENT_PATTERN = re.compile(r"//.*?$|/\*.*?\*/", re.MULTILINE | re.DOTALL)
_STRING_LITERAL_PATTERN = re.compile(r'(?<!\\)"((?:[^"\\]|\\.)*?)"', re.DOTALL)
_STRAY_BACKSLASH_PATTERN = re.compile(r'(?<!\\)\\(?![bfnrtu"\\/])')
_RAW_NEWLINE_PATTERN = re.compile(r"(?<!\\)\n")

_CLOSERS = {"{": "}", "[": "]"}


def strip_code_fences(text: str) -> str:
    return _FENCE_PATTERN.sub("", text)


def _escape_string_literal(match) -> str:
    body = _STRAY_BACKSLASH_PATTERN.sub(r"\\\\", match.group(1))
    body = _RAW_NEWLINE_PATTERN.sub(r"\\n", body)
    return f'"{body}"'


def sanitize_json_like(text: str) -> str:
    """Drops fences and comments, and escapes raw newlines and stray backslashes in strings."""
    text = _COMMENT_PATTERN.sub("", strip_code_fences(text))
    return _STRING_LITERAL_PATTERN.sub(_escape_string_literal, text)


class BaseUtils():

    def _coerce_field_to_str(self, value) -> str:
        """
        Prompt bindings are text: structures are JSON-encoded (indent 2, non-ascii kept).
        """
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        try:
            return json.dumps(value, indent=2, ensure_ascii=False)
        except TypeError:
            return str(value).strip()

    # -----------------------
    # LLM output parsing
    # -----------------------

    def extract_json_span(self, text: str, opener: str = "{") -> str | None:
        """
        Returns the substring from the first ``opener`` to the last matching closer
        ("{" -> "}", "[" -> "]"), or None when the text holds no such span.
        """
        if not text:
            return None
        start = text.find(opener)
        end = text.rfind(_CLOSERS[opener])
        if start == -1 or end < start:
            return None
        return text[start:end + 1]

    def _try_parse(self, text: str, ordered: bool):
        errors = []
        hook = {"object_pairs_hook": OrderedDict} if ordered else {}
        try:
            data = commentjson.loads(strip_code_fences(text), **hook)
        except Exception as e:
            errors.append(f"json: {e}")
        else:
            if isinstance(data, (dict, list)):
                return data, errors
            errors.append("json: not an object or array")
        try:
            data = yaml.safe_load(sanitize_json_like(text))
        except yaml.YAMLError as e:
            errors.append(f"yaml: {e}")
        else:
            if isinstance(data, (dict, list)):
                return data, errors
            errors.append("yaml: not an object or array")
        return None, errors

    def load_fault_tolerant_json(self, text, ensure_ordered=False):
        """
        Parses JSON as LLMs tend to write it. Tries, in order: strict JSON with comments
        (commentjson), YAML on a sanitized copy, then both again after json_repair.

        Raises ValueError when nothing yields an object or array.
        """
        data, errors = self._try_parse(text, ensure_ordered)
        if data is not None:
            return data

        data, repaired_errors = self._try_parse(repair_json(text), ensure_ordered)
        if data is not None:
            logger.debug("LLM JSON needed json_repair")
            return data

        detail = "; ".join(repaired_errors or errors)
        logger.warning("Could not parse LLM JSON: %s", detail)
        raise ValueError(f"load_fault_tolerant_json: JSON parsing failed: {detail}")
