# vibe_assistant/export_service.py

import io
import json
import logging
import zipfile
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger("vibe_assistant")

# session["prompts"] key -> archive member
PROMPT_FILES = [
    ("setup", "setup-prompt.txt"),
    ("planning", "planning-prompt.txt"),
    ("implementation", "implementation-prompt.txt"),
    ("debugPrompt", "debug-prompt.txt"),
]

DEPLOY_SECTIONS = [
    ("deployVercel", "Vercel"),
    ("deployDocker", "Docker"),
    ("deployLocal", "Local"),
]

DEPLOY_SEPARATOR = "\n\n---\n\n"


def archive_filename(session_id: str) -> str:
    return f"cursor-guide-{session_id}.zip"


def _iso(value) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def build_deploy_instructions(prompts: dict) -> Optional[str]:
    sections = [
        f"# {title}\n\n{prompts[key]}"
        for key, title in DEPLOY_SECTIONS
        if prompts.get(key)
    ]
    return DEPLOY_SEPARATOR.join(sections) if sections else None


def build_session_archive(session: dict, category_name: Optional[str] = None, exported_at: Optional[datetime] = None) -> bytes:
    """
    ZIP with whatever the session has produced so far. Only metadata.json is always present.
    """
    prompts = session.get("prompts") or {}
    exported_at = exported_at or datetime.now(timezone.utc)

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        if session.get("prd"):
            zf.writestr("PRD.md", session["prd"])

        for key, member in PROMPT_FILES:
            if prompts.get(key):
                zf.writestr(member, prompts[key])

        deploy = build_deploy_instructions(prompts)
        if deploy:
            zf.writestr("deploy-instructions.txt", deploy)

        metadata = {
            "sessionId": session.get("id"),
            "createdAt": _iso(session.get("createdAt")),
            "category": session.get("category"),
            "categoryName": category_name,
            "goal": session.get("projectGoal"),
            "ideaDescription": session.get("ideaDescription"),
            "exportedAt": exported_at.isoformat(),
        }
        zf.writestr("metadata.json", json.dumps(metadata, indent=2, ensure_ascii=False))

    data = buf.getvalue()
    logger.info("Session %s exported (%d bytes)", session.get("id"), len(data))
    return data
