# vibe_assistant/entities.py
"""
Request bodies of the HTTP API. Fields are optional on purpose: presence checks live in
Backend so that a missing field yields the same localized 400 message as an empty one.
"""

from typing import Any, Optional

from pydantic import BaseModel


class ValidateAnswersRequest(BaseModel):
    answers: Optional[dict[str, Any]] = None


class AnalyzeCategoryRequest(BaseModel):
    ideaDescription: Optional[str] = None


class AdaptiveQuestionsRequest(BaseModel):
    ideaDescription: Optional[str] = None
    category: Optional[str] = None
    baseAnswers: Optional[dict[str, Any]] = None


class GeneratePrdRequest(BaseModel):
    ideaDescription: Optional[str] = None
    category: Optional[str] = None
    allAnswers: Optional[dict[str, Any]] = None
    goal: Optional[str] = None


class GeneratePromptsRequest(BaseModel):
    prd: Optional[str] = None
    goal: Optional[str] = None
    category: Optional[str] = None


class DebugPromptRequest(BaseModel):
    errorDescription: Optional[str] = None
    prd: Optional[str] = None


class AnalyzeIdeaRequest(BaseModel):
    idea: Optional[Any] = None


class UpdateVisionRequest(BaseModel):
    productVision: Optional[str] = None
    keyFeatures: Optional[list[str]] = None
    corrections: Optional[str] = None


class GeneratePlanRequest(BaseModel):
    projectId: Optional[str] = None
