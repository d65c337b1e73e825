"""Shared chat-model client for the structured prompt flows.

Each flow renders a prompt, asks the model for a JSON answer and validates it
against a pydantic schema. The model is any object with an
``invoke(messages)`` method returning something with ``.content``; by default
a ``ChatOpenAI`` instance configured from ``LLM_MODEL``.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional, Protocol, Sequence, Type, TypeVar

from flask import current_app, has_app_context
from jinja2 import Environment, StrictUndefined
from langchain_core.messages import HumanMessage
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"

SchemaT = TypeVar("SchemaT", bound=BaseModel)

_prompts = Environment(undefined=StrictUndefined, trim_blocks=True, lstrip_blocks=True)


def _tojson_pretty(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


_prompts.filters["tojson_pretty"] = _tojson_pretty


class ChatModel(Protocol):
    def invoke(self, messages: Sequence[Any]) -> Any: ...


class FlowError(RuntimeError):
    """The model call failed or its answer did not match the expected schema."""


_override_llm: Optional[ChatModel] = None
_clients: Dict[str, ChatModel] = {}


def configured_model() -> str:
    """``LLM_MODEL`` from the app config, or the environment outside a request."""

    if has_app_context():
        return current_app.config.get("LLM_MODEL") or DEFAULT_MODEL
    return os.getenv("LLM_MODEL", DEFAULT_MODEL)


def get_llm() -> ChatModel:
    """Shared ``ChatOpenAI`` client for the configured model, created on first use."""

    if _override_llm is not None:
        return _override_llm
    model = configured_model()
    if model not in _clients:
        from langchain_openai import ChatOpenAI

        _clients[model] = ChatOpenAI(model=model, temperature=0.0)
    return _clients[model]


def set_llm(llm: Optional[ChatModel]) -> None:
    """Replace the shared client (``None`` restores lazy creation)."""

    global _override_llm
    _override_llm = llm


def strip_fences(content: str) -> str:
    content = content.strip()
    if content.startswith("```"):
        content = content.strip("`").strip()
        if content.startswith("json"):
            content = content[4:].strip()
    return content


def render_prompt(template: str, **context: Any) -> str:
    return _prompts.from_string(template).render(**context)


def invoke_text(
    prompt: str, llm: Optional[ChatModel] = None, media_url: Optional[str] = None
) -> str:
    """Send ``prompt`` as a single user message and return the raw answer.

    ``media_url`` (a ``data:`` URI) is attached as an image part.
    """

    model = llm or get_llm()
    content: Any = prompt
    if media_url:
        content = [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": media_url}},
        ]
    try:
        response = model.invoke([HumanMessage(content=content)])
    except Exception as exc:
        logger.error("LLM call failed: %s", exc)
        raise FlowError(f"LLM call failed: {exc}") from exc
    content = getattr(response, "content", response)
    return content if isinstance(content, str) else str(content)


def invoke_json(
    prompt: str,
    schema: Type[SchemaT],
    llm: Optional[ChatModel] = None,
    *,
    empty_message: str = "A IA não retornou uma resposta válida.",
    media_url: Optional[str] = None,
) -> SchemaT:
    """Ask for a JSON answer and validate it against ``schema``.

    Args:
        prompt: Fully rendered prompt. It should end by asking for JSON only.
        schema: Pydantic model describing the expected answer.
        llm: Optional chat model; defaults to :func:`get_llm`.
        empty_message: Error text when the model returns nothing usable.

    Returns:
        The validated schema instance.

    Raises:
        FlowError: On transport errors, empty answers, malformed JSON or a
            schema mismatch.
    """

    content = strip_fences(invoke_text(prompt, llm, media_url))
    if not content:
        raise FlowError(empty_message)
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        logger.warning("LLM returned invalid JSON: %s", content[:200])
        raise FlowError(empty_message) from exc
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        logger.warning("LLM answer failed %s validation: %s", schema.__name__, exc)
        raise FlowError(f"{empty_message} ({exc.error_count()} campos inválidos)") from exc


__all__ = [
    "ChatModel",
    "configured_model",
    "FlowError",
    "get_llm",
    "invoke_json",
    "invoke_text",
    "render_prompt",
    "set_llm",
    "strip_fences",
]
