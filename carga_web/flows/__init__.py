"""LLM-backed flows that extract structured data or draft messages."""

from .llm import FlowError, get_llm, set_llm

__all__ = ["FlowError", "get_llm", "set_llm"]
