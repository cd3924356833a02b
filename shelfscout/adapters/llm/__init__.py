"""
LLM Adapter - Unified interface for language model access.

Supports:
- OpenAI-compatible chat completions
- Gemini generateContent
- Ollama for local models

Usage:
    from shelfscout.adapters.llm import create_llm_service

    llm = create_llm_service(get_settings())  # None when disabled
    hints = await llm.generate_json("Query: tolkien ring", system_instruction=PROMPT)
"""

from .service import LLMResponse, LLMService, create_llm_service, parse_json_object

__all__ = ["LLMService", "LLMResponse", "create_llm_service", "parse_json_object"]
