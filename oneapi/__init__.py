"""Unified LLM gateway: one API surface over OpenAI, Azure OpenAI and Claude channels."""
