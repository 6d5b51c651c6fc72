"""Optional LLM backends.

Import `workflow_builder.adapters.gemini` directly; it requires ``google-genai``.
"""
