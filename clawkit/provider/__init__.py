"""LLM provider interface, call context, OpenAI-compatible client and provider wrappers."""