"""Chorus - a conversational orchestrator with self-refining sub-agents.

A main LLM loop answers each prompt, calling tools along the way: web search,
page reading, HTTP fetch, and a set of tools that create, find, run, update
and delete stored sub-agent prompts. Every step is persisted to a chat
history, and after a turn that ran a sub-agent the model may refine that
sub-agent's prompt.

Key modules:

- :mod:`chorus.agent` - Turn loop, budgets, directives and stream frames
- :mod:`chorus.llm` - OpenAI-compatible client abstraction with streaming
- :mod:`chorus.tools` - Tool schemas, per-request registry and handlers
- :mod:`chorus.storage` - SQLite stores for chats, sub-agents and users
- :mod:`chorus.server` - FastAPI app with SSE chat endpoints
"""

__version__ = "0.1.0"
