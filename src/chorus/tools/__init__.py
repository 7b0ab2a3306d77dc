"""Tools the orchestrator can dispatch to.

Tools are plain :class:`~chorus.tools.base.Tool` objects built by factory
functions with their dependencies passed in, and collected into a
:class:`~chorus.tools.registry.ToolRegistry` per request. Each declares a
JSON Schema for LLM function calling.

Available tools:

- **fetch** - Raw HTTP request with a timeout
- **web_search** / **web_read** - Search service and page extraction
- **create_sub_agent** / **find_sub_agent** / **run_sub_agent** /
  **update_sub_agent** / **delete_sub_agent** - Persisted prompt specializations

Usage::

    from chorus.tools.registry import build_tool_registry

    registry = build_tool_registry(config, sub_agent_store, web_client)
    outcome = await registry.execute(tool_call, chat_id=chat_id)
"""
