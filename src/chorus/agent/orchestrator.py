"""Conversation orchestration loop.

One turn takes a user prompt through repeated model calls. Each call either
requests tools, whose results are appended before the next call, or answers
in plain text, which ends the turn. An iteration budget and a token budget
bound the loop: near the soft limit the model must answer without tools, and
past the hard limit tools are skipped entirely and a final answer is forced.
"""

import asyncio
import json
import logging
import weakref
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

from chorus.agent.directives import directive_instructions, parse_directives
from chorus.agent.events import ChatCreated, Frame, TextDelta, TurnDone
from chorus.agent.prompts import (
    BUDGET_EXHAUSTED_INSTRUCTION,
    FORCE_FINISH_INSTRUCTION,
    TITLE_INSTRUCTION,
    TITLE_SCHEMA,
    critique_instruction,
)
from chorus.llm.client import (
    AssistantMessage,
    LLMClient,
    Message,
    SystemMessage,
    ToolCall,
    ToolMessage,
    UserMessage,
)
from chorus.llm.streaming import ToolCallAccumulator
from chorus.storage.chats import ChatStore
from chorus.storage.sub_agents import SubAgentStore
from chorus.storage.users import UserStore
from chorus.tools.registry import ToolRegistry, parse_arguments
from chorus.tools.sub_agents import RUN_SUB_AGENT, UPDATE_SUB_AGENT

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 100


@dataclass(frozen=True)
class TurnBudget:
    """Iteration and token limits for one turn."""

    max_iterations: int = 12
    hard_token_limit: int = 150_000
    soft_token_limit: int = 140_000

    def exhausted(self, iteration: int, total_tokens: int) -> bool:
        """No further tool use is allowed."""
        return iteration >= self.max_iterations or total_tokens > self.hard_token_limit

    def should_force_finish(self, iteration: int, total_tokens: int) -> bool:
        """The next call is the last one and must answer without tools."""
        return iteration >= self.max_iterations - 1 or total_tokens >= self.soft_token_limit


@dataclass(frozen=True)
class SubAgentRef:
    id: str
    name: str


@dataclass
class TurnState:
    """Mutable state of one turn."""

    chat_id: str
    messages: list[Message]
    iteration: int = 0
    total_tokens: int = 0
    model_calls: int = 0
    context_agent: SubAgentRef | None = None
    critique_pending: bool = False


class Orchestrator:
    """Runs chat turns against an LLM, a tool registry and the stores."""

    def __init__(
        self,
        llm: LLMClient,
        chats: ChatStore,
        users: UserStore,
        sub_agents: SubAgentStore,
        tools_factory: Callable[[], ToolRegistry],
        budget: TurnBudget | None = None,
        system_prompt: str = "You are a helpful AI assistant.",
        default_chat_title: str = "New Chat",
        self_critique: bool = True,
    ):
        """Initialize the orchestrator.

        Args:
            llm: LLM client for generating responses
            chats: Chat history storage
            users: User directory used to resolve user ids
            sub_agents: Sub-agent storage (directives and self-critique)
            tools_factory: Builds a fresh ToolRegistry for each turn
            budget: Iteration and token limits
            system_prompt: System prompt for the main loop
            default_chat_title: Title used when title generation fails
            self_critique: Whether to review a sub-agent after a turn that ran it
        """
        self.llm = llm
        self.chats = chats
        self.users = users
        self.sub_agents = sub_agents
        self.tools_factory = tools_factory
        self.budget = budget or TurnBudget()
        self.system_prompt = system_prompt
        self.default_chat_title = default_chat_title
        self.self_critique = self_critique
        self._chat_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    # -- entry points ------------------------------------------------------

    async def start_chat(self, user_id: str, prompt: str) -> AsyncIterator[Frame]:
        """Create a chat from its first prompt.

        The user is resolved here, before any model call; the returned stream
        starts with a :class:`ChatCreated` frame.

        Raises:
            NotFoundError: If the user does not exist
        """
        self.users.require_user(user_id)
        return self._start_chat_stream(user_id, prompt)

    async def run_turn(self, user_id: str, chat_id: str, prompt: str) -> AsyncIterator[Frame]:
        """Continue an existing chat with a new prompt.

        Raises:
            NotFoundError: If the user or chat does not exist
            UnauthorizedError: If the chat belongs to another user
        """
        self.users.require_user(user_id)
        self.chats.get_owned_chat(user_id, chat_id)
        return self._run_turn_stream(chat_id, prompt)

    create_chat = start_chat
    continue_chat = run_turn

    # -- streams -----------------------------------------------------------

    def _chat_lock(self, chat_id: str) -> asyncio.Lock:
        lock = self._chat_locks.get(chat_id)
        if lock is None:
            lock = asyncio.Lock()
            self._chat_locks[chat_id] = lock
        return lock

    async def _start_chat_stream(self, user_id: str, prompt: str) -> AsyncIterator[Frame]:
        title = await self._generate_title(prompt)
        chat = self.chats.create_chat(user_id, title=title, first_message=UserMessage(prompt))
        logger.info("Created chat %s for user %s", chat.id, user_id)

        yield ChatCreated(chat_id=chat.id)

        async with self._chat_lock(chat.id):
            state = self._new_state(chat.id, history=[], prompt=prompt)
            async for frame in self._play_turn(state):
                yield frame

    async def _run_turn_stream(self, chat_id: str, prompt: str) -> AsyncIterator[Frame]:
        async with self._chat_lock(chat_id):
            history = self.chats.load_messages(chat_id)
            self.chats.append_message(chat_id, UserMessage(prompt))
            state = self._new_state(chat_id, history=history, prompt=prompt)
            async for frame in self._play_turn(state):
                yield frame

    def _new_state(self, chat_id: str, history: list[Message], prompt: str) -> TurnState:
        messages: list[Message] = [SystemMessage(self.system_prompt), *history, UserMessage(prompt)]

        directives = parse_directives(prompt, self.sub_agents.list_sub_agents())
        if directives:
            logger.debug("Directives for chat %s: %s", chat_id, directives)
        messages.extend(SystemMessage(text) for text in directive_instructions(directives))

        return TurnState(chat_id=chat_id, messages=messages)

    # -- loop --------------------------------------------------------------

    async def _play_turn(self, state: TurnState) -> AsyncIterator[Frame]:
        """Run the loop, signal the end of the turn, then review the sub-agent it ran."""
        registry = self.tools_factory()
        async for frame in self._run_loop(state, registry):
            yield frame

        yield TurnDone()

        if state.critique_pending:
            await self._critique_sub_agent(state, registry)

    async def _run_loop(self, state: TurnState, registry: ToolRegistry) -> AsyncIterator[Frame]:
        tool_schemas = registry.schemas()
        logger.info("Turn started in chat %s", state.chat_id)

        while True:
            if self.budget.exhausted(state.iteration, state.total_tokens):
                logger.info(
                    "Budget exhausted in chat %s (iteration %d, %d tokens)",
                    state.chat_id,
                    state.iteration,
                    state.total_tokens,
                )
                async for frame in self._finalize(state):
                    yield frame
                return

            force_finish = self.budget.should_force_finish(state.iteration, state.total_tokens)
            if force_finish:
                call_messages = [*state.messages, SystemMessage(FORCE_FINISH_INSTRUCTION)]
                tools = None
                tool_choice = "none"
            else:
                call_messages = state.messages
                tools = tool_schemas or None
                tool_choice = "required" if state.iteration == 0 else "auto"

            text_parts: list[str] = []
            accumulator = ToolCallAccumulator()
            async for chunk in self.llm.stream_complete(
                call_messages, tools=tools, tool_choice=tool_choice
            ):
                if chunk.content:
                    text_parts.append(chunk.content)
                    yield TextDelta(chunk.content)
                for delta in chunk.tool_calls:
                    accumulator.add(delta)
                if chunk.usage:
                    state.total_tokens += chunk.usage.total_tokens
            state.model_calls += 1

            content = "".join(text_parts)
            tool_calls = accumulator.finish()

            if tool_calls and state.total_tokens > self.budget.hard_token_limit:
                logger.warning(
                    "Skipping %d tool call(s) in chat %s: %d tokens exceed the hard limit",
                    len(tool_calls),
                    state.chat_id,
                    state.total_tokens,
                )
                if content:
                    self._record(state, [AssistantMessage(content=content)])
                async for frame in self._finalize(state):
                    yield frame
                return

            if not tool_calls:
                self._record(state, [AssistantMessage(content=content)])
                state.critique_pending = state.context_agent is not None and self.self_critique
                logger.info(
                    "Turn finished in chat %s after %d model call(s), %d tokens",
                    state.chat_id,
                    state.model_calls,
                    state.total_tokens,
                )
                return

            await self._dispatch(state, registry, content, tool_calls)

            if force_finish:
                async for frame in self._finalize(state):
                    yield frame
                return

            state.iteration += 1

    async def _dispatch(
        self,
        state: TurnState,
        registry: ToolRegistry,
        content: str,
        tool_calls: list[ToolCall],
    ) -> None:
        """Execute tool calls in model order and record the results."""
        tool_messages: list[Message] = []

        for tool_call in tool_calls:
            outcome = await registry.execute(tool_call, chat_id=state.chat_id)
            tool_messages.append(
                ToolMessage(content=outcome.content, tool_call_id=tool_call.id, name=tool_call.name)
            )
            if tool_call.name == RUN_SUB_AGENT and outcome.ok:
                ran = outcome.result["sub_agent"]
                state.context_agent = SubAgentRef(id=ran["id"], name=ran["name"])

        assistant = AssistantMessage(content=content, tool_calls=tool_calls)
        self._record(state, [assistant, *tool_messages])

    async def _finalize(self, state: TurnState) -> AsyncIterator[Frame]:
        """Force a final answer with tools disabled."""
        messages = [*state.messages, SystemMessage(BUDGET_EXHAUSTED_INSTRUCTION)]
        text_parts: list[str] = []

        async for chunk in self.llm.stream_complete(messages, tools=None):
            if chunk.content:
                text_parts.append(chunk.content)
                yield TextDelta(chunk.content)
            if chunk.usage:
                state.total_tokens += chunk.usage.total_tokens
        state.model_calls += 1

        content = "".join(text_parts)
        self._record(state, [AssistantMessage(content=content)])
        logger.info(
            "Turn finalized in chat %s after %d model call(s), %d tokens",
            state.chat_id,
            state.model_calls,
            state.total_tokens,
        )

    def _record(self, state: TurnState, messages: list[Message]) -> None:
        state.messages.extend(messages)
        if len(messages) == 1:
            self.chats.append_message(state.chat_id, messages[0])
        else:
            self.chats.append_messages(state.chat_id, messages)

    # -- auxiliary calls ---------------------------------------------------

    async def _critique_sub_agent(self, state: TurnState, registry: ToolRegistry) -> None:
        """Let the model refine the prompt of the sub-agent this turn ran.

        Best effort: every failure is logged and swallowed.
        """
        ref = state.context_agent
        if ref is None or not registry.has(UPDATE_SUB_AGENT):
            return

        try:
            sub_agent = self.sub_agents.get(ref.id)
            response = await self.llm.complete(
                [*state.messages, SystemMessage(critique_instruction(sub_agent))],
                tools=registry.schemas([UPDATE_SUB_AGENT]),
                tool_choice="required",
            )

            updates = [tc for tc in response.tool_calls or [] if tc.name == UPDATE_SUB_AGENT]
            if not updates:
                logger.debug("Self-critique proposed no update for '%s'", ref.name)
                return

            args = parse_arguments(updates[0].arguments)
            if not str(args.get("prompt") or "").strip():
                logger.debug("Self-critique kept '%s' unchanged", ref.name)
                return

            # The review may only touch the sub-agent that was run
            args["id"] = ref.id
            call = ToolCall(id=updates[0].id, name=UPDATE_SUB_AGENT, arguments=json.dumps(args))
            outcome = await registry.execute(call, chat_id=state.chat_id)
            if outcome.ok:
                logger.info("Self-critique refined sub-agent '%s'", ref.name)
            else:
                logger.info("Self-critique update for '%s' failed: %s", ref.name, outcome.error)
        except Exception:
            logger.warning("Self-critique for sub-agent '%s' failed", ref.name, exc_info=True)

    async def _generate_title(self, prompt: str) -> str:
        """Summarize the first prompt as a chat title, with a fixed fallback."""
        try:
            data = await self.llm.complete_structured(
                [SystemMessage(TITLE_INSTRUCTION), UserMessage(prompt)],
                schema_name="chat_title",
                schema=TITLE_SCHEMA,
            )
        except Exception:
            logger.warning("Title generation failed, using default title", exc_info=True)
            return self.default_chat_title

        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            return self.default_chat_title
        return title.strip()[:MAX_TITLE_LENGTH]
