"""Instruction text injected by the orchestrator."""

from chorus.storage.schema import SubAgentRecord

FORCE_FINISH_INSTRUCTION = (
    "You are close to the limit for this turn. Do not call any more tools. "
    "Answer the user now with the information already gathered."
)

BUDGET_EXHAUSTED_INSTRUCTION = (
    "The tool budget for this turn is used up. Write the best final answer you can "
    "from the conversation so far, and say briefly what could not be completed."
)

TITLE_INSTRUCTION = (
    "Summarize the user's first message as a short chat title of at most six words. "
    "Reply with the title only."
)

TITLE_SCHEMA = {
    "type": "object",
    "properties": {"title": {"type": "string"}},
    "required": ["title"],
    "additionalProperties": False,
}


def critique_instruction(sub_agent: SubAgentRecord) -> str:
    """Instruction for the post-turn review of a sub-agent prompt."""
    return (
        f'Review how the sub-agent "{sub_agent.name}" (id "{sub_agent.id}") served this '
        "exchange. Its current prompt is:\n\n"
        f"{sub_agent.prompt}\n\n"
        "If the exchange showed a gap or mistake in this prompt, call update_sub_agent "
        "with a concise refinement that would have produced a better answer. If the "
        'prompt needs no change, call update_sub_agent with an empty "prompt".'
    )
