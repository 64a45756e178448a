from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from .providers import OutputStrategy

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .validator import ValidationError

SYSTEM_PROMPT = (
    "You are a helpful assistant that extracts structured data from the context "
    "given by the user. Only use information found in the context. Follow the "
    "description of each field. Leave out optional fields the context says "
    "nothing about."
)

LIST_INSTRUCTION = "Every matching item found in the context, in order of appearance."


def build_messages(
    schema: dict[str, Any],
    context: str,
    *,
    strategy: OutputStrategy,
    instructions: str | None = None,
    feedback: Sequence[ValidationError] = (),
    system_prompt: str = SYSTEM_PROMPT,
) -> list[dict[str, Any]]:
    """Build the chat messages for one extraction attempt.

    With the function strategy the schema travels as the tool definition;
    otherwise it is spelled out in the system prompt. Validation errors from
    the previous attempt are appended as a final user message.
    """
    system = system_prompt
    if strategy is not OutputStrategy.FUNCTION:
        system += (
            "\n\nRespond with a single JSON document, and nothing else, matching "
            "this JSON schema:\n" + json.dumps(schema, indent=2)
        )
    if instructions:
        system += "\n\n" + instructions.strip()

    messages: list[dict[str, Any]] = [
        {"role": "system", "content": system},
        {"role": "user", "content": context},
    ]
    if feedback:
        messages.append({"role": "user", "content": repair_message(feedback)})
    return messages


def repair_message(errors: Sequence[ValidationError]) -> str:
    lines = "\n".join(f"- {error}" for error in errors)
    return (
        "Your previous answer did not match the expected schema:\n"
        f"{lines}\n"
        "Extract the data again from the same context and fix these errors."
    )
