from templeline.prompts import get_system_prompt
from templeline.session import CallState, Role, Turn

# Non-system turns the language model sees per request.
MAX_HISTORY_TURNS = 20

_SPEAKERS = {Role.ASSISTANT: "Agent", Role.USER: "Caller"}


def model_messages(state: CallState, max_history: int = MAX_HISTORY_TURNS) -> list[dict]:
    """Chat messages for the language model: system turn plus the recent window.

    Booking details already on the draft are restated in the system turn, so
    dropping old turns never loses collected fields.
    """
    history = [t for t in state.transcript if t.role != Role.SYSTEM]
    if max_history > 0:
        history = history[-max_history:]
    messages = [{"role": "system", "content": get_system_prompt(state.draft)}]
    messages.extend({"role": t.role.value, "content": t.text} for t in history)
    return messages


def to_plain_text(turns: list[Turn]) -> str:
    """Caller/agent lines, system instruction omitted."""
    lines = []
    for turn in turns:
        speaker = _SPEAKERS.get(turn.role)
        if speaker:
            lines.append(f"{speaker}: {turn.text}")
    return "\n".join(lines)


def to_json_array(turns: list[Turn]) -> list[dict]:
    return [
        {"role": turn.role.value, "content": turn.text}
        for turn in turns
        if turn.role != Role.SYSTEM
    ]


def to_timestamped_dump(state: CallState) -> dict:
    """Transcript dump for the end-of-call log line.

    Timestamps are relative seconds from the first turn.
    """
    turns = [t for t in state.transcript if t.role != Role.SYSTEM]
    base_time = turns[0].timestamp if turns else 0.0
    return {
        "call_id": state.call_id,
        "final_phase": state.phase.value,
        "transfer_attempts": state.transfer_attempts,
        "entries": [
            {
                "t": round(turn.timestamp - base_time, 1),
                "role": turn.role.value,
                "phase": turn.phase,
                "content": turn.text,
            }
            for turn in turns
        ],
    }
