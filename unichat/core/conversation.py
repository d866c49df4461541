"""
unichat - Conversation State

Per-conversation bookkeeping that must survive across turns.

Google's API never issues tool-call ids, so ids are synthesized locally and
the mapping between those ids and function names has to be remembered:
outgoing tool results are addressed by function name, incoming function
responses are matched back to the id that was handed to the caller.

One ConversationState belongs to one conversation. It is passed in by the
caller and never shared at module level.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class ConversationState:
    """Tool-call id <-> function name mapping for one conversation."""
    conversation_id: str = ""
    _names_by_id: Dict[str, str] = field(default_factory=dict)
    _last_id_by_name: Dict[str, str] = field(default_factory=dict)

    def record_call(self, call_id: str, name: str):
        """Remember that `call_id` invoked function `name`."""
        self._names_by_id[call_id] = name
        self._last_id_by_name[name] = call_id

    def name_for(self, call_id: str) -> Optional[str]:
        """Function name for a previously seen call id."""
        return self._names_by_id.get(call_id)

    def last_id_for(self, name: str) -> Optional[str]:
        """Most recent call id issued for function `name`."""
        return self._last_id_by_name.get(name)

    def resolve_tool_use_id(self, name: str) -> str:
        """Call id a function response answers, falling back to the name."""
        return self._last_id_by_name.get(name, name)

    def __len__(self) -> int:
        return len(self._names_by_id)
