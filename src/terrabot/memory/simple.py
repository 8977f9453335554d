"""Per-agent memory: conversation lines, recent action log and the current goal."""

from __future__ import annotations

import collections
from dataclasses import dataclass, field
from typing import Deque, List, Optional

MAX_RECENT_ACTIONS = 20
MAX_CONVERSATION = 20


@dataclass(frozen=True)
class MemoryRecord:
    role: str
    content: str

    def describe(self) -> str:
        return f"{self.role}: {self.content}"


class ConversationBufferMemory:
    """Bounded chat transcript; the oldest line falls off once ``max_items`` is reached."""

    def __init__(self, max_items: int = MAX_CONVERSATION) -> None:
        self.max_items = max_items
        self._items: Deque[MemoryRecord] = collections.deque(maxlen=max_items)

    def add(self, role: str, content: str) -> None:
        self._items.append(MemoryRecord(role=role, content=content))

    def recent(self, count: int) -> List[MemoryRecord]:
        if count <= 0:
            return []
        return list(self._items)[-count:]

    def dump(self) -> List[MemoryRecord]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()


@dataclass
class AgentMemory:
    """What an agent remembers between plans; fed back into the planning prompt."""

    current_goal: Optional[str] = None
    conversation: ConversationBufferMemory = field(default_factory=ConversationBufferMemory)
    _actions: Deque[str] = field(default_factory=lambda: collections.deque(maxlen=MAX_RECENT_ACTIONS))

    def add_action(self, description: str) -> None:
        self._actions.append(description)

    def recent_actions(self, count: int = 5) -> List[str]:
        if count <= 0:
            return []
        return list(self._actions)[-count:]

    def remember(self, role: str, content: str) -> None:
        self.conversation.add(role, content)

    def clear(self) -> None:
        self.current_goal = None
        self._actions.clear()
        self.conversation.clear()
