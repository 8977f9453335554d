"""Prompt templates for the command planner."""

from __future__ import annotations

import textwrap
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

SYSTEM_PROMPT = textwrap.dedent(
    """
    You are {name}, an AI companion living in a 2D sandbox world. You help players by planning
    and executing tasks.

    RESPONSE FORMAT:
    You must respond with valid JSON in this exact format:
    {{
      "reasoning": "Your thought process about the command",
      "plan": "Brief description of what you will do",
      "tasks": [
        {{"action": "actionName", "parameters": {{"param1": "value1", "param2": 123}}}}
      ]
    }}

    AVAILABLE ACTIONS:
    1. dig - Dig a tunnel. direction: "up" | "down" | "left" | "right"; depth: number (optional)
    2. mine - Mine ore or tiles. target: "copper", "iron", "silver", "gold", "demonite", "hellstone", ...; amount: number
    3. place - Place a tile. tile: tile name; x, y: offsets from your position
    4. build - Build a structure. structure: "house" | "tower" | "arena" | "hellevator" | "bridge" | "wall" | "platform"; width, height, material (optional)
    5. attack - Attack enemies. target: "nearest", "strongest" or an enemy name
    6. follow - Follow a player. player: player name or "nearest"; distance: number (optional)
    7. pathfind - Walk to a tile. x, y: absolute tile coordinates
    8. explore - Explore. direction: "left" | "right" | "up" | "down"; distance: number (optional)
    9. boss - Help with a boss. boss: boss name such as "EyeOfCthulhu"; step: "prepare" | "summon" | "fight"
    10. npcHousing - Manage NPC housing. npc: NPC name; housing_action: "build" | "check" | "assign"
    11. say - Say something in chat. message: text

    EXAMPLES:

    User: "Mine some iron"
    Response:
    {{"reasoning": "The player needs iron ore.", "plan": "Search for and mine iron ore deposits",
      "tasks": [{{"action": "mine", "parameters": {{"target": "iron", "amount": 30}}}}]}}

    User: "Follow me"
    Response:
    {{"reasoning": "The player wants me to follow them.", "plan": "Follow the nearest player",
      "tasks": [{{"action": "follow", "parameters": {{"player": "nearest", "distance": 5}}}}]}}

    Remember: always respond with valid JSON and nothing else.
    """
).strip()


@dataclass
class AgentContext:
    """Snapshot of an agent's situation, serialized into the user prompt."""

    name: str
    position: Tuple[int, int]
    depth: str = "Surface"
    current_goal: Optional[str] = None
    recent_actions: List[str] = field(default_factory=list)
    nearby_players: List[Tuple[str, int]] = field(default_factory=list)
    nearby_hostiles: List[Tuple[str, int]] = field(default_factory=list)
    nearby_tiles: List[Tuple[str, int, int]] = field(default_factory=list)
    inventory: List[str] = field(default_factory=list)
    conversation: List[str] = field(default_factory=list)


def build_system_prompt(agent_name: str = "Terra") -> str:
    return SYSTEM_PROMPT.format(name=agent_name)


def build_user_prompt(context: AgentContext, command: str) -> str:
    lines = ["=== CURRENT CONTEXT ===", ""]
    lines.append(f"My Position: ({context.position[0]}, {context.position[1]})")
    lines.append(f"Depth: {context.depth}")
    lines.append("")
    lines.append(f"Current Goal: {context.current_goal or 'None (idle)'}")
    if context.recent_actions:
        lines.append("Recent Actions:")
        lines.extend(f"  - {action}" for action in context.recent_actions[-5:])
    lines.append("")
    lines.append("Nearby Players:")
    if context.nearby_players:
        lines.extend(
            f"  - {name} (distance: {distance} tiles)" for name, distance in context.nearby_players
        )
    else:
        lines.append("  - None")
    lines.append("Nearby Enemies:")
    if context.nearby_hostiles:
        lines.extend(
            f"  - {name} (distance: {distance} tiles)" for name, distance in context.nearby_hostiles
        )
    else:
        lines.append("  - None")
    if context.nearby_tiles:
        lines.append("Nearby Notable Tiles:")
        lines.extend(
            f"  - {material} x{count} (nearest: {gap} tiles)" for material, count, gap in context.nearby_tiles
        )
    if context.inventory:
        lines.append("Inventory:")
        lines.extend(f"  - {item}" for item in context.inventory)
    if context.conversation:
        lines.append("")
        lines.append("Recent Conversation:")
        lines.extend(f"  {line}" for line in context.conversation)
    lines.append("")
    lines.append("=== COMMAND ===")
    lines.append(command.strip())
    return "\n".join(lines)


def describe_depth(y: int, surface: int, world_height: int) -> str:
    """Name the depth band of tile row ``y``; rows grow downward."""

    if y < surface - 40:
        return "Sky"
    if y <= surface:
        return "Surface"
    if y >= int(world_height * 0.85):
        return "Underworld"
    if y <= surface + (world_height - surface) // 4:
        return "Underground"
    return "Cavern"
