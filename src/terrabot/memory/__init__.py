from .simple import MAX_RECENT_ACTIONS, AgentMemory, ConversationBufferMemory, MemoryRecord

__all__ = ["AgentMemory", "ConversationBufferMemory", "MAX_RECENT_ACTIONS", "MemoryRecord"]
