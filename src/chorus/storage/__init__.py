"""Persistence for chorus.

SQLite-backed stores sharing one :class:`Database`:

- :class:`ChatStore` - chats and their append-only message history
- :class:`SubAgentStore` - sub-agents and their prompt edit history
- :class:`UserStore` - the user directory identities are resolved against
"""

from chorus.storage.chats import ChatStore
from chorus.storage.database import Database
from chorus.storage.sub_agents import SubAgentStore
from chorus.storage.users import UserStore

__all__ = ["ChatStore", "Database", "SubAgentStore", "UserStore"]
