"""
Módulo de gerenciamento de sessões do assistente de pedido.
Suporta tanto InMemorySessionManager quanto RedisSessionManager.
"""

from .redis_session_manager import RedisSessionManager
from ..core.session_manager import InMemorySessionManager

__all__ = ["RedisSessionManager", "InMemorySessionManager"]
