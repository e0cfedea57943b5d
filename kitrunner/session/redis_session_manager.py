"""
Sessões do assistente de pedido guardadas no Redis.

Cada WizardState vira um JSON na chave wizard:{session_id}, com TTL
renovado a cada gravação, igual ao sessionStorage de uma aba.
"""
import logging
import json
from typing import Optional
from redis import Redis
from redis.exceptions import RedisError
from ..core.errors import PersistenceError
from ..core.session_manager import deserialize_state, serialize_state
from ..core.wizard_state import WizardState

logger = logging.getLogger(__name__)

KEY_PREFIX = "wizard:"


class RedisSessionManager:
    """
    Mesmo contrato do InMemorySessionManager, compartilhado entre workers.

    Falha de conexão na criação é propagada (o engine decide o fallback);
    falhas de leitura e escrita depois disso viram PersistenceError.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        session_ttl_seconds: int = 7200,
        client: Optional[Redis] = None,
    ) -> None:
        # client injetado nos testes; em produção vem da URL
        self._redis = client or Redis.from_url(redis_url, decode_responses=False)
        self._session_ttl_seconds = session_ttl_seconds

        try:
            self._redis.ping()
        except RedisError as e:
            logger.error(f"Redis indisponível na inicialização: error={e}")
            raise
        logger.info(f"RedisSessionManager pronto: ttl={session_ttl_seconds}s")

    def is_alive(self) -> bool:
        try:
            return bool(self._redis.ping())
        except RedisError as e:
            logger.warning(f"Redis não respondeu ao ping: error={e}")
            return False

    def get(self, session_id: str) -> Optional[WizardState]:
        """Estado salvo da sessão; None quando não existe ou já expirou."""
        try:
            raw = self._redis.get(KEY_PREFIX + session_id)
        except RedisError as e:
            logger.error(f"Falha ao ler sessão: session_id={session_id}, error={e}")
            raise PersistenceError("Erro ao recuperar a sessão. Tente novamente.") from e

        if not raw:
            return None
        state = deserialize_state(json.loads(raw.decode("utf-8")))
        logger.debug(f"Sessão lida do Redis: session_id={session_id}, {state.get_summary()}")
        return state

    def save_session(self, state: WizardState) -> None:
        payload = json.dumps(serialize_state(state), ensure_ascii=False).encode("utf-8")
        try:
            self._redis.setex(KEY_PREFIX + state.session_id, self._session_ttl_seconds, payload)
        except RedisError as e:
            logger.error(f"Falha ao gravar sessão: session_id={state.session_id}, error={e}")
            raise PersistenceError("Erro ao salvar a sessão. Tente novamente.") from e
        logger.debug(f"Sessão gravada no Redis: session_id={state.session_id}, {state.get_summary()}")

    def clear_session(self, session_id: str) -> None:
        # Descartar sessão é best-effort: se falhar, o TTL limpa depois
        try:
            self._redis.delete(KEY_PREFIX + session_id)
        except RedisError as e:
            logger.warning(f"Falha ao remover sessão: session_id={session_id}, error={e}")
            return
        logger.debug(f"Sessão removida do Redis: session_id={session_id}")
