import logging
import threading
import time
from dataclasses import asdict
from typing import Any, Callable, Dict, Optional, Tuple

from .wizard_state import WizardState, WizardStep

logger = logging.getLogger(__name__)


def serialize_state(state: WizardState) -> Dict[str, Any]:
    """
    Converte WizardState em dict serializável em JSON.
    """
    data = asdict(state)
    data["step"] = state.step.value
    data["redirected_from"] = state.redirected_from.value if state.redirected_from else None
    return data


def deserialize_state(data: Dict[str, Any]) -> WizardState:
    """
    Reconstrói WizardState a partir do dict produzido por serialize_state.
    """
    redirected_from = data.get("redirected_from")
    return WizardState(
        session_id=data["session_id"],
        step=WizardStep(data.get("step", WizardStep.EVENT_VIEW.value)),
        event_id=data.get("event_id"),
        customer_id=data.get("customer_id"),
        address_id=data.get("address_id"),
        can_register=bool(data.get("can_register", False)),
        coupon_code=data.get("coupon_code"),
        kit_quantity=int(data.get("kit_quantity", 1)),
        kits=list(data.get("kits") or []),
        quote=data.get("quote"),
        payment_method=data.get("payment_method"),
        order_number=data.get("order_number"),
        redirected_from=WizardStep(redirected_from) if redirected_from else None,
        error=data.get("error"),
    )


class InMemorySessionManager:
    """
    Sessões do assistente guardadas em memória, com expiração.
    Em produção com várias instâncias, use RedisSessionManager.
    """

    def __init__(
        self,
        session_ttl_seconds: int = 7200,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._sessions: Dict[str, Tuple[float, Dict[str, Any]]] = {}
        self._ttl = session_ttl_seconds
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[WizardState]:
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None:
                return None
            expires_at, data = entry
            if self._clock() >= expires_at:
                del self._sessions[session_id]
                logger.debug(f"Sessão expirada descartada: session_id={session_id}")
                return None
        # Cópia independente: alterações só valem depois de save()
        return deserialize_state(data)

    def purge_expired(self) -> int:
        """
        Remove as sessões vencidas. Abas fechadas nunca voltam a ler a
        própria sessão, então a limpeza não pode depender do get().
        """
        with self._lock:
            return self._purge_locked(self._clock())

    def _purge_locked(self, now: float) -> int:
        expired = [sid for sid, (expires_at, _) in self._sessions.items() if now >= expires_at]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.debug(f"Sessões expiradas removidas: count={len(expired)}")
        return len(expired)

    def save_session(self, state: WizardState) -> None:
        with self._lock:
            now = self._clock()
            self._purge_locked(now)
            self._sessions[state.session_id] = (now + self._ttl, serialize_state(state))
        logger.debug(f"Sessão salva em memória: session_id={state.session_id}, {state.get_summary()}")

    def clear_session(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)
