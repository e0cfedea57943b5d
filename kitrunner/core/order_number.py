import logging
import threading
import time
from datetime import datetime
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class OrderNumberGenerator:
    """
    Gera números de pedido legíveis: prefixo + ano + sufixo derivado do tempo.

    Ex: "KR2026" + centésimos de segundo desde o início do ano (10 dígitos).

    Dentro do processo o sufixo é estritamente crescente, então dois
    pedidos nunca recebem o mesmo número. Entre processos a colisão é
    improvável mas possível; a constraint única da tabela `orders`
    detecta e o serviço de pedidos tenta de novo.
    """

    def __init__(
        self,
        prefix: str = "KR",
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._prefix = prefix
        self._clock = clock or time.time
        self._lock = threading.Lock()
        self._last_year: Optional[int] = None
        self._last_tick = -1

    def generate(self) -> str:
        with self._lock:
            now = datetime.fromtimestamp(self._clock())
            year_start = datetime(now.year, 1, 1)
            tick = int((now - year_start).total_seconds() * 100)

            if self._last_year == now.year and tick <= self._last_tick:
                tick = self._last_tick + 1

            self._last_year = now.year
            self._last_tick = tick

        number = f"{self._prefix}{now.year}{tick:010d}"
        logger.debug(f"Número de pedido gerado: {number}")
        return number
