"""Tests for order number generation."""

import re
import threading
from datetime import datetime

from kitrunner.core.order_number import OrderNumberGenerator


def fixed_clock(moment: datetime):
    return lambda: moment.timestamp()


class TestOrderNumberGenerator:
    def test_format(self) -> None:
        moment = datetime(2026, 3, 1, 12, 0, 0)
        generator = OrderNumberGenerator(clock=fixed_clock(moment))
        expected_tick = int((moment - datetime(2026, 1, 1)).total_seconds() * 100)
        assert generator.generate() == f"KR2026{expected_tick:010d}"

    def test_custom_prefix(self) -> None:
        generator = OrderNumberGenerator(prefix="XP")
        assert re.fullmatch(r"XP\d{4}\d{10}", generator.generate())

    def test_unique_when_clock_stands_still(self) -> None:
        generator = OrderNumberGenerator(clock=fixed_clock(datetime(2026, 5, 1, 8, 30)))
        numbers = [generator.generate() for _ in range(1000)]
        assert len(set(numbers)) == 1000
        assert numbers == sorted(numbers)

    def test_unique_across_threads(self) -> None:
        generator = OrderNumberGenerator()
        numbers = []
        lock = threading.Lock()

        def worker() -> None:
            local = [generator.generate() for _ in range(200)]
            with lock:
                numbers.extend(local)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(numbers) == 1600
        assert len(set(numbers)) == 1600

    def test_new_year_restarts_suffix(self) -> None:
        moments = iter([datetime(2026, 12, 31, 23, 59, 59), datetime(2027, 1, 1, 0, 0, 1)])
        generator = OrderNumberGenerator(clock=lambda: next(moments).timestamp())
        first = generator.generate()
        second = generator.generate()
        assert first.startswith("KR2026")
        assert second == "KR20270000000100"
