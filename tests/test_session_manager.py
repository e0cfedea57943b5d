"""Tests for wizard session stores."""

import json
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from kitrunner.core.errors import PersistenceError
from kitrunner.core.session_manager import (
    InMemorySessionManager,
    deserialize_state,
    serialize_state,
)
from kitrunner.core.wizard_state import WizardState, WizardStep
from kitrunner.session.redis_session_manager import RedisSessionManager


def sample_state() -> WizardState:
    return WizardState(
        session_id="abc",
        step=WizardStep.PAYMENT,
        event_id=1,
        customer_id=2,
        address_id=3,
        kit_quantity=2,
        kits=[{"name": "Ana", "cpf": "52998224725", "shirt_size": "M"}],
        quote={"total_cost": "26.50"},
        redirected_from=WizardStep.CONFIRMATION,
    )


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_serialization_round_trip() -> None:
    state = sample_state()
    data = serialize_state(state)
    assert data["step"] == "payment"
    assert json.loads(json.dumps(data)) == data
    assert deserialize_state(data) == state


class TestInMemorySessionManager:
    def test_save_and_get(self) -> None:
        manager = InMemorySessionManager()
        manager.save_session(sample_state())
        assert manager.get("abc") == sample_state()

    def test_returns_copies(self) -> None:
        manager = InMemorySessionManager()
        manager.save_session(sample_state())
        state = manager.get("abc")
        state.step = WizardStep.IDENTIFY
        assert manager.get("abc").step == WizardStep.PAYMENT

    def test_expires_after_ttl(self) -> None:
        clock = FakeClock()
        manager = InMemorySessionManager(session_ttl_seconds=60, clock=clock)
        manager.save_session(sample_state())
        clock.now += 59
        assert manager.get("abc") is not None
        clock.now += 1
        assert manager.get("abc") is None

    def test_clear(self) -> None:
        manager = InMemorySessionManager()
        manager.save_session(sample_state())
        manager.clear_session("abc")
        manager.clear_session("abc")
        assert manager.get("abc") is None


    def test_abandoned_sessions_are_evicted_on_save(self) -> None:
        clock = FakeClock()
        manager = InMemorySessionManager(session_ttl_seconds=1, clock=clock)
        for i in range(1000):
            manager.save_session(WizardState(session_id=f"tab-{i}"))
        clock.now += 10_000
        manager.save_session(sample_state())
        assert list(manager._sessions) == ["abc"]

    def test_purge_expired_keeps_live_sessions(self) -> None:
        clock = FakeClock()
        manager = InMemorySessionManager(session_ttl_seconds=60, clock=clock)
        manager.save_session(WizardState(session_id="old"))
        clock.now += 30
        manager.save_session(sample_state())
        clock.now += 30
        assert manager.purge_expired() == 1
        assert manager.get("abc") is not None


@pytest.fixture
def redis_client() -> MagicMock:
    store = {}
    client = MagicMock()
    client.setex.side_effect = lambda key, ttl, value: store.__setitem__(key, value)
    client.get.side_effect = lambda key: store.get(key)
    client.delete.side_effect = lambda key: store.pop(key, None)
    return client


class TestRedisSessionManager:
    def test_pings_on_start(self, redis_client: MagicMock) -> None:
        RedisSessionManager(client=redis_client)
        redis_client.ping.assert_called_once()

    def test_ping_failure_propagates(self, redis_client: MagicMock) -> None:
        redis_client.ping.side_effect = RedisConnectionError("down")
        with pytest.raises(RedisConnectionError):
            RedisSessionManager(client=redis_client)

    def test_save_uses_ttl(self, redis_client: MagicMock) -> None:
        manager = RedisSessionManager(session_ttl_seconds=120, client=redis_client)
        manager.save_session(sample_state())
        key, ttl, payload = redis_client.setex.call_args.args
        assert key == "wizard:abc"
        assert ttl == 120
        assert json.loads(payload.decode("utf-8"))["session_id"] == "abc"

    def test_round_trip(self, redis_client: MagicMock) -> None:
        manager = RedisSessionManager(client=redis_client)
        manager.save_session(sample_state())
        assert manager.get("abc") == sample_state()

    def test_missing_session(self, redis_client: MagicMock) -> None:
        manager = RedisSessionManager(client=redis_client)
        assert manager.get("nope") is None

    def test_clear(self, redis_client: MagicMock) -> None:
        manager = RedisSessionManager(client=redis_client)
        manager.save_session(sample_state())
        manager.clear_session("abc")
        assert manager.get("abc") is None

    def test_read_error_becomes_persistence_error(self, redis_client: MagicMock) -> None:
        manager = RedisSessionManager(client=redis_client)
        redis_client.get.side_effect = RedisConnectionError("down")
        with pytest.raises(PersistenceError):
            manager.get("abc")

    def test_write_error_becomes_persistence_error(self, redis_client: MagicMock) -> None:
        manager = RedisSessionManager(client=redis_client)
        redis_client.setex.side_effect = RedisConnectionError("down")
        with pytest.raises(PersistenceError):
            manager.save_session(sample_state())

    def test_is_alive(self, redis_client: MagicMock) -> None:
        manager = RedisSessionManager(client=redis_client)
        assert manager.is_alive() is True
        redis_client.ping.side_effect = RedisConnectionError("down")
        assert manager.is_alive() is False

    def test_clear_error_is_not_raised(self, redis_client: MagicMock) -> None:
        manager = RedisSessionManager(client=redis_client)
        redis_client.delete.side_effect = RedisConnectionError("down")
        manager.clear_session("abc")
