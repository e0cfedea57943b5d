"""Tests for the HTTP API."""

from fastapi.testclient import TestClient

from kitrunner.api.http import create_app
from kitrunner.config import AppConfig
from kitrunner.core.engine import KitRunnerEngine
from kitrunner.core.session_manager import InMemorySessionManager

from conftest import (
    BH_EVENT_ID,
    JOAO_ADDRESS_ID,
    JOAO_ID,
    RIO_EVENT_ID,
    SP_EVENT_ID,
)

KITS = [
    {"name": "Ana", "cpf": "529.982.247-25", "shirtSize": "M"},
    {"name": "Bruno", "cpf": "11144477735", "shirtSize": "G"},
    {"name": "Carla", "cpf": "39053344705", "shirtSize": "PP"},
]


def order_body(**overrides) -> dict:
    body = {
        "eventId": SP_EVENT_ID,
        "customerId": JOAO_ID,
        "addressId": JOAO_ADDRESS_ID,
        "kitQuantity": 3,
        "kits": KITS,
        "paymentMethod": "pix",
    }
    body.update(overrides)
    return body


class TestEvents:
    def test_list(self, client: TestClient) -> None:
        resp = client.get("/events")
        assert resp.status_code == 200
        events = resp.json()
        assert [e["id"] for e in events] == [SP_EVENT_ID, RIO_EVENT_ID, BH_EVENT_ID]
        assert events[0]["extraKitPrice"] == 8.0
        assert events[1]["fixedPrice"] == 50.0
        assert events[0]["fixedPrice"] is None

    def test_not_found(self, client: TestClient) -> None:
        resp = client.get("/events/999")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Evento não encontrado"

    def test_request_id_header(self, client: TestClient) -> None:
        resp = client.get("/events")
        assert len(resp.headers["X-Request-ID"]) == 16


class TestCustomers:
    def test_identify(self, client: TestClient) -> None:
        resp = client.post("/customers/identify", json={"cpf": "123.456.789-01", "birthDate": "1990-05-15"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == JOAO_ID
        assert body["birthDate"] == "1990-05-15"

    def test_identify_unknown(self, client: TestClient) -> None:
        resp = client.post("/customers/identify", json={"cpf": "52998224725", "birthDate": "1990-05-15"})
        assert resp.status_code == 404
        assert resp.json() == {
            "message": "Cliente não encontrado. Verifique o CPF e data de nascimento.",
            "canRegister": True,
        }

    def test_identify_invalid(self, client: TestClient) -> None:
        resp = client.post("/customers/identify", json={"cpf": "123", "birthDate": "1990-05-15"})
        assert resp.status_code == 400
        assert resp.json()["errors"] == [{"field": "cpf", "message": "CPF deve ter 11 dígitos"}]

    def test_register_then_conflict(self, client: TestClient) -> None:
        body = {
            "name": "Ana Souza",
            "cpf": "529.982.247-25",
            "birthDate": "2000-01-01",
            "email": "ana@example.com",
            "phone": "(41) 98888-7777",
            "addresses": [{
                "street": "Rua A", "number": "1", "neighborhood": "Centro",
                "city": "Curitiba", "state": "Paraná", "zipCode": "80010-000",
                "isDefault": True,
            }],
        }
        resp = client.post("/customers/register", json=body)
        assert resp.status_code == 200
        data = resp.json()
        assert data["customer"]["cpf"] == "52998224725"
        assert data["addresses"][0]["zipCode"] == "80010000"
        assert data["addresses"][0]["state"] == "PR"

        resp = client.post("/customers/register", json=body)
        assert resp.status_code == 409

    def test_register_field_errors(self, client: TestClient) -> None:
        resp = client.post("/customers/register", json={
            "name": "Ana", "cpf": "52998224725", "birthDate": "2000-01-01",
            "addresses": [{"street": "Rua A", "number": "1", "neighborhood": "Centro",
                           "city": "Curitiba", "state": "PR", "zipCode": "8001"}],
        })
        assert resp.status_code == 400
        assert [e["field"] for e in resp.json()["errors"]] == ["addresses.0.zipCode"]

    def test_addresses(self, client: TestClient) -> None:
        resp = client.post(f"/customers/{JOAO_ID}/addresses", json={
            "street": "Rua Nova", "number": "9", "neighborhood": "Pinheiros",
            "city": "São Paulo", "state": "SP", "zipCode": "05422-000", "isDefault": True,
        })
        assert resp.status_code == 200
        new_id = resp.json()["id"]

        addresses = client.get(f"/customers/{JOAO_ID}/addresses").json()
        assert [a["id"] for a in addresses] == [new_id, JOAO_ADDRESS_ID]
        assert [a["isDefault"] for a in addresses] == [True, False]

        resp = client.put(f"/addresses/{JOAO_ADDRESS_ID}", json={"complement": "Casa 2"})
        assert resp.status_code == 200
        assert resp.json()["complement"] == "Casa 2"
        assert resp.json()["street"] == "Rua das Flores"

    def test_addresses_unknown_customer(self, client: TestClient) -> None:
        assert client.get("/customers/999/addresses").status_code == 404


class TestDeliveryCalculate:
    def test_delivery_priced_event(self, client: TestClient) -> None:
        resp = client.post("/delivery/calculate", json={
            "customerId": JOAO_ID, "eventId": SP_EVENT_ID, "kitQuantity": 3,
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["baseCost"] == 18.5
        assert body["additionalKitCost"] == 8.0
        assert body["extraKits"] == 2
        assert body["totalCost"] == 34.5
        assert body["breakdown"] == {
            "pickup": 0.0,
            "delivery": 18.5,
            "donation": 0.0,
            "additionalKits": 16.0,
            "discount": 0.0,
        }

    def test_fixed_price_with_event_coupon(self, client: TestClient) -> None:
        resp = client.post("/delivery/calculate", json={
            "customerId": JOAO_ID, "eventId": RIO_EVENT_ID, "kitQuantity": 1, "couponCode": "rio10",
        })
        body = resp.json()
        assert body["fixedPriceApplied"] is True
        assert body["breakdown"]["pickup"] == 50.0
        assert body["discountAmount"] == 5.0
        assert body["totalCost"] == 45.0

    def test_malformed_body(self, client: TestClient) -> None:
        resp = client.post("/delivery/calculate", json={
            "customerId": JOAO_ID, "eventId": SP_EVENT_ID, "kitQuantity": "muitos",
        })
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "kitQuantity"


class TestOrders:
    def test_create_and_fetch(self, client: TestClient) -> None:
        resp = client.post("/orders", json=order_body())
        assert resp.status_code == 200
        body = resp.json()
        order = body["order"]
        assert order["totalCost"] == 34.5
        assert order["status"] == "confirmed"
        assert [k["cpf"] for k in body["kits"]][0] == "52998224725"
        assert body["event"]["id"] == SP_EVENT_ID
        assert body["deliveryEstimate"] == {"eventDate": "2026-12-13", "deliveryDate": "2026-12-15"}

        resp = client.get(f"/orders/{order['orderNumber']}")
        assert resp.status_code == 200
        assert len(resp.json()["kits"]) == 3

        history = client.get(f"/customers/{JOAO_ID}/orders").json()
        assert [o["orderNumber"] for o in history] == [order["orderNumber"]]

    def test_unknown_order(self, client: TestClient) -> None:
        resp = client.get("/orders/KR20260000000000")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Pedido não encontrado"

    def test_validation_errors(self, client: TestClient) -> None:
        resp = client.post("/orders", json=order_body(kitQuantity=2, paymentMethod="boleto"))
        assert resp.status_code == 400
        fields = [e["field"] for e in resp.json()["errors"]]
        assert fields == ["kits", "paymentMethod"]

    def test_missing_customer(self, client: TestClient) -> None:
        resp = client.post("/orders", json=order_body(customerId=999))
        assert resp.status_code == 404

    def test_idempotency_header(self, client: TestClient) -> None:
        headers = {"Idempotency-Key": "retry-1"}
        first = client.post("/orders", json=order_body(), headers=headers).json()
        second = client.post("/orders", json=order_body(), headers=headers).json()
        assert first["order"]["orderNumber"] == second["order"]["orderNumber"]
        assert len(client.get(f"/customers/{JOAO_ID}/orders").json()) == 1


class TestWizard:
    def test_full_flow(self, client: TestClient) -> None:
        view = client.post("/wizard/sessions", json={"eventId": SP_EVENT_ID}).json()
        sid = view["sessionId"]
        assert view["step"] == "event_view"

        view = client.post(f"/wizard/sessions/{sid}/goto/address_select").json()
        assert view["step"] == "identify"
        assert view["redirectedFrom"] == "address_select"

        view = client.post(f"/wizard/sessions/{sid}/identify",
                           json={"cpf": "12345678901", "birthDate": "15/05/1990"}).json()
        assert view["step"] == "address_select"
        assert view["customer"]["id"] == JOAO_ID

        view = client.post(f"/wizard/sessions/{sid}/address", json={"addressId": JOAO_ADDRESS_ID}).json()
        assert view["step"] == "cost_preview"
        assert view["selectedAddress"]["id"] == JOAO_ADDRESS_ID
        assert view["quote"]["totalCost"] == 18.5

        view = client.post(f"/wizard/sessions/{sid}/cost", json={}).json()
        assert view["step"] == "kit_details"

        view = client.post(f"/wizard/sessions/{sid}/kits", json={"kitQuantity": 3, "kits": KITS}).json()
        assert view["step"] == "payment"
        assert view["quote"]["totalCost"] == 34.5
        assert view["kits"][0]["shirtSize"] == "M"

        view = client.post(f"/wizard/sessions/{sid}/payment", json={"paymentMethod": "boleto"}).json()
        assert view["step"] == "payment"
        assert view["error"]

        view = client.post(f"/wizard/sessions/{sid}/payment", json={"paymentMethod": "pix"}).json()
        assert view["step"] == "confirmation"
        assert view["confirmation"]["order"]["totalCost"] == view["quote"]["totalCost"]

        assert client.get(f"/wizard/sessions/{sid}").json()["step"] == "confirmation"

    def test_skip_rejected(self, client: TestClient) -> None:
        sid = client.post("/wizard/sessions", json={"eventId": SP_EVENT_ID}).json()["sessionId"]
        client.post(f"/wizard/sessions/{sid}/goto/identify")
        client.post(f"/wizard/sessions/{sid}/identify", json={"cpf": "12345678901", "birthDate": "1990-05-15"})
        client.post(f"/wizard/sessions/{sid}/address", json={"addressId": JOAO_ADDRESS_ID})
        client.post(f"/wizard/sessions/{sid}/goto/identify")
        resp = client.post(f"/wizard/sessions/{sid}/goto/kit_details")
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "step"

    def test_unknown_session(self, client: TestClient) -> None:
        assert client.get("/wizard/sessions/nope").status_code == 404

    def test_discard(self, client: TestClient) -> None:
        sid = client.post("/wizard/sessions", json={"eventId": SP_EVENT_ID}).json()["sessionId"]
        assert client.delete(f"/wizard/sessions/{sid}").status_code == 200
        assert client.get(f"/wizard/sessions/{sid}").status_code == 404

    def test_invalid_step_name(self, client: TestClient) -> None:
        sid = client.post("/wizard/sessions", json={"eventId": SP_EVENT_ID}).json()["sessionId"]
        assert client.post(f"/wizard/sessions/{sid}/goto/checkout").status_code == 400


def test_health(client: TestClient) -> None:
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["storage"] == "memory"


def test_health_degraded_when_redis_fell_back() -> None:
    config = AppConfig(storage_backend="memory", redis_url="redis://127.0.0.1:1/0")
    engine = KitRunnerEngine(config=config, sessions=InMemorySessionManager())
    body = TestClient(create_app(engine=engine)).get("/health").json()
    assert body["status"] == "degraded"
    assert body["redis"] == "error"
