import logging
import time
from typing import List, Optional
from uuid import uuid4

from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..config import AppConfig
from ..core.engine import KitRunnerEngine
from ..core.errors import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from ..core.normalizers import mask_cpf
from ..core.order_service import OrderRequest
from ..core.wizard_state import WizardState, WizardStep
from ..session.redis_session_manager import RedisSessionManager
from .schemas import (
    AddressIn,
    AddressOut,
    BreakdownTerms,
    CustomerOut,
    DeliveryCalculateRequest,
    DeliveryCalculateResponse,
    EventOut,
    IdentifyRequest,
    OrderConfirmationOut,
    OrderCreateRequest,
    OrderDetailOut,
    OrderOut,
    RegisterRequest,
    RegisterResponse,
    WizardAddressRequest,
    WizardCostRequest,
    WizardKitsRequest,
    WizardPaymentRequest,
    WizardStartRequest,
    WizardView,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Erro interno ao processar a solicitação. Tente novamente mais tarde."


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Atribui um request_id a cada requisição, devolve no header
    X-Request-ID e registra método, rota, status e duração.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = uuid4().hex[:16]  # 16 caracteres hexadecimais
        request.state.request_id = request_id

        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Request processado: request_id={request_id}, "
            f"method={request.method}, path={request.url.path}, "
            f"status={response.status_code}, duration_ms={duration_ms:.2f}"
        )
        return response


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def _error_body(message: str, errors: Optional[List[dict]] = None) -> dict:
    body = {"message": message}
    if errors is not None:
        body["errors"] = errors
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Traduz a hierarquia de erros de domínio para status HTTP.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation(request: Request, exc: ValidationError):
        logger.info(
            f"Validação falhou: request_id={_request_id(request)}, "
            f"fields={[e.field for e in exc.errors]}"
        )
        errors = [{"field": e.field, "message": e.message} for e in exc.errors]
        return JSONResponse(status_code=400, content=_error_body(exc.message, errors))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            location = [str(part) for part in error.get("loc", ()) if part not in ("body", "path", "query", "header")]
            errors.append({"field": ".".join(location), "message": error.get("msg", "")})
        logger.info(
            f"Payload malformado: request_id={_request_id(request)}, "
            f"fields={[e['field'] for e in errors]}"
        )
        return JSONResponse(status_code=400, content=_error_body("Dados inválidos", errors))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        body = _error_body(exc.message)
        body.update(exc.extra)
        return JSONResponse(status_code=404, content=body)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return JSONResponse(status_code=409, content=_error_body(exc.message))

    @app.exception_handler(PersistenceError)
    async def handle_persistence(request: Request, exc: PersistenceError):
        logger.error(
            f"Falha de persistência: request_id={_request_id(request)}, "
            f"error={type(exc).__name__}: {exc.message}"
        )
        return JSONResponse(status_code=500, content=_error_body(exc.message))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error(
            f"Erro inesperado: request_id={_request_id(request)}, "
            f"path={request.url.path}, error={type(exc).__name__}: {exc}",
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content=_error_body(GENERIC_ERROR_MESSAGE))


def create_app(
    config: Optional[AppConfig] = None,
    engine: Optional[KitRunnerEngine] = None,
) -> FastAPI:
    """
    Cria a aplicação FastAPI e injeta dependências principais (config + engine).
    """
    if engine is None:
        engine = KitRunnerEngine(config=config or AppConfig.load_from_env())
    config = engine.config

    app = FastAPI(
        title="KitRunner API",
        version="0.1.0",
        description="Pedidos de retirada e entrega de kits de corrida.",
    )
    app.add_middleware(RequestIDMiddleware)
    register_exception_handlers(app)
    app.state.engine = engine

    def order_detail(order_number: str) -> OrderDetailOut:
        order, kits, event = engine.orders.get_order(order_number)
        return OrderDetailOut(order=order, kits=kits, event=event)

    def wizard_view(state: WizardState) -> WizardView:
        customer = engine.repository.get_customer(state.customer_id) if state.customer_id else None
        address = engine.repository.get_address(state.address_id) if state.address_id else None
        confirmation = order_detail(state.order_number) if state.order_number else None
        return WizardView(
            session_id=state.session_id,
            step=state.step.value,
            redirected_from=state.redirected_from.value if state.redirected_from else None,
            error=state.error,
            can_register=state.can_register,
            event_id=state.event_id,
            customer=customer,
            selected_address=address,
            quote=state.quote,
            kit_quantity=state.kit_quantity,
            kits=state.kits,
            coupon_code=state.coupon_code,
            payment_method=state.payment_method,
            confirmation=confirmation,
        )

    def load_session(session_id: str) -> WizardState:
        state = engine.sessions.get(session_id)
        if state is None:
            raise NotFoundError("session", "Sessão expirada ou inexistente. Inicie um novo pedido.")
        return state

    def save_and_view(state: WizardState) -> WizardView:
        engine.sessions.save_session(state)
        return wizard_view(state)

    @app.get("/health")
    def health_check():
        """
        Health check para monitoramento. Com REDIS_URL configurado e
        sessões caídas para memória, o Redis conta como fora do ar.
        """
        redis_ok = True
        if config.redis_url and config.redis_url.strip():
            sessions = engine.sessions
            redis_ok = isinstance(sessions, RedisSessionManager) and sessions.is_alive()
            if not redis_ok:
                logger.warning("Redis health check falhou")

        db_ok = True
        try:
            engine.repository.list_events()
        except PersistenceError as e:
            logger.warning(f"Database health check falhou: {e}")
            db_ok = False

        return {
            "status": "healthy" if (redis_ok and db_ok) else "degraded",
            "redis": "ok" if redis_ok else "error",
            "database": "ok" if db_ok else "error",
            "storage": config.storage_backend,
        }

    # Eventos

    @app.get("/events", response_model=List[EventOut])
    def list_events():
        return engine.orders.list_events()

    @app.get("/events/{event_id}", response_model=EventOut)
    def get_event(event_id: int):
        return engine.orders.get_event(event_id)

    # Clientes e endereços

    @app.post("/customers/identify", response_model=CustomerOut)
    def identify_customer(payload: IdentifyRequest):
        return engine.customers.identify(payload.cpf, payload.birth_date)

    @app.post("/customers/register", response_model=RegisterResponse)
    def register_customer(payload: RegisterRequest, request: Request):
        logger.info(
            f"Recebida requisição de cadastro: request_id={_request_id(request)}, "
            f"cpf={mask_cpf(payload.cpf)}, addresses={len(payload.addresses)}"
        )
        customer, addresses = engine.customers.register(
            payload.model_dump(exclude={"addresses"}),
            [a.model_dump(exclude_unset=True) for a in payload.addresses],
        )
        return RegisterResponse(customer=customer, addresses=addresses)

    @app.get("/customers/{customer_id}/addresses", response_model=List[AddressOut])
    def list_addresses(customer_id: int):
        return engine.customers.list_addresses(customer_id)

    @app.post("/customers/{customer_id}/addresses", response_model=AddressOut)
    def create_address(customer_id: int, payload: AddressIn):
        return engine.customers.add_address(customer_id, payload.model_dump(exclude_unset=True))

    @app.put("/addresses/{address_id}", response_model=AddressOut)
    def update_address(address_id: int, payload: AddressIn):
        return engine.customers.update_address(address_id, payload.model_dump(exclude_unset=True))

    @app.get("/customers/{customer_id}/orders", response_model=List[OrderOut])
    def list_customer_orders(customer_id: int):
        return engine.orders.list_customer_orders(customer_id)

    # Preço e pedidos

    @app.post("/delivery/calculate", response_model=DeliveryCalculateResponse)
    def calculate_delivery(payload: DeliveryCalculateRequest):
        quote = engine.orders.calculate_delivery(
            customer_id=payload.customer_id,
            event_id=payload.event_id,
            kit_quantity=payload.kit_quantity,
            address_id=payload.address_id,
            coupon_code=payload.coupon_code,
        )
        b = quote.breakdown
        return DeliveryCalculateResponse(
            base_cost=b.base_cost,
            additional_kit_cost=b.extra_kit_unit_price,
            extra_kits=b.extra_kits,
            total_cost=b.total_cost,
            delivery_cost=b.delivery_cost,
            donation_cost=b.donation_cost,
            extra_kits_cost=b.extra_kits_cost,
            discount_amount=b.discount_amount,
            coupon_code=b.coupon_code,
            fixed_price_applied=b.fixed_price_applied,
            breakdown=BreakdownTerms(
                pickup=b.pickup_cost,
                delivery=b.delivery_cost,
                donation=b.donation_cost,
                additional_kits=b.extra_kits_cost,
                discount=b.discount_amount,
            ),
        )

    @app.post("/orders", response_model=OrderConfirmationOut)
    def create_order(
        payload: OrderCreateRequest,
        request: Request,
        idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    ):
        request_id = _request_id(request)
        logger.info(
            f"Recebida requisição /orders: request_id={request_id}, "
            f"customer_id={payload.customer_id}, event_id={payload.event_id}, "
            f"kit_quantity={payload.kit_quantity}"
        )

        start_time = time.time()
        confirmation = engine.orders.create_order(OrderRequest(
            event_id=payload.event_id,
            customer_id=payload.customer_id,
            address_id=payload.address_id,
            kit_quantity=payload.kit_quantity,
            kits=[k.model_dump() for k in payload.kits],
            payment_method=payload.payment_method,
            coupon_code=payload.coupon_code,
            idempotency_key=payload.idempotency_key or idempotency_key,
        ))

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Pedido confirmado: request_id={request_id}, "
            f"order_number={confirmation.order.order_number}, duration_ms={duration_ms:.2f}"
        )
        return OrderConfirmationOut.model_validate(confirmation)

    @app.get("/orders/{order_number}", response_model=OrderDetailOut)
    def get_order(order_number: str):
        return order_detail(order_number)

    # Assistente de pedido

    @app.post("/wizard/sessions", response_model=WizardView)
    def start_wizard(payload: WizardStartRequest):
        state = engine.wizard.start(uuid4().hex, payload.event_id)
        return save_and_view(state)

    @app.get("/wizard/sessions/{session_id}", response_model=WizardView)
    def get_wizard(session_id: str):
        return wizard_view(load_session(session_id))

    @app.delete("/wizard/sessions/{session_id}")
    def discard_wizard(session_id: str):
        engine.sessions.clear_session(session_id)
        return {"ok": True}

    @app.post("/wizard/sessions/{session_id}/goto/{step}", response_model=WizardView)
    def wizard_goto(session_id: str, step: WizardStep):
        state = load_session(session_id)
        return save_and_view(engine.wizard.goto(state, step))

    @app.post("/wizard/sessions/{session_id}/identify", response_model=WizardView)
    def wizard_identify(session_id: str, payload: IdentifyRequest):
        state = load_session(session_id)
        return save_and_view(engine.wizard.identify(state, payload.cpf, payload.birth_date))

    @app.post("/wizard/sessions/{session_id}/register", response_model=WizardView)
    def wizard_register(session_id: str, payload: RegisterRequest):
        state = load_session(session_id)
        state = engine.wizard.register(
            state,
            payload.model_dump(exclude={"addresses"}),
            [a.model_dump(exclude_unset=True) for a in payload.addresses],
        )
        return save_and_view(state)

    @app.post("/wizard/sessions/{session_id}/address", response_model=WizardView)
    def wizard_select_address(session_id: str, payload: WizardAddressRequest):
        state = load_session(session_id)
        return save_and_view(engine.wizard.select_address(state, payload.address_id))

    @app.post("/wizard/sessions/{session_id}/address/new", response_model=WizardView)
    def wizard_new_address(session_id: str, payload: AddressIn):
        state = load_session(session_id)
        return save_and_view(engine.wizard.add_address(state, payload.model_dump(exclude_unset=True)))

    @app.post("/wizard/sessions/{session_id}/cost", response_model=WizardView)
    def wizard_confirm_cost(session_id: str, payload: WizardCostRequest):
        state = load_session(session_id)
        return save_and_view(engine.wizard.confirm_cost(state, payload.coupon_code))

    @app.post("/wizard/sessions/{session_id}/kits", response_model=WizardView)
    def wizard_kits(session_id: str, payload: WizardKitsRequest):
        state = load_session(session_id)
        state = engine.wizard.submit_kits(
            state,
            payload.kit_quantity,
            [k.model_dump() for k in payload.kits],
        )
        return save_and_view(state)

    @app.post("/wizard/sessions/{session_id}/payment", response_model=WizardView)
    def wizard_payment(session_id: str, payload: WizardPaymentRequest):
        state = load_session(session_id)
        return save_and_view(engine.wizard.submit_payment(state, payload.payment_method))

    return app
