import logging
from dataclasses import asdict
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .customer_service import CustomerService
from .errors import CustomerNotFoundError, KitRunnerError, NotFoundError, ValidationError
from .order_service import (
    OrderRequest,
    OrderService,
    clean_kits,
    validate_kit_quantity,
)
from .pricing import PriceBreakdown
from .wizard_state import FORWARD_TRANSITIONS, STEP_ORDER, WizardState, WizardStep

logger = logging.getLogger(__name__)

# (tela que coleta o dado, verificação, primeira tela que depende dele)
PREREQUISITES: List[Tuple[WizardStep, Callable[[WizardState], bool], WizardStep]] = [
    (WizardStep.EVENT_VIEW, lambda s: s.event_id is not None, WizardStep.IDENTIFY),
    (WizardStep.IDENTIFY, lambda s: s.customer_id is not None, WizardStep.ADDRESS_SELECT),
    (WizardStep.ADDRESS_SELECT, lambda s: s.address_id is not None, WizardStep.COST_PREVIEW),
    (WizardStep.COST_PREVIEW, lambda s: s.quote is not None, WizardStep.KIT_DETAILS),
    (WizardStep.KIT_DETAILS, lambda s: bool(s.kits), WizardStep.PAYMENT),
    (WizardStep.PAYMENT, lambda s: s.order_number is not None, WizardStep.CONFIRMATION),
]


def breakdown_to_dict(breakdown: PriceBreakdown) -> Dict[str, Any]:
    """Serializa a composição de preço (Decimal vira string)."""
    return {
        key: str(value) if isinstance(value, Decimal) else value
        for key, value in asdict(breakdown).items()
    }


def missing_prerequisite(state: WizardState, target: WizardStep) -> Optional[WizardStep]:
    """
    Devolve a primeira tela cujo dado ainda falta para entrar em `target`,
    ou None se todos os pré-requisitos estão presentes.
    """
    target_index = STEP_ORDER.index(target)
    for gate, is_met, applies_from in PREREQUISITES:
        if target_index >= STEP_ORDER.index(applies_from) and not is_met(state):
            return gate
    return None


class WizardManager:
    """
    Conduz o assistente de pedido como uma máquina de estados linear:

    event_view → identify → (register) → address_select → (new_address)
    → cost_preview → kit_details → payment → confirmation

    Cada entrada numa tela verifica os dados das telas anteriores; se
    algo falta, o assistente volta para a primeira tela pendente em vez
    de falhar em silêncio.
    """

    def __init__(self, customer_service: CustomerService, order_service: OrderService) -> None:
        self._customers = customer_service
        self._orders = order_service

    def start(self, session_id: str, event_id: int) -> WizardState:
        event = self._orders.get_event(event_id)
        logger.info(f"Assistente iniciado: session_id={session_id}, event_id={event.id}")
        return WizardState(session_id=session_id, event_id=event.id)

    def goto(self, state: WizardState, target: WizardStep) -> WizardState:
        """
        Navegação guardada. Voltar é livre; avançar só para a próxima tela.
        """
        state.error = None
        state.redirected_from = None

        if state.step == WizardStep.CONFIRMATION and target != WizardStep.CONFIRMATION:
            raise ValidationError.single("step", "Pedido já finalizado. Inicie um novo pedido.")

        gate = missing_prerequisite(state, target)
        if gate is not None:
            logger.info(
                f"Pré-requisito ausente, voltando: session_id={state.session_id}, "
                f"target={target.value}, redirect={gate.value}"
            )
            state.redirected_from = target
            state.step = gate
            state.error = "Complete as etapas anteriores para continuar."
            return state

        moving_forward = STEP_ORDER.index(target) > state.index()
        if moving_forward and target not in FORWARD_TRANSITIONS[state.step]:
            raise ValidationError.single(
                "step",
                f"Não é possível pular da etapa '{state.step.value}' para '{target.value}'",
            )

        if target == WizardStep.IDENTIFY and moving_forward:
            event = self._orders.get_event(state.event_id)
            if not event.available:
                raise ValidationError.single("eventId", "Evento indisponível para novos pedidos")

        state.step = target
        logger.debug(f"Assistente navegou: session_id={state.session_id}, {state.get_summary()}")
        return state

    def _enter(self, state: WizardState, step: WizardStep) -> bool:
        if state.step != step:
            self.goto(state, step)
        else:
            state.error = None
            state.redirected_from = None
        return state.step == step

    def identify(self, state: WizardState, cpf: str, birth_date) -> WizardState:
        if not self._enter(state, WizardStep.IDENTIFY):
            return state

        try:
            customer = self._customers.identify(cpf, birth_date)
        except CustomerNotFoundError as e:
            self._switch_customer(state, None)
            state.can_register = True
            state.step = WizardStep.REGISTER
            state.error = e.message
            return state

        self._switch_customer(state, customer.id)
        state.can_register = False
        state.step = WizardStep.ADDRESS_SELECT
        logger.info(f"Assistente identificou cliente: session_id={state.session_id}, customer_id={customer.id}")
        return state

    def register(
        self,
        state: WizardState,
        fields: Dict[str, Any],
        addresses: Sequence[Dict[str, Any]] = (),
    ) -> WizardState:
        if not self._enter(state, WizardStep.REGISTER):
            return state

        customer, _ = self._customers.register(fields, addresses)
        self._switch_customer(state, customer.id)
        state.can_register = False
        state.step = WizardStep.ADDRESS_SELECT
        return state

    def add_address(self, state: WizardState, fields: Dict[str, Any]) -> WizardState:
        if not self._enter(state, WizardStep.NEW_ADDRESS):
            return state

        self._customers.add_address(state.customer_id, fields)
        state.step = WizardStep.ADDRESS_SELECT
        return state

    def select_address(self, state: WizardState, address_id: int) -> WizardState:
        if not self._enter(state, WizardStep.ADDRESS_SELECT):
            return state

        addresses = self._customers.list_addresses(state.customer_id)
        if not any(a.id == address_id for a in addresses):
            raise NotFoundError("address", "Endereço não encontrado para este cliente")

        state.address_id = address_id
        self._refresh_quote(state)
        state.step = WizardStep.COST_PREVIEW
        return state

    def confirm_cost(self, state: WizardState, coupon_code: Optional[str] = None) -> WizardState:
        if not self._enter(state, WizardStep.COST_PREVIEW):
            return state

        if coupon_code is not None:
            state.coupon_code = coupon_code.strip() or None
            self._refresh_quote(state)
        state.step = WizardStep.KIT_DETAILS
        return state

    def submit_kits(
        self,
        state: WizardState,
        kit_quantity: int,
        kits: Sequence[Dict[str, Any]],
    ) -> WizardState:
        if not self._enter(state, WizardStep.KIT_DETAILS):
            return state

        errors = validate_kit_quantity(kit_quantity)
        if not errors:
            cleaned, kit_errors = clean_kits(kit_quantity, kits)
            errors.extend(kit_errors)
        if errors:
            raise ValidationError(errors)

        state.kit_quantity = kit_quantity
        state.kits = [
            {"name": k.name, "cpf": k.cpf, "shirt_size": k.shirt_size.value}
            for k in cleaned
        ]
        self._refresh_quote(state)
        state.step = WizardStep.PAYMENT
        return state

    def submit_payment(self, state: WizardState, payment_method: str) -> WizardState:
        """
        Envia o pedido. Sucesso leva à confirmação; qualquer falha mantém
        o assistente no pagamento com a mensagem de erro.
        """
        if not self._enter(state, WizardStep.PAYMENT):
            return state

        state.payment_method = payment_method
        request = OrderRequest(
            event_id=state.event_id,
            customer_id=state.customer_id,
            address_id=state.address_id,
            kit_quantity=state.kit_quantity,
            kits=state.kits,
            payment_method=payment_method,
            coupon_code=state.coupon_code,
            idempotency_key=f"wizard-{state.session_id}",
        )
        try:
            confirmation = self._orders.create_order(request)
        except KitRunnerError as e:
            logger.warning(
                f"Pagamento não concluído: session_id={state.session_id}, "
                f"error={type(e).__name__}: {e.message}"
            )
            state.step = WizardStep.PAYMENT
            state.error = e.message
            return state

        state.order_number = confirmation.order.order_number
        state.step = WizardStep.CONFIRMATION
        logger.info(
            f"Assistente concluído: session_id={state.session_id}, "
            f"order_number={state.order_number}"
        )
        return state

    def _switch_customer(self, state: WizardState, customer_id: Optional[int]) -> None:
        # Endereço, cotação e kits pertencem ao cliente anterior
        if state.customer_id == customer_id:
            return
        if state.customer_id is not None:
            logger.info(
                f"Cliente trocado no assistente: session_id={state.session_id}, "
                f"old={state.customer_id}, new={customer_id}"
            )
        state.customer_id = customer_id
        state.address_id = None
        state.quote = None
        state.kits = []
        state.kit_quantity = 1
        state.coupon_code = None
        state.payment_method = None

    def _refresh_quote(self, state: WizardState) -> None:
        quote = self._orders.calculate_delivery(
            customer_id=state.customer_id,
            event_id=state.event_id,
            kit_quantity=state.kit_quantity,
            address_id=state.address_id,
            coupon_code=state.coupon_code,
        )
        state.quote = breakdown_to_dict(quote.breakdown)
