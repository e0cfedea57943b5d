from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class WizardStep(str, Enum):
    """
    Telas do assistente de pedido, na ordem em que são percorridas.
    """
    EVENT_VIEW = "event_view"
    IDENTIFY = "identify"
    REGISTER = "register"
    ADDRESS_SELECT = "address_select"
    NEW_ADDRESS = "new_address"
    COST_PREVIEW = "cost_preview"
    KIT_DETAILS = "kit_details"
    PAYMENT = "payment"
    CONFIRMATION = "confirmation"


STEP_ORDER: List[WizardStep] = list(WizardStep)

# Avanços permitidos a partir de cada tela (voltar é sempre permitido)
FORWARD_TRANSITIONS: Dict[WizardStep, List[WizardStep]] = {
    WizardStep.EVENT_VIEW: [WizardStep.IDENTIFY],
    WizardStep.IDENTIFY: [WizardStep.REGISTER, WizardStep.ADDRESS_SELECT],
    WizardStep.REGISTER: [WizardStep.ADDRESS_SELECT],
    WizardStep.ADDRESS_SELECT: [WizardStep.NEW_ADDRESS, WizardStep.COST_PREVIEW],
    WizardStep.NEW_ADDRESS: [],
    WizardStep.COST_PREVIEW: [WizardStep.KIT_DETAILS],
    WizardStep.KIT_DETAILS: [WizardStep.PAYMENT],
    WizardStep.PAYMENT: [WizardStep.CONFIRMATION],
    WizardStep.CONFIRMATION: [],
}


@dataclass
class WizardState:
    """
    Dados coletados pelo assistente de pedido, tela a tela.

    Vive apenas enquanto a sessão do navegador existir; não é
    persistido como dado de negócio.
    """
    session_id: str
    step: WizardStep = WizardStep.EVENT_VIEW
    event_id: Optional[int] = None
    customer_id: Optional[int] = None
    address_id: Optional[int] = None
    can_register: bool = False
    coupon_code: Optional[str] = None
    kit_quantity: int = 1
    kits: List[Dict[str, Any]] = field(default_factory=list)
    quote: Optional[Dict[str, Any]] = None
    payment_method: Optional[str] = None
    order_number: Optional[str] = None
    redirected_from: Optional[WizardStep] = None
    error: Optional[str] = None

    def index(self) -> int:
        return STEP_ORDER.index(self.step)

    def get_summary(self) -> str:
        """
        Resumo dos dados já coletados, usado em logs.
        """
        parts = [f"step={self.step.value}"]
        if self.event_id is not None:
            parts.append(f"event_id={self.event_id}")
        if self.customer_id is not None:
            parts.append(f"customer_id={self.customer_id}")
        if self.address_id is not None:
            parts.append(f"address_id={self.address_id}")
        if self.kits:
            parts.append(f"kits={len(self.kits)}")
        if self.order_number:
            parts.append(f"order_number={self.order_number}")
        return ", ".join(parts)
