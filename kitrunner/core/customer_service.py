import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import ConflictError, CustomerNotFoundError, FieldError, NotFoundError, ValidationError
from .models import Address, Customer
from .normalizers import (
    is_valid_email,
    mask_cpf,
    normalize_birth_date,
    normalize_cep,
    normalize_cpf,
    normalize_phone,
    normalize_state,
)
from ..storage.repository import KitRunnerRepository

logger = logging.getLogger(__name__)

REQUIRED_ADDRESS_TEXT = {
    "street": "Rua é obrigatória",
    "number": "Número é obrigatório",
    "neighborhood": "Bairro é obrigatório",
    "city": "Cidade é obrigatória",
}


def clean_address(
    data: Dict[str, Any],
    partial: bool = False,
    prefix: str = "",
) -> Tuple[Dict[str, Any], List[FieldError]]:
    """
    Valida e normaliza os campos de um endereço.

    Com partial=True só os campos presentes são validados (atualização).
    CEP sai sempre com 8 dígitos e UF com 2 letras maiúsculas.
    """
    cleaned: Dict[str, Any] = {}
    errors: List[FieldError] = []

    for field, message in REQUIRED_ADDRESS_TEXT.items():
        if partial and field not in data:
            continue
        value = (data.get(field) or "").strip()
        if not value:
            errors.append(FieldError(f"{prefix}{field}", message))
        else:
            cleaned[field] = value

    if not partial or "zip_code" in data:
        cep = normalize_cep(data.get("zip_code"))
        if cep is None:
            errors.append(FieldError(f"{prefix}zipCode", "CEP deve ter 8 dígitos"))
        else:
            cleaned["zip_code"] = cep

    if not partial or "state" in data:
        uf = normalize_state(data.get("state"))
        if uf is None:
            errors.append(FieldError(f"{prefix}state", "UF inválida"))
        else:
            cleaned["state"] = uf

    if "complement" in data:
        cleaned["complement"] = (data.get("complement") or "").strip() or None
    if "label" in data or not partial:
        cleaned["label"] = (data.get("label") or "").strip() or "Casa"
    if "is_default" in data or not partial:
        cleaned["is_default"] = bool(data.get("is_default", False))

    return cleaned, errors


class CustomerService:
    """
    Identificação e cadastro de clientes, e gestão dos endereços de entrega.

    A identificação usa o par CPF + data de nascimento como credencial;
    não há senha.
    """

    def __init__(self, repository: KitRunnerRepository) -> None:
        self._repo = repository

    def identify(self, cpf: Optional[str], birth_date) -> Customer:
        errors = []
        normalized_cpf = normalize_cpf(cpf)
        if normalized_cpf is None:
            errors.append(FieldError("cpf", "CPF deve ter 11 dígitos"))
        parsed_birth = normalize_birth_date(birth_date)
        if birth_date is None or not str(birth_date).strip():
            errors.append(FieldError("birthDate", "Data de nascimento é obrigatória"))
        elif parsed_birth is None:
            errors.append(FieldError("birthDate", "Data de nascimento inválida"))
        if errors:
            raise ValidationError(errors)

        customer = self._repo.find_customer_by_credentials(normalized_cpf, parsed_birth)
        if customer is None:
            logger.info(f"Cliente não identificado: cpf={mask_cpf(normalized_cpf)}")
            raise CustomerNotFoundError()

        logger.info(f"Cliente identificado: id={customer.id}, cpf={mask_cpf(normalized_cpf)}")
        return customer

    def register(
        self,
        fields: Dict[str, Any],
        addresses: Sequence[Dict[str, Any]] = (),
    ) -> Tuple[Customer, List[Address]]:
        errors: List[FieldError] = []

        name = (fields.get("name") or "").strip()
        if not name:
            errors.append(FieldError("name", "Nome é obrigatório"))
        cpf = normalize_cpf(fields.get("cpf"))
        if cpf is None:
            errors.append(FieldError("cpf", "CPF deve ter 11 dígitos"))
        birth_date = normalize_birth_date(fields.get("birth_date"))
        if birth_date is None:
            errors.append(FieldError("birthDate", "Data de nascimento inválida"))

        email = (fields.get("email") or "").strip() or None
        if email and not is_valid_email(email):
            errors.append(FieldError("email", "E-mail inválido"))
        phone = None
        if fields.get("phone"):
            phone = normalize_phone(fields["phone"])
            if phone is None:
                errors.append(FieldError("phone", "Telefone inválido (use DDD + número)"))

        cleaned_addresses = []
        for index, data in enumerate(addresses):
            cleaned, address_errors = clean_address(data, prefix=f"addresses.{index}.")
            cleaned_addresses.append(cleaned)
            errors.extend(address_errors)

        if errors:
            logger.warning(
                f"Cadastro rejeitado: cpf={mask_cpf(fields.get('cpf'))}, "
                f"fields={[e.field for e in errors]}"
            )
            raise ValidationError(errors)

        if self._repo.find_customer_by_credentials(cpf, birth_date) is not None:
            raise ConflictError("Cliente já cadastrado com este CPF e data de nascimento")
        if self._repo.find_customer_by_cpf(cpf) is not None:
            raise ConflictError("Já existe um cliente cadastrado com este CPF")

        customer, created = self._repo.register_customer(
            {
                "name": name,
                "cpf": cpf,
                "birth_date": birth_date,
                "email": email,
                "phone": phone,
            },
            cleaned_addresses,
        )
        logger.info(
            f"Cliente cadastrado: id={customer.id}, cpf={mask_cpf(cpf)}, "
            f"addresses={len(created)}"
        )
        return customer, created

    def get_customer(self, customer_id: int) -> Customer:
        customer = self._repo.get_customer(customer_id)
        if customer is None:
            raise NotFoundError("customer", "Cliente não encontrado")
        return customer

    def list_addresses(self, customer_id: int) -> List[Address]:
        self.get_customer(customer_id)
        return self._repo.list_addresses(customer_id)

    def add_address(self, customer_id: int, data: Dict[str, Any]) -> Address:
        self.get_customer(customer_id)
        cleaned, errors = clean_address(data)
        if errors:
            raise ValidationError(errors)
        address = self._repo.create_address(customer_id, cleaned)
        logger.info(f"Endereço adicionado: id={address.id}, customer_id={customer_id}")
        return address

    def update_address(self, address_id: int, data: Dict[str, Any]) -> Address:
        if self._repo.get_address(address_id) is None:
            raise NotFoundError("address", "Endereço não encontrado")
        cleaned, errors = clean_address(data, partial=True)
        if errors:
            raise ValidationError(errors)
        return self._repo.update_address(address_id, cleaned)
