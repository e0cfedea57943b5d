"""
Hierarquia de exceções do KitRunner.

Cada exceção carrega uma mensagem em português pronta para ser
devolvida ao cliente. A camada HTTP traduz cada tipo para o status
correspondente (400, 404, 409, 500).
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class FieldError:
    """Problema de validação associado a um campo do payload."""
    field: str
    message: str


class KitRunnerError(Exception):
    """Exceção base de todos os erros de domínio."""

    default_message = "Erro ao processar a solicitação"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(KitRunnerError):
    """Entrada malformada ou incompleta."""

    default_message = "Dados inválidos"

    def __init__(
        self,
        errors: Optional[List[FieldError]] = None,
        message: Optional[str] = None,
    ) -> None:
        self.errors: List[FieldError] = list(errors or [])
        super().__init__(message)

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls([FieldError(field=field, message=message)])


class NotFoundError(KitRunnerError):
    """Entidade referenciada não existe."""

    default_message = "Registro não encontrado"

    def __init__(
        self,
        entity: str,
        message: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.entity = entity
        self.extra: Dict[str, Any] = dict(extra or {})
        super().__init__(message)


class CustomerNotFoundError(NotFoundError):
    """Identificação falhou: CPF + data de nascimento não conferem."""

    def __init__(self) -> None:
        super().__init__(
            entity="customer",
            message="Cliente não encontrado. Verifique o CPF e data de nascimento.",
            extra={"canRegister": True},
        )


class ConflictError(KitRunnerError):
    """Registro duplicado (ex: cliente já cadastrado)."""

    default_message = "Registro já existente"


class PersistenceError(KitRunnerError):
    """Falha inesperada no armazenamento. Nenhuma escrita parcial é mantida."""

    default_message = "Erro interno ao salvar os dados. Tente novamente mais tarde."


class OrderNumberConflict(PersistenceError):
    """Número de pedido gerado colidiu com um já existente."""

    default_message = "Número de pedido já utilizado"
