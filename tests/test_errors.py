"""Tests for the error hierarchy."""

from kitrunner.core.errors import (
    ConflictError,
    CustomerNotFoundError,
    FieldError,
    KitRunnerError,
    NotFoundError,
    OrderNumberConflict,
    PersistenceError,
    ValidationError,
)


class TestExceptionHierarchy:
    def test_all_are_kitrunner_errors(self) -> None:
        for error in (ValidationError(), NotFoundError("event"), ConflictError(), PersistenceError()):
            assert isinstance(error, KitRunnerError)

    def test_customer_not_found(self) -> None:
        err = CustomerNotFoundError()
        assert isinstance(err, NotFoundError)
        assert err.entity == "customer"
        assert err.extra == {"canRegister": True}

    def test_order_number_conflict_is_persistence_error(self) -> None:
        assert isinstance(OrderNumberConflict(), PersistenceError)

    def test_default_messages(self) -> None:
        assert ValidationError().message == "Dados inválidos"
        assert str(PersistenceError()) == "Erro interno ao salvar os dados. Tente novamente mais tarde."
        assert ConflictError("Cupom já cadastrado").message == "Cupom já cadastrado"

    def test_single_field(self) -> None:
        err = ValidationError.single("cpf", "CPF deve ter 11 dígitos")
        assert err.errors == [FieldError("cpf", "CPF deve ter 11 dígitos")]

