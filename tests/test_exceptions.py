"""
Unit tests for src/exceptions.py: custom exception hierarchy.

Tests cover:
- Exception inheritance chain
- Constructor defaults and attributes
- blocking flag and get_display_message() formatting
"""

import pytest
from exceptions import (
    OrderTrackerError,
    ValidationError,
    EmptyIdentifierError,
    InvalidIdentifierError,
    VisionError,
    NotFoundError,
    TransientVisionError,
    AuthError,
    KeyMissingError,
    KeyInvalidError,
    ConflictError,
    PersistenceError,
    ListenError,
)


# ============================================================================
# Inheritance chain
# ============================================================================

class TestInheritance:
    """Verify the documented exception hierarchy."""

    @pytest.mark.parametrize("child, parent", [
        (ValidationError, OrderTrackerError),
        (EmptyIdentifierError, ValidationError),
        (InvalidIdentifierError, ValidationError),
        (VisionError, OrderTrackerError),
        (NotFoundError, VisionError),
        (TransientVisionError, VisionError),
        (AuthError, VisionError),
        (KeyMissingError, AuthError),
        (KeyInvalidError, AuthError),
        (ConflictError, OrderTrackerError),
        (PersistenceError, OrderTrackerError),
        (ListenError, PersistenceError),
    ])
    def test_subclass(self, child, parent):
        assert issubclass(child, parent)

    def test_base_is_exception(self):
        assert issubclass(OrderTrackerError, Exception)

    def test_catch_all_with_base_class(self):
        """All custom exceptions can be caught with OrderTrackerError."""
        for error in [EmptyIdentifierError(), NotFoundError(), KeyMissingError(),
                      ConflictError("x"), ListenError("x")]:
            with pytest.raises(OrderTrackerError):
                raise error


# ============================================================================
# Blocking flag
# ============================================================================

class TestBlocking:

    @pytest.mark.parametrize("error", [
        EmptyIdentifierError(),
        InvalidIdentifierError("A B"),
        NotFoundError(),
        TransientVisionError(),
        ConflictError("x"),
        PersistenceError("x"),
    ])
    def test_dismissible(self, error):
        assert error.blocking is False

    @pytest.mark.parametrize("error", [
        AuthError("x"),
        KeyMissingError(),
        KeyInvalidError(),
        ListenError("x"),
    ])
    def test_blocking(self, error):
        assert error.blocking is True


# ============================================================================
# Messages and attributes
# ============================================================================

class TestValidationErrors:

    def test_empty_default_message(self):
        assert str(EmptyIdentifierError()) == "El ID del pedido extraído de la imagen está vacío."

    def test_invalid_keeps_identifier(self):
        err = InvalidIdentifierError("A/B")
        assert err.order_id == "A/B"
        assert "'A/B'" in err.get_display_message()


class TestVisionErrors:

    def test_not_found_default_message(self):
        assert "número de pedido" in str(NotFoundError())

    def test_transient_status_code(self):
        assert TransientVisionError(status_code=503).status_code == 503
        assert TransientVisionError().status_code is None

    def test_auth_display_message_explains_configuration(self):
        msg = KeyMissingError().get_display_message()
        assert msg.startswith("La clave de API de Gemini no está configurada.")
        assert "config.ini" in msg
        assert "GEMINI_API_KEY" in msg

    def test_invalid_key_message(self):
        assert "no es válida" in str(KeyInvalidError())


class TestConflictError:

    def test_order_id(self):
        err = ConflictError("busy", order_id="PED-1")
        assert str(err) == "busy"
        assert err.order_id == "PED-1"

    def test_order_id_defaults_to_none(self):
        assert ConflictError("busy").order_id is None


class TestPersistenceErrors:

    def test_collection(self):
        err = PersistenceError("disk full", collection="orders")
        assert err.collection == "orders"
        assert err.get_display_message() == "disk full"

    def test_listen_display_message(self):
        msg = ListenError("timeout", collection="operators").get_display_message()
        assert msg.startswith("No se pudo conectar a la base de datos de operators.")
        assert "timeout" in msg

    def test_listen_display_message_without_collection(self):
        assert "de datos." in ListenError("x").get_display_message()
