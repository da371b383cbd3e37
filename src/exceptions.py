"""
Custom exceptions for the Order Tracker application.

This module defines application-specific exceptions for better error handling,
user feedback, and debugging. Using custom exceptions allows the application to:
- Tell user-correctable problems apart from session-blocking ones
- Carry the context needed for a helpful message (order id, HTTP status)
- Enable targeted exception handling in the controller and UI layer

Kitchen and warehouse staff scan orders quickly and are rarely technical, so
every error exposes get_display_message() with text that can be shown as is.

Exception hierarchy:
    OrderTrackerError (base)
    ├── ValidationError (bad or empty scanned identifier)
    │   ├── EmptyIdentifierError
    │   └── InvalidIdentifierError
    ├── VisionError (order number extraction failures)
    │   ├── NotFoundError (no order number in the photo)
    │   ├── TransientVisionError (network / service failure)
    │   └── AuthError (vision credential problems, blocking)
    │       ├── KeyMissingError
    │       └── KeyInvalidError
    ├── ConflictError (action invalid for the current order state)
    └── PersistenceError (store write failures)
        └── ListenError (store subscription failures, blocking)
"""

from typing import Optional


class OrderTrackerError(Exception):
    """
    Base exception for all Order Tracker errors.

    All application-specific exceptions inherit from this class, so the
    controller can catch every expected failure with a single except clause.

    Attributes:
        blocking (bool): True when the error must be shown as a full-screen
                         state instead of a dismissible notice.
    """

    blocking = False

    def get_display_message(self) -> str:
        """Message suitable for showing to the operator."""
        return str(self)


class ValidationError(OrderTrackerError):
    """
    Raised when a scanned identifier cannot be turned into a valid order id.

    The user can fix this by taking a better photo; nothing is retried.
    """


class EmptyIdentifierError(ValidationError):
    """Raised when nothing is left of the extracted text after cleanup."""

    def __init__(self, message: str = "El ID del pedido extraído de la imagen está vacío."):
        super().__init__(message)


class InvalidIdentifierError(ValidationError):
    """
    Raised when a cleaned identifier still does not match ^[A-Za-z0-9-]+$.

    Attributes:
        order_id (str): The rejected identifier
    """

    def __init__(self, order_id: str):
        super().__init__(
            f"El ID de pedido '{order_id}' no es válido. "
            f"Solo se permiten letras, números y guiones."
        )
        self.order_id = order_id


class VisionError(OrderTrackerError):
    """Base class for failures of the order number extraction service."""


class NotFoundError(VisionError):
    """
    Raised when the vision service found no order number in the photo.

    Non-fatal: the operator simply rescans.
    """

    def __init__(self, message: str = "No se pudo encontrar un número de pedido en la imagen."):
        super().__init__(message)


class TransientVisionError(VisionError):
    """
    Raised for network errors, timeouts and unexpected service responses.

    Attributes:
        status_code (Optional[int]): HTTP status when the service answered
    """

    def __init__(
        self,
        message: str = "No se pudo comunicar con el servicio de IA para analizar la imagen.",
        status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.status_code = status_code


class AuthError(VisionError):
    """
    Raised when the vision service rejects or lacks credentials.

    Blocking: the scan is aborted without touching any order and the UI must
    show the configuration screen until a valid key is provided.
    """

    blocking = True

    def get_display_message(self) -> str:
        return (
            f"{self}\n\n"
            f"Configure una clave de API de Gemini válida en config.ini "
            f"([Vision] ApiKey) o en la variable de entorno GEMINI_API_KEY."
        )


class KeyMissingError(AuthError):
    """Raised when no vision API key is configured at all."""

    def __init__(self, message: str = "La clave de API de Gemini no está configurada."):
        super().__init__(message)


class KeyInvalidError(AuthError):
    """Raised when the configured key is rejected as invalid or expired."""

    def __init__(self, message: str = "La clave de API de Gemini no es válida o ha caducado."):
        super().__init__(message)


class ConflictError(OrderTrackerError):
    """
    Raised when an action is invalid for the current order state.

    Examples: confirming an assignment with no operator selected, finalizing
    an order that was never started, scanning while another decision is
    still pending. Always raised before any persistence call.

    Attributes:
        order_id (Optional[str]): Order the action was attempted on
    """

    def __init__(self, message: str, order_id: Optional[str] = None):
        super().__init__(message)
        self.order_id = order_id


class PersistenceError(OrderTrackerError):
    """
    Raised when the order/operator store cannot complete a write.

    Dismissible: the in-memory snapshot is untouched and the user may retry.

    Attributes:
        collection (Optional[str]): Collection the operation targeted
    """

    def __init__(self, message: str, collection: Optional[str] = None):
        super().__init__(message)
        self.collection = collection


class ListenError(PersistenceError):
    """
    Raised when a store subscription fails.

    Blocking: without a snapshot there is nothing to show.
    """

    blocking = True

    def get_display_message(self) -> str:
        target = self.collection or "datos"
        return (
            f"No se pudo conectar a la base de datos de {target}.\n\n"
            f"{self}"
        )
