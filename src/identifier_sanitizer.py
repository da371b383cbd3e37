"""
Normalization of order numbers read from scanned documents.

The vision service returns free text ("Nº Pedido: PED-1042 ", "1042.") which
is reduced to letters, digits and hyphens before it is used as an order id
and storage key.
"""
import re

from exceptions import EmptyIdentifierError, InvalidIdentifierError

DISALLOWED_CHARS = re.compile(r'[^A-Za-z0-9-]')
VALID_ORDER_ID = re.compile(r'^[A-Za-z0-9-]+$')


def sanitize_order_id(raw_text: str) -> str:
    """
    Turn extracted text into a valid order id.

    Args:
        raw_text: Text returned by the vision service

    Returns:
        The cleaned identifier

    Raises:
        EmptyIdentifierError: Nothing is left after cleanup
        InvalidIdentifierError: The cleaned value does not match ^[A-Za-z0-9-]+$
    """
    sanitized = DISALLOWED_CHARS.sub('', (raw_text or '').strip())

    if not sanitized:
        raise EmptyIdentifierError()

    if not VALID_ORDER_ID.match(sanitized):
        raise InvalidIdentifierError(sanitized)

    return sanitized
