"""
Vision Client - reads the order number from a photo of an order document.

The photo is sent inline to the Gemini generateContent REST endpoint together
with an extraction prompt. The model answers with the order number only, or
with the word NOT_FOUND.

Failures are mapped to the application's error hierarchy:
    no key configured                       -> KeyMissingError
    key rejected (invalid / 401 / 403)      -> KeyInvalidError
    other authentication failures           -> AuthError
    NOT_FOUND or empty answer               -> NotFoundError
    network errors, timeouts, anything else -> TransientVisionError

Nothing is retried here; the operator rescans if needed.
"""
import base64
import io
from pathlib import Path
from typing import Optional, Tuple

import requests
from PIL import Image, UnidentifiedImageError

from app_config import DEFAULT_ENDPOINT, DEFAULT_MODEL
from exceptions import (
    AuthError, KeyInvalidError, KeyMissingError, NotFoundError,
    TransientVisionError, ValidationError,
)
from logger import get_logger

logger = get_logger(__name__)

NOT_FOUND_MARKER = "NOT_FOUND"

EXTRACTION_PROMPT = (
    "Analiza esta imagen de un documento. Encuentra el número de pedido. "
    "Suele estar etiquetado como 'Nº Pedido', 'Pedido', 'Order #', o similar. "
    "Devuelve ÚNICAMENTE el número de pedido como texto plano, sin ninguna "
    "explicación adicional. Si no se encuentra un número de pedido claro, "
    "devuelve la palabra 'NOT_FOUND'."
)


def read_scan_image(path: Path) -> Tuple[bytes, str]:
    """
    Load a photo from disk and detect its MIME type.

    Args:
        path: Image file (JPEG, PNG, WEBP, ...)

    Returns:
        (raw file bytes, MIME type)

    Raises:
        ValidationError: The file is missing or not a readable image
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ValidationError(f"No se pudo leer la imagen {path.name}: {e}")

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            image_format = img.format
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValidationError(f"El archivo {path.name} no es una imagen válida.") from e

    mime_type = Image.MIME.get(image_format, f"image/{(image_format or 'jpeg').lower()}")
    logger.debug(f"Loaded scan image {path.name}: {mime_type}, {len(data)} bytes")
    return data, mime_type


class GeminiVisionClient:
    """
    Order number extraction through the Gemini REST API.

    Attributes:
        api_key (Optional[str]): API key; None makes every call raise KeyMissingError
        model (str): Model name, e.g. "gemini-2.5-flash"
        endpoint (str): Base URL of the generative language API
        timeout (int): HTTP timeout in seconds
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_MODEL,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: int = 30,
        session: Optional[requests.Session] = None
    ):
        self.api_key = api_key
        self.model = model
        self.endpoint = endpoint.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config) -> 'GeminiVisionClient':
        return cls(
            api_key=config.vision_api_key,
            model=config.vision_model,
            endpoint=config.vision_endpoint,
            timeout=config.vision_timeout,
        )

    @property
    def url(self) -> str:
        return f"{self.endpoint}/models/{self.model}:generateContent"

    def extract_order_id(self, image_bytes: bytes, mime_type: str) -> str:
        """
        Return the raw order number text found in the image.

        The text is stripped but otherwise unsanitized.

        Raises:
            KeyMissingError, KeyInvalidError, AuthError: credential problems
            NotFoundError: no order number in the image
            TransientVisionError: network or service failure
        """
        if not self.api_key:
            raise KeyMissingError()

        payload = {
            'contents': [{
                'parts': [
                    {'text': EXTRACTION_PROMPT},
                    {'inline_data': {
                        'mime_type': mime_type,
                        'data': base64.b64encode(image_bytes).decode('ascii'),
                    }},
                ]
            }]
        }

        logger.info(f"Requesting order number extraction ({self.model}, {len(image_bytes)} bytes)")

        try:
            response = self.session.post(
                self.url,
                json=payload,
                headers={'x-goog-api-key': self.api_key},
                timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            logger.error("Timeout calling vision service")
            raise TransientVisionError() from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Error calling vision service: {e}")
            raise TransientVisionError() from e

        if response.status_code != 200:
            self._raise_for_error(response)

        try:
            text = self._response_text(response.json())
        except ValueError as e:
            logger.error(f"Unreadable vision response: {e}")
            raise TransientVisionError() from e

        if not text or text == NOT_FOUND_MARKER:
            logger.warning("Vision service found no order number")
            raise NotFoundError()

        logger.info(f"Vision service returned: {text}")
        return text

    @staticmethod
    def _response_text(data: dict) -> str:
        candidates = data.get('candidates') or []
        if not candidates:
            return ''

        parts = (candidates[0].get('content') or {}).get('parts') or []
        return ''.join(part.get('text', '') for part in parts).strip()

    @staticmethod
    def _raise_for_error(response: requests.Response):
        status_code = response.status_code
        try:
            error = response.json().get('error', {})
        except ValueError:
            error = {}

        message = error.get('message', '') or response.text or ''
        status = error.get('status', '')

        logger.error(f"Vision service error {status_code} {status}: {message}")

        if ('API key not valid' in message or status == 'PERMISSION_DENIED'
                or status_code in (401, 403)):
            raise KeyInvalidError()
        if status == 'UNAUTHENTICATED':
            raise AuthError("La clave de API no fue aceptada por el servicio de IA.")

        raise TransientVisionError(status_code=status_code)
