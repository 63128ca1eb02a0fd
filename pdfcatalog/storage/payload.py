"""Data-URI encoding of PDF payloads."""

import base64
import binascii

PDF_MIME_TYPE = "application/pdf"
DATA_URI_PREFIX = f"data:{PDF_MIME_TYPE};base64,"


class PayloadDecodeError(ValueError):
    """Raised when a stored payload is not a valid base64 data URI."""


def encode_payload(raw: bytes) -> str:
    return DATA_URI_PREFIX + base64.b64encode(raw).decode("ascii")


def decode_payload(payload: str) -> bytes:
    if not is_data_uri(payload):
        raise PayloadDecodeError("Payload is not a data URI")
    _, _, encoded = payload.partition(",")
    try:
        return base64.b64decode(encoded, validate=True)
    except binascii.Error as e:
        raise PayloadDecodeError(f"Invalid base64 payload: {e}") from e


def is_data_uri(payload: str | None) -> bool:
    return bool(payload) and payload.startswith("data:") and "," in payload


def encoded_body_length(payload: str) -> int:
    """Length of the base64 body, without the data-URI header."""
    return len(payload) - (payload.find(",") + 1)
