"""Hacienda error and rejection code registry.

Maps rejection codes found in the MensajeHacienda response XML and the
HTTP status codes of the API to readable descriptions.
"""

from typing import Dict

# --- Rejection codes (from respuesta-xml) ---

REJECTION_CODE_DESCRIPTIONS: Dict[str, str] = {
    "01": "XML schema validation failed. The document does not conform to the v4.4 XSD.",
    "02": "Digital signature is invalid or missing. Verify the .p12 certificate and signing process.",
    "03": "Taxpayer is not registered or is inactive in the Hacienda system.",
    "04": "Emission date is outside the allowed range (cannot be in the future or too far in the past).",
    "05": "Duplicate clave numerica. A document with this key has already been submitted.",
    "06": "Receiver taxpayer identification not found in the Hacienda registry.",
    "07": "Economic activity code is invalid or not registered for this taxpayer.",
    "08": "Tax calculation mismatch. The tax amounts in the document do not match expected values.",
    "09": "Total amount mismatch. The summary totals do not match the line item calculations.",
    "10": "Sequence number is out of the allowed range.",
    "11": "Certificate is expired, not yet valid, or revoked.",
    "12": "Currency code is invalid or not supported.",
}

# --- HTTP status descriptions ---

HTTP_STATUS_DESCRIPTIONS: Dict[int, str] = {
    201: "Document accepted for processing.",
    202: "Document received and queued for processing.",
    400: "Bad request. The submission payload is malformed or missing required fields.",
    401: "Unauthorized. The access token is invalid or expired.",
    403: "Forbidden. The taxpayer does not have permission to submit this document type.",
    404: "Not found. The clave or endpoint does not exist.",
    409: "Conflict. A document with this clave has already been submitted.",
    500: "Internal server error on the Hacienda side. Retry with backoff.",
    502: "Bad gateway. The Hacienda API is temporarily unavailable.",
    503: "Service unavailable. The Hacienda API is under maintenance or overloaded.",
}


def get_rejection_description(code: str) -> str:
    return REJECTION_CODE_DESCRIPTIONS.get(code, f"Unknown Hacienda rejection code: {code}.")


def get_http_status_description(status_code: int) -> str:
    return HTTP_STATUS_DESCRIPTIONS.get(status_code, f"HTTP {status_code} from Hacienda API.")


def is_retryable_status(status_code: int) -> bool:
    """Only server errors (5xx) are worth retrying."""
    return 500 <= status_code <= 599
