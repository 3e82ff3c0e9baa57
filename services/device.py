# services/device.py
from fastapi import Request

DEVICE_HEADER = "x-device-id"
MAX_DEVICE_ID_LENGTH = 64

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, r = divmod(n, 36)
        digits.append(_BASE36[r])
    return "".join(reversed(digits))


def fingerprint_hash(text: str) -> str:
    """
    Non-cryptographic rolling hash (h = h*31 + c) over UTF-16 code units,
    kept in signed 32-bit range, rendered as base36 of its absolute value.

    The same function is used by the client store so that a device id
    computed on either side is comparable.
    """
    data = text.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = ((h << 5) - h + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))


def device_id_from_request(request: Request) -> str:
    """
    Explicit X-Device-Id header wins; otherwise fingerprint the request
    from user-agent, client ip and accept-language.
    """
    explicit = (request.headers.get(DEVICE_HEADER) or "").strip()
    if explicit:
        return explicit[:MAX_DEVICE_ID_LENGTH]

    user_agent = request.headers.get("user-agent", "")
    ip = request.client.host if request.client else ""
    accept_language = request.headers.get("accept-language", "")
    return fingerprint_hash(user_agent + ip + accept_language)


def get_device_id(request: Request) -> str:
    """FastAPI dependency form of device_id_from_request."""
    return device_id_from_request(request)
