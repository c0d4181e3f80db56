from __future__ import annotations

from typing import Any, Dict, Optional

import requests

from ..domain.errors import ErrorKind, ProviderError


def classify_http_error(exc: Exception, default: ErrorKind) -> ProviderError:
    """Map a ``requests`` failure onto an error kind.

    Timeouts, connection failures, 429 and 5xx are transient; 401/403 are
    authentication failures; any other status keeps the component's ``default``
    kind, which the default retry policy does not retry.
    """
    if isinstance(exc, requests.Timeout):
        code = ErrorKind.TIMEOUT_ERROR
    elif isinstance(exc, requests.ConnectionError):
        code = ErrorKind.NETWORK_ERROR
    elif isinstance(exc, requests.HTTPError) and exc.response is not None:
        status = exc.response.status_code
        if status == 429:
            code = ErrorKind.RATE_LIMITED
        elif status in (401, 403):
            code = ErrorKind.AUTHENTICATION_FAILED
        elif status >= 500:
            code = ErrorKind.TEMPORARY_FAILURE
        else:
            code = default
    else:
        code = default
    details: Dict[str, Any] = {}
    response = getattr(exc, "response", None)
    if response is not None:
        details["status_code"] = response.status_code
    return ProviderError(str(exc) or type(exc).__name__, code=code, details=details, cause=exc)


def request_json(
    method: str,
    url: str,
    *,
    default: ErrorKind,
    timeout: float,
    json: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    allow_404: bool = False,
) -> Optional[Dict[str, Any]]:
    """Send one request and return the decoded JSON body.

    Returns None for a 404 when ``allow_404`` is set.

    Raises:
        ProviderError: Classified transport or status failure.
    """
    try:
        r = requests.request(method, url, json=json, headers=headers, timeout=timeout)
        if allow_404 and r.status_code == 404:
            return None
        r.raise_for_status()
        return r.json() or {}
    except requests.RequestException as exc:
        raise classify_http_error(exc, default) from exc
    except ValueError as exc:
        raise ProviderError(f"Invalid JSON from {url}", code=default, cause=exc) from exc
