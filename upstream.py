# upstream.py: single-attempt clients for the TAP archive and the external prediction API
import logging

import requests

log = logging.getLogger("upstream")


class UpstreamError(RuntimeError):
    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


def _reject_constant(name):
    # NaN / Infinity are not JSON and must not reach the stats file
    raise ValueError(f"non-standard JSON constant {name}")


def fetch_tap(base_url: str, query: str, fmt: str = "json", timeout: float = 60):
    """
    Run a synchronous TAP query. Returns (body_text, content_type).
    Raises UpstreamError on network failure or a non-2xx response.
    """
    try:
        r = requests.get(base_url, params={"query": query, "format": fmt}, timeout=timeout)
        r.raise_for_status()
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        raise UpstreamError(f"TAP service error: {status}", status=status) from e
    except requests.RequestException as e:
        raise UpstreamError(f"TAP service unreachable: {e}") from e
    return r.text, r.headers.get("Content-Type", "text/plain")


def forward_prediction(url: str, payload, timeout: float = 60) -> dict:
    """POST the payload verbatim and return the decoded JSON object."""
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    try:
        r = requests.post(url, json=payload, headers=headers, timeout=timeout)
        r.raise_for_status()
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        raise UpstreamError(f"AI API responded with status: {status}", status=status) from e
    except requests.RequestException as e:
        raise UpstreamError(f"AI API unreachable: {e}") from e
    try:
        data = r.json(parse_constant=_reject_constant)
    except ValueError as e:
        raise UpstreamError("AI API returned invalid JSON") from e
    if not isinstance(data, dict):
        raise UpstreamError("AI API returned a non-object JSON body")
    return data
