# src/vinculum/client.py

import json
import logging
from typing import Any, Dict, Optional

import requests

from vinculum.config import Settings
from vinculum.errors import GatewayNetworkError
from vinculum.models import UpstreamResponse

logger = logging.getLogger(__name__)


def parse_body(text: str) -> Dict[str, Any]:
    """
    Speculatively decodes an upstream body. Text that is not JSON is kept
    as ``{"raw": text}`` so diagnostics survive; JSON that is not an object
    is kept under ``"data"``.
    """
    try:
        parsed = json.loads(text)
    except ValueError:
        return {"raw": text}
    if isinstance(parsed, dict):
        return parsed
    return {"data": parsed}


class GatewayClient:
    """
    Issues single POST requests against the Vinculum order API.
    Retries are not done here; the shape negotiator owns the fallback order.
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()

    def default_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        headers.update(self.settings.auth_headers())
        return headers

    def call(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> UpstreamResponse:
        """
        POSTs ``payload`` as JSON to ``url``.
        :return: the HTTP status with the parsed (or raw-wrapped) body.
        :raises GatewayNetworkError: on connection errors and timeouts.
        """
        merged = self.default_headers()
        if headers:
            merged.update(headers)

        logger.info(f"POST {url}")
        try:
            resp = self.session.post(
                url,
                headers=merged,
                json=payload,
                timeout=self.settings.timeout_seconds,
            )
        except requests.Timeout as e:
            logger.warning(f"Timed out calling {url}: {e}")
            raise GatewayNetworkError(
                f"Timed out after {self.settings.timeout_seconds}s", url=url
            ) from e
        except requests.RequestException as e:
            logger.warning(f"Error calling {url}: {e}")
            raise GatewayNetworkError(str(e) or type(e).__name__, url=url) from e

        response = UpstreamResponse(http_status=resp.status_code, body=parse_body(resp.text))
        logger.debug(f"{url} answered HTTP {response.http_status}, responseCode={response.response_code!r}")
        return response
