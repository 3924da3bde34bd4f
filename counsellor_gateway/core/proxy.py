"""Weiterleitungs-Kern des Counsellor Gateways: reicht eingehende Requests
an den Upstream-Service durch und übersetzt Upstream-Fehler in JSON-Umschläge.

Fehlerklassen:
- Upstream nicht erreichbar -> 503 "Service Unavailable"
- Upstream antwortet ohne JSON -> 502 "Bad Gateway"
- Fehler beim Aufbau/Weiterreichen -> 500 "Internal Server Error"
"""
import html
import json
import logging
import re
from typing import Any, Callable, Optional

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse

from counsellor_gateway.core.config import Settings
from counsellor_gateway.core.logging_setup import truncate
from counsellor_gateway.core.models import ErrorEnvelope

logger = logging.getLogger(__name__)

# Maximale Länge des Roh-Auszugs in "details" bei Nicht-JSON-Antworten.
DETAILS_LIMIT = 200
INVALID_RESPONSE_MESSAGE = "Received invalid response from API server"

_PARAGRAPH_PATTERN = re.compile(r"<p\b[^>]*>(.*?)</p>", re.IGNORECASE | re.DOTALL)
_TAG_PATTERN = re.compile(r"<[^>]+>")

# Hook zum Nachbearbeiten erfolgreicher Upstream-Antworten: (status, body) -> body
ResponseTransform = Callable[[int, Any], Any]


def extract_paragraph(text: str) -> Optional[str]:
    """Best-Effort: Text des ersten <p>-Elements einer HTML-Fehlerseite."""
    match = _PARAGRAPH_PATTERN.search(text or "")
    if not match:
        return None
    inner = html.unescape(_TAG_PATTERN.sub("", match.group(1)))
    inner = " ".join(inner.split())
    return inner or None


def error_response(status_code: int, error: str, message: str, details: Optional[str] = None) -> JSONResponse:
    envelope = ErrorEnvelope(error=error, message=message, details=details)
    return JSONResponse(status_code=status_code, content=envelope.to_content())


def encode_body(payload: Any) -> bytes:
    """Serialisiert den Request-Body kompakt als UTF-8-JSON."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


class UpstreamProxy:
    """Leitet Requests an den konfigurierten Upstream weiter.

    Pro eingehendem Request wird genau eine Upstream-Verbindung geöffnet;
    es gibt weder Retries noch Connection-Pooling über Requests hinweg.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.settings = settings
        self.base_url = settings.upstream_base_url
        # Injizierbarer Transport (z.B. httpx.MockTransport in Tests).
        self._transport = transport

    def build_url(self, target_path: str, query: str = "") -> str:
        url = f"{self.base_url}{target_path}"
        if query:
            url = f"{url}?{query}"
        return url

    @staticmethod
    async def read_payload(request: Request) -> Any:
        raw = await request.body()
        if not raw.strip():
            return {}
        return json.loads(raw)

    async def forward(
        self,
        request: Request,
        target_path: str,
        payload: Any = None,
        transform: Optional[ResponseTransform] = None,
    ) -> JSONResponse:
        """Reicht ``request`` an ``target_path`` beim Upstream durch.

        Methode und Query-String werden übernommen; ``payload`` ersetzt
        den Body des Clients, falls gesetzt.
        """
        try:
            if payload is None:
                payload = await self.read_payload(request)
            body = encode_body(payload)
            url = self.build_url(target_path, request.url.query)
            headers = {
                "Content-Type": "application/json",
                "Accept": "application/json",
                "Content-Length": str(len(body)),
            }
            logger.info(f"Proxying {request.method} {request.url.path} -> {url} body={truncate(body.decode('utf-8'))}")

            async with httpx.AsyncClient(transport=self._transport, timeout=self.settings.upstream_timeout) as client:
                upstream = await client.request(request.method, url, content=body, headers=headers)
        except httpx.TransportError as exc:
            logger.error(f"Proxy request error for {target_path}: {exc!r}")
            return error_response(503, "Service Unavailable", "Failed to reach API server", str(exc))
        except Exception as exc:
            logger.exception(f"Proxy middleware error for {target_path}")
            return error_response(500, "Internal Server Error", "Failed to process request", str(exc))

        return self._relay(upstream, transform)

    def _relay(self, upstream: httpx.Response, transform: Optional[ResponseTransform]) -> JSONResponse:
        content_type = upstream.headers.get("content-type", "")
        logger.info(f"API response {upstream.status_code} ({content_type}): {truncate(upstream.text)}")

        if "application/json" not in content_type:
            logger.error("Received non-JSON response from API")
            raw = upstream.text
            message = extract_paragraph(raw) or INVALID_RESPONSE_MESSAGE
            return error_response(502, "Bad Gateway", message, raw[:DETAILS_LIMIT])

        try:
            data = upstream.json()
        except ValueError as exc:
            logger.error(f"Error handling API response: {exc}")
            return error_response(502, "Bad Gateway", "Failed to process API response", str(exc))

        if transform is not None:
            data = transform(upstream.status_code, data)
        return JSONResponse(status_code=upstream.status_code, content=data)
