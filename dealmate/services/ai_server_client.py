"""HTTP client for the external AI analysis server.

Every operation returns an ``AIResponse`` envelope; transport and HTTP
failures become ``success=False`` with an error message phrased so the error
classifier can recognize it (network, timeout, authentication, ...).
"""

import time
from pathlib import PurePath
from typing import Any, Dict, List, Optional

import httpx
from httpx import HTTPStatusError, TimeoutException, TransportError

from dealmate.core.config import settings
from dealmate.core.exceptions import ConfigurationError
from dealmate.schemas.ai_server import AIResponse
from dealmate.utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_MEMO_SECTIONS = ["executive_summary", "financial_analysis", "risks", "recommendation"]

PROCESSING_METHODS: Dict[str, str] = {
    "mp3": "audio",
    "wav": "audio",
    "m4a": "audio",
    "xlsx": "excel",
    "xls": "excel",
    "csv": "excel",
    "pdf": "document",
    "docx": "document",
    "doc": "document",
}


def get_processing_method(file_name: str) -> str:
    """Map a file name to ``audio``, ``excel``, ``document`` or ``unknown`` by extension."""
    extension = PurePath(file_name.lower()).suffix.lstrip(".")
    return PROCESSING_METHODS.get(extension, "unknown")


class AIServerClient:
    """Async client for the AI server endpoints.

    Args:
        base_url: Server base URL, defaults to ``AI_SERVER_URL``
        timeout: Request timeout in seconds for processing calls
        health_timeout: Timeout in seconds for the health check
        transport: Optional httpx transport (used by tests)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        health_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.ai_server_url).rstrip("/")
        if not self.base_url:
            raise ConfigurationError("AI_SERVER_URL is not configured")
        self.timeout = timeout if timeout is not None else settings.ai_server.timeout
        self.health_timeout = health_timeout if health_timeout is not None else settings.ai_server.health_timeout
        self.transport = transport
        self.logger = LOGGER

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=self.transport)

    async def _request(
        self,
        operation: str,
        method: str,
        endpoint: str,
        **kwargs: Any,
    ) -> AIResponse:
        """Issue one request and wrap the outcome in an ``AIResponse``."""
        started = time.perf_counter()
        self.logger.debug(f"Calling AI server: {method} {endpoint}", extra={"operation": operation})

        try:
            async with self._client(self.timeout) as client:
                response = await client.request(method, endpoint, **kwargs)
                response.raise_for_status()
                data = response.json()
        except HTTPStatusError as e:
            error = self._handle_http_error(e, operation)
        except TimeoutException as e:
            self.logger.warning(f"{operation} timed out", extra={"url": f"{self.base_url}{endpoint}"})
            error = f"Request timeout: {e}"
        except TransportError as e:
            self.logger.warning(f"{operation} failed: network error", extra={"error": str(e)})
            error = f"Network error: {e}"
        except ValueError as e:
            self.logger.error(f"{operation} returned invalid JSON: {e}")
            error = f"Failed to parse JSON response: {e}"
        else:
            return AIResponse(success=True, data=data, processing_time=time.perf_counter() - started)

        self.logger.error(f"{operation} failed: {error}")
        return AIResponse(success=False, error=error, processing_time=time.perf_counter() - started)

    def _handle_http_error(self, error: HTTPStatusError, operation: str) -> str:
        status_code = error.response.status_code
        try:
            error_body = error.response.text
        except Exception:
            error_body = "Could not read response body"

        self.logger.warning(
            f"{operation} HTTP error",
            extra={"status_code": status_code, "error_body": error_body[:500]},
        )
        return f"HTTP error! status: {status_code}"

    async def check_health(self) -> bool:
        """True only when the server answers ``{"status": "healthy"}``."""
        try:
            async with self._client(self.health_timeout) as client:
                response = await client.get("/health")
            if response.status_code != 200:
                self.logger.error(f"AI server health check failed with status: {response.status_code}")
                return False
            return response.json().get("status") == "healthy"
        except Exception as e:
            self.logger.error(f"AI server health check failed: {e}")
            return False

    async def _upload(self, operation: str, endpoint: str, file_name: str, content: bytes, deal_id: str) -> AIResponse:
        return await self._request(
            operation,
            "POST",
            endpoint,
            files={"file": (file_name, content)},
            data={"deal_id": deal_id},
        )

    async def transcribe_audio(self, file_name: str, content: bytes, deal_id: str) -> AIResponse:
        return await self._upload("Audio transcription", "/transcribe", file_name, content, deal_id)

    async def process_excel(self, file_name: str, content: bytes, deal_id: str) -> AIResponse:
        return await self._upload("Excel processing", "/process-excel", file_name, content, deal_id)

    async def process_document(self, file_name: str, content: bytes, deal_id: str) -> AIResponse:
        return await self._upload("Document processing", "/process-document", file_name, content, deal_id)

    async def generate_memo(self, deal_id: str, sections: Optional[List[str]] = None) -> AIResponse:
        return await self._request(
            "Memo generation",
            "POST",
            "/generate-memo",
            json={"deal_id": deal_id, "sections": sections or DEFAULT_MEMO_SECTIONS},
        )

    async def check_processing_status(self, job_id: str) -> AIResponse:
        return await self._request("Status check", "GET", f"/status/{job_id}")

    async def process_file(self, file_name: str, content: bytes, deal_id: str) -> AIResponse:
        """Route a file to the endpoint matching its extension."""
        method = get_processing_method(file_name)
        if method == "audio":
            return await self.transcribe_audio(file_name, content, deal_id)
        if method == "excel":
            return await self.process_excel(file_name, content, deal_id)
        if method == "document":
            return await self.process_document(file_name, content, deal_id)
        return AIResponse(success=False, error=f"Unsupported file type: {file_name}")
