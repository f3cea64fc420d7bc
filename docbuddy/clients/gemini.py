"""Gemini API client (Vertex AI) for documentation rewrites.

Same shape as the GitHub client: from_env(), _handle_response(), typed errors.
Prompt content lives with the callers; this client only sends a system
instruction plus one user turn and returns the text of the first candidate.
"""

import logging

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from docbuddy.config import GcpSettings, GeminiSettings
from docbuddy.errors import (
    ApiResponseError,
    AuthenticationError,
    ConfigError,
    GenerationError,
    NotFoundError,
)

log = logging.getLogger(__name__)

_SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


class GeminiClient:
    """Text generation through the Vertex AI generateContent endpoint."""

    service_name: str = "gemini"

    def __init__(
        self,
        project_id: str,
        credentials,
        settings: GeminiSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._project_id = project_id
        self._credentials = credentials
        self._settings = settings or GeminiSettings()
        location = self._settings.location
        host = "aiplatform.googleapis.com" if location == "global" else f"{location}-aiplatform.googleapis.com"
        self._client = httpx.AsyncClient(
            base_url=f"https://{host}",
            timeout=self._settings.timeout_seconds,
            transport=transport,
        )

    @classmethod
    def from_env(cls) -> "GeminiClient":
        gcp = GcpSettings()
        if not gcp.project_id:
            raise ConfigError("GCP project id is not configured")
        credentials = service_account.Credentials.from_service_account_file(
            gcp.sa_key_file, scopes=_SCOPES,
        )
        return cls(project_id=gcp.project_id, credentials=credentials)

    def _access_token(self) -> str:
        """Return a valid OAuth token, refreshing the service account credentials if needed."""
        if not self._credentials.valid:
            try:
                self._credentials.refresh(Request())
            except GoogleAuthError as e:
                raise AuthenticationError(self.service_name, f"credential refresh failed: {e}") from e
        return self._credentials.token

    def _model_path(self) -> str:
        return (
            f"/v1beta1/projects/{self._project_id}/locations/{self._settings.location}"
            f"/publishers/google/models/{self._settings.model}:generateContent"
        )

    def _handle_response(self, response: httpx.Response) -> None:
        """Raise typed errors for non-success responses."""
        if response.status_code in (401, 403):
            raise AuthenticationError(self.service_name, f"HTTP {response.status_code}")
        if response.status_code == 404:
            raise NotFoundError(self.service_name, f"model {self._settings.model} not found")
        if response.status_code >= 400:
            raise ApiResponseError(self.service_name, response.status_code, response.text)

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        """Generate text for one system instruction and one user prompt."""
        payload = {
            "contents": [
                {"role": "user", "parts": [{"text": user_prompt}]},
            ],
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "generationConfig": {
                "temperature": self._settings.temperature,
                "maxOutputTokens": self._settings.max_output_tokens,
            },
        }
        response = await self._client.post(
            self._model_path(),
            headers={
                "Authorization": f"Bearer {self._access_token()}",
                "Content-Type": "application/json",
            },
            json=payload,
        )
        self._handle_response(response)

        try:
            data = response.json()
        except ValueError as e:
            log.error("Non-JSON response body: %s", response.text[:200])
            raise GenerationError(self.service_name, "response is not JSON") from e
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            log.error("Unexpected response format: %s", e)
            raise GenerationError(self.service_name, "response has no candidates") from e

        text = "".join(part.get("text", "") for part in parts)
        log.debug("Generated %d characters with %s", len(text), self._settings.model)
        return text

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
