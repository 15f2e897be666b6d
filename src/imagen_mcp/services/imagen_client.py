"""Vertex AI Imagen REST client."""

import logging
from typing import Any

import httpx

from imagen_mcp.config import Settings
from imagen_mcp.errors.exceptions import ExecutorError
from imagen_mcp.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

_PREDICT_URL = (
    "https://{region}-aiplatform.googleapis.com/v1/projects/{project}"
    "/locations/{region}/publishers/google/models/{model}:predict"
)


def _upstream_message(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return resp.text or resp.reason_phrase


class ImagenClient:
    """Calls the ``:predict`` endpoint of Imagen publisher models.

    Authenticates with an API key (``x-goog-api-key``) when one is configured,
    otherwise with a bearer access token. Every request goes through the
    shared rate limiter.
    """

    def __init__(
        self,
        config: Settings,
        rate_limiter: RateLimiter,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self.rate_limiter = rate_limiter
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=config.request_timeout_seconds)

    def auth_headers(self) -> dict[str, str]:
        if self.config.google_api_key:
            return {"x-goog-api-key": self.config.google_api_key}
        if self.config.google_access_token:
            return {"Authorization": f"Bearer {self.config.google_access_token}"}
        raise ExecutorError(
            "Authentication required. Set VERTEXAI_IMAGEN_GOOGLE_API_KEY "
            "or VERTEXAI_IMAGEN_GOOGLE_ACCESS_TOKEN."
        )

    @property
    def project_id(self) -> str:
        if not self.config.google_project_id:
            raise ExecutorError(
                "Project ID not found. Set VERTEXAI_IMAGEN_GOOGLE_PROJECT_ID."
            )
        return self.config.google_project_id

    def endpoint(self, model: str, region: str | None = None) -> str:
        return _PREDICT_URL.format(
            region=region or self.config.google_region,
            project=self.project_id,
            model=model,
        )

    async def predict(
        self, model: str, body: dict[str, Any], region: str | None = None
    ) -> list[dict[str, Any]]:
        """POST ``body`` to the model and return its non-empty ``predictions``.

        Raises:
            ExecutorError: On auth/config problems, HTTP errors or an empty response.
        """
        url = self.endpoint(model, region)
        headers = {"Content-Type": "application/json", **self.auth_headers()}

        logger.debug("Imagen predict: model=%s region=%s", model, region or self.config.google_region)
        try:
            resp = await self.rate_limiter.execute(
                lambda: self._http.post(url, json=body, headers=headers)
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            message = _upstream_message(exc.response)
            logger.debug("Imagen API error %s: %s", status, message)
            if status in (401, 403):
                raise ExecutorError(
                    f"Google Imagen API authentication error: {message}", status
                ) from exc
            if status == 400:
                raise ExecutorError(
                    f"Google Imagen API invalid parameter error: {message}", status
                ) from exc
            if status >= 500:
                raise ExecutorError(f"Google Imagen API server error: {message}", status) from exc
            raise ExecutorError(f"Google Imagen API error: {message}", status) from exc
        except httpx.HTTPError as exc:
            raise ExecutorError(f"Google Imagen API error: {exc}") from exc

        try:
            predictions = resp.json().get("predictions") or []
        except (ValueError, AttributeError) as exc:
            raise ExecutorError("Google Imagen API returned a non-JSON response") from exc
        if not predictions:
            raise ExecutorError("No images were generated")
        return predictions

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
