"""fal.ai queue API client for selfie generation."""

import base64
from dataclasses import dataclass
from uuid import UUID

import httpx

from selfie_generator.domain.generation import GenerationPoll, map_queue_status
from selfie_generator.domain.sessions import GenerationStatus
from selfie_generator.errors import UpstreamError
from selfie_generator.services.generation import GenerationClient

_PROMPT = "professional headshot, high quality, clean background, studio lighting"
_NEGATIVE_PROMPT = "blurry, low quality, distorted, nsfw, inappropriate"
_RETRYABLE_STATUS_CODES = {408, 429}


@dataclass
class HttpxFalGenerationClient(GenerationClient):
    """Generation client using the fal.ai queue over httpx."""

    api_key: str
    model: str
    base_url: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 20.0

    @classmethod
    def create(
        cls, api_key: str, model: str, base_url: str, timeout_seconds: float = 20.0
    ) -> "HttpxFalGenerationClient":
        """Create a fal client with a managed httpx session."""
        return cls(
            api_key=api_key,
            model=model,
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            timeout_seconds=timeout_seconds,
        )

    async def submit(
        self, session_id: UUID, image_bytes: bytes, content_type: str
    ) -> str:
        """Queue an image-to-image job and return the fal request id."""
        encoded = base64.b64encode(image_bytes).decode("utf-8")
        payload = {
            "image_url": f"data:{content_type};base64,{encoded}",
            "prompt": _PROMPT,
            "negative_prompt": _NEGATIVE_PROMPT,
            "num_inference_steps": 25,
            "guidance_scale": 7.5,
            "strength": 0.8,
        }
        data = await self._request("POST", f"{self.base_url}/{self.model}", payload)
        request_id = data.get("request_id")
        if not request_id:
            raise UpstreamError(
                "fal submit response missing request_id", retryable=False
            )
        return str(request_id)

    async def poll_status(self, job_id: str) -> GenerationPoll:
        """Check job status and fetch the result URL once completed."""
        requests_url = f"{self.base_url}/{_app_id(self.model)}/requests/{job_id}"
        status = await self._request("GET", f"{requests_url}/status")
        mapped = map_queue_status(str(status.get("status", "")))
        if mapped is not GenerationStatus.COMPLETED:
            return GenerationPoll(status=mapped)
        result = await self._request("GET", requests_url)
        return GenerationPoll(status=mapped, result_url=_result_image_url(result))

    async def download(self, result_url: str) -> bytes:
        """Download generated image bytes from a URL or data URI."""
        if result_url.startswith("data:"):
            _, encoded = result_url.split(",", maxsplit=1)
            return base64.b64decode(encoded)
        try:
            response = await self.http_client.get(
                result_url, timeout=self.timeout_seconds
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise _status_error(exc) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError("Generated image download failed") from exc
        return response.content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _request(
        self, method: str, url: str, payload: dict[str, object] | None = None
    ) -> dict[str, object]:
        try:
            response = await self.http_client.request(
                method,
                url,
                headers={"Authorization": f"Key {self.api_key}"},
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise _status_error(exc) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError("Generation provider unreachable") from exc
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError("Generation provider returned invalid JSON") from exc
        if isinstance(data, list):
            data = data[0] if data else {}
        return data if isinstance(data, dict) else {}


def _app_id(model: str) -> str:
    """Queue status URLs use the owner/app prefix of the model path."""
    return "/".join(model.split("/")[:2])


def _result_image_url(result: dict[str, object]) -> str | None:
    images = result.get("images")
    if isinstance(images, list) and images and isinstance(images[0], dict):
        url = images[0].get("url")
        return str(url) if url else None
    image = result.get("image")
    if isinstance(image, dict) and image.get("url"):
        return str(image["url"])
    return None


def _status_error(exc: httpx.HTTPStatusError) -> UpstreamError:
    status_code = exc.response.status_code
    retryable = status_code >= 500 or status_code in _RETRYABLE_STATUS_CODES
    return UpstreamError(
        f"Generation provider returned HTTP {status_code}", retryable=retryable
    )
