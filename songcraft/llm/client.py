from __future__ import annotations

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from songcraft.config import settings
from songcraft.db.enums import CapabilityClassEnum
from songcraft.errors import CredentialProbeFailure, GenerationBackendError

logger = logging.getLogger(__name__)

_PROBE_PROMPTS: dict[CapabilityClassEnum, str] = {
    CapabilityClassEnum.text: "hi",
    CapabilityClassEnum.image: "a dot",
    CapabilityClassEnum.pro_image: "a dot",
}


@dataclass
class TextGenerationRequest:
    prompt: str
    model: str
    response_schema: Optional[dict[str, Any]] = None
    thinking_budget: Optional[int] = None
    fragments: dict[str, str] = field(default_factory=dict)

    @property
    def is_structured(self) -> bool:
        return self.response_schema is not None


@dataclass
class ImageGenerationRequest:
    prompt: str
    model: str
    aspect_ratio: str
    image_size: Optional[str] = None


@dataclass
class AudioAnalysisRequest:
    prompt: str
    model: str
    audio: bytes
    mime_type: str


@dataclass(frozen=True)
class ResponsePart:
    text: Optional[str] = None
    data: Optional[bytes] = None
    mime_type: Optional[str] = None


class GenerationBackend(ABC):
    """Contract the core expects from the generative backend."""

    @abstractmethod
    async def probe_capability(self, credential: str, capability: CapabilityClassEnum) -> None:
        """Return normally when the capability is usable; raise CredentialProbeFailure otherwise."""

    @abstractmethod
    async def generate_text(self, credential: str, request: TextGenerationRequest) -> str: ...

    @abstractmethod
    async def generate_image(self, credential: str, request: ImageGenerationRequest) -> list[ResponsePart]: ...

    @abstractmethod
    async def analyze_audio_for_tempo(self, credential: str, request: AudioAnalysisRequest) -> str: ...


def model_for_capability(capability: CapabilityClassEnum) -> str:
    if capability == CapabilityClassEnum.text:
        return settings.TEXT_MODEL
    if capability == CapabilityClassEnum.image:
        return settings.IMAGE_MODEL
    return settings.PRO_IMAGE_MODEL


def _first_candidate_parts(body: dict[str, Any]) -> list[dict[str, Any]]:
    candidates = body.get("candidates") or []
    if not isinstance(candidates, list) or not candidates:
        return []
    first = candidates[0]
    content = first.get("content") if isinstance(first, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return []
    return [part for part in parts if isinstance(part, dict)]


def _extract_text(body: dict[str, Any]) -> str:
    texts: list[str] = []
    for part in _first_candidate_parts(body):
        if part.get("thought"):
            continue
        text = part.get("text")
        if isinstance(text, str):
            texts.append(text)
    return "".join(texts)


def _extract_parts(body: dict[str, Any]) -> list[ResponsePart]:
    parts: list[ResponsePart] = []
    for part in _first_candidate_parts(body):
        inline = part.get("inlineData") or part.get("inline_data")
        if isinstance(inline, dict):
            data = inline.get("data")
            mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            if isinstance(data, str) and data:
                try:
                    decoded = base64.b64decode(data)
                except (binascii.Error, ValueError):
                    logger.warning("Gemini returned undecodable inline data", extra={"mime_type": mime_type})
                    continue
                parts.append(ResponsePart(data=decoded, mime_type=str(mime_type)))
                continue
        text = part.get("text")
        if isinstance(text, str):
            parts.append(ResponsePart(text=text))
    return parts


class GeminiClient(GenerationBackend):
    """
    Gemini `generateContent` over REST.
    Every transport-level failure is mapped to GenerationBackendError.
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = (base_url or settings.GEMINI_API_BASE_URL).rstrip("/")
        self._timeout = timeout or settings.GEMINI_REQUEST_TIMEOUT_SECONDS
        self._transport = transport

    async def probe_capability(self, credential: str, capability: CapabilityClassEnum) -> None:
        payload = {"contents": [{"parts": [{"text": _PROBE_PROMPTS[capability]}]}]}
        try:
            await self._generate_content(
                credential=credential,
                model=model_for_capability(capability),
                payload=payload,
            )
        except GenerationBackendError as exc:
            raise CredentialProbeFailure(capability.value, str(exc)) from exc

    async def generate_text(self, credential: str, request: TextGenerationRequest) -> str:
        payload: dict[str, Any] = {"contents": [{"parts": [{"text": request.prompt}]}]}
        generation_config: dict[str, Any] = {}
        if request.response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = request.response_schema
        if request.thinking_budget:
            generation_config["thinkingConfig"] = {"thinkingBudget": request.thinking_budget}
        if generation_config:
            payload["generationConfig"] = generation_config
        body = await self._generate_content(credential=credential, model=request.model, payload=payload)
        return _extract_text(body)

    async def generate_image(self, credential: str, request: ImageGenerationRequest) -> list[ResponsePart]:
        image_config: dict[str, Any] = {"aspectRatio": request.aspect_ratio}
        if request.image_size:
            image_config["imageSize"] = request.image_size
        payload = {
            "contents": [{"parts": [{"text": request.prompt}]}],
            "generationConfig": {"imageConfig": image_config},
        }
        body = await self._generate_content(credential=credential, model=request.model, payload=payload)
        return _extract_parts(body)

    async def analyze_audio_for_tempo(self, credential: str, request: AudioAnalysisRequest) -> str:
        payload = {
            "contents": [
                {
                    "parts": [
                        {"text": request.prompt},
                        {
                            "inlineData": {
                                "mimeType": request.mime_type,
                                "data": base64.b64encode(request.audio).decode("ascii"),
                            }
                        },
                    ]
                }
            ]
        }
        body = await self._generate_content(credential=credential, model=request.model, payload=payload)
        return _extract_text(body)

    async def _generate_content(self, *, credential: str, model: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}/models/{model}:generateContent"
        headers = {"x-goog-api-key": credential, "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.RequestError as exc:
            logger.warning("Gemini request failed", extra={"model": model, "error": type(exc).__name__})
            raise GenerationBackendError(f"Network error while calling Gemini: {exc}") from exc

        if response.status_code >= 400:
            logger.warning(
                "Gemini returned an error status",
                extra={"model": model, "status_code": response.status_code},
            )
            raise GenerationBackendError(
                f"Gemini call failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise GenerationBackendError("Gemini returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise GenerationBackendError("Gemini response must be a JSON object")
        return body
