from __future__ import annotations

import base64
import io
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional, TypeVar

from PIL import Image
from pydantic import TypeAdapter, ValidationError

from songcraft.db.enums import BlockTypeEnum
from songcraft.errors import (
    GenerationEmptyError,
    GenerationInvalidValueError,
    GenerationNoImageError,
    GenerationParseError,
)
from songcraft.llm.client import ResponsePart
from songcraft.schemas.project import SongBlock

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FIRST_INTEGER_RE = re.compile(r"\d+")
_SECTION_TAG_RE = re.compile(r"\[\s*([A-Za-z]+)")
_BLOCK_TYPES_BY_NAME = {block_type.value.lower(): block_type for block_type in BlockTypeEnum}


@dataclass(frozen=True)
class GeneratedImage:
    data: bytes
    mime_type: str
    width: int
    height: int

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"


@dataclass(frozen=True)
class StructureViolation:
    position: int
    block_type: BlockTypeEnum
    reason: str  # "missing" | "out_of_order"


def require_text(raw: Optional[str], *, label: str = "Generation") -> str:
    text = (raw or "").strip()
    if not text:
        raise GenerationEmptyError(f"{label} returned no text")
    return text


def parse_structured(raw: Optional[str], adapter: TypeAdapter[T], *, label: str = "Generation") -> T:
    """
    Parse a schema-constrained response.

    The whole payload is validated before anything is returned; one malformed entry
    rejects the entire result.
    """
    text = (raw or "").strip()
    if not text:
        raise GenerationParseError(f"{label} returned an empty structured response")
    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise GenerationParseError(f"{label} output is not valid JSON: {exc}") from exc
    try:
        value = adapter.validate_python(data)
    except ValidationError as exc:
        raise GenerationParseError(f"{label} output does not match the declared schema: {exc}") from exc
    if isinstance(value, list) and not value:
        raise GenerationEmptyError(f"{label} returned an empty list")
    return value


def _inspect_image_bytes(data: bytes) -> tuple[int, int, Optional[str]]:
    with Image.open(io.BytesIO(data)) as img:
        width, height = img.size
        fmt = img.format
        img.verify()
    return width, height, Image.MIME.get(fmt or "")


def extract_first_image(parts: Iterable[ResponsePart]) -> GeneratedImage:
    text_parts = 0
    for index, part in enumerate(parts):
        if not part.data:
            if part.text:
                text_parts += 1
            continue
        try:
            width, height, detected_mime = _inspect_image_bytes(part.data)
        except Exception:  # noqa: BLE001
            logger.warning(
                "Skipping response part that is not readable image data",
                extra={"part_index": index, "mime_type": part.mime_type},
            )
            continue
        mime_type = detected_mime or (part.mime_type or "image/png").split(";")[0].strip()
        return GeneratedImage(data=part.data, mime_type=mime_type, width=width, height=height)
    raise GenerationNoImageError(f"Image generation returned no image data ({text_parts} text part(s) only)")


def extract_tempo(raw: Optional[str], *, max_bpm: int) -> int:
    text = raw or ""
    match = _FIRST_INTEGER_RE.search(text)
    if not match:
        raise GenerationInvalidValueError(f"No tempo value found in response: {text.strip()[:80]!r}")
    bpm = int(match.group(0))
    if not 0 < bpm < max_bpm:
        raise GenerationInvalidValueError(f"Detected tempo {bpm} is outside the plausible range (0, {max_bpm})")
    return bpm


def section_tags(text: str) -> list[BlockTypeEnum]:
    found: list[BlockTypeEnum] = []
    for match in _SECTION_TAG_RE.finditer(text or ""):
        block_type = _BLOCK_TYPES_BY_NAME.get(match.group(1).lower())
        if block_type is not None:
            found.append(block_type)
    return found


def find_block_order_violations(text: str, structure: list[SongBlock]) -> list[StructureViolation]:
    """Compare section tags in generated lyrics against the requested block order."""
    found = section_tags(text)
    violations: list[StructureViolation] = []
    consumed: set[int] = set()
    cursor = 0
    for position, block in enumerate(structure):
        try:
            match_at = found.index(block.type, cursor)
        except ValueError:
            # only a tag no earlier block matched counts as reordered
            earlier = [i for i in range(cursor) if found[i] == block.type and i not in consumed]
            if earlier:
                consumed.add(earlier[0])
                reason = "out_of_order"
            else:
                reason = "missing"
            violations.append(StructureViolation(position=position, block_type=block.type, reason=reason))
            continue
        consumed.add(match_at)
        cursor = match_at + 1
    return violations
