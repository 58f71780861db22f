"""Reply Parsing - Pure functions turning LLM text into validated data.

Every parser returns either ``Ok(value)`` or ``Err(reason)`` so that callers
decide on a fallback explicitly instead of catching decode errors.

All functions are pure: same input always produces same output, no side effects.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Generic, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ValidationError


logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

_REASONING_RE = re.compile(r"<reasoning>.*?</reasoning>", re.DOTALL | re.IGNORECASE)
_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)

_OPENERS = {"object": "{", "array": "["}


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful parse."""

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed parse with a human-readable reason."""

    reason: str

    @property
    def ok(self) -> bool:
        return False


ParseResult = Union[Ok[T], Err]


def _strip_preamble(text: str) -> str:
    """Drop reasoning blocks and unwrap a fenced code block if present."""
    text = _REASONING_RE.sub("", text)
    fenced = _FENCE_RE.search(text)
    if fenced:
        return fenced.group(1)
    return text


def extract_json(
    text: Optional[str],
    expect: Optional[Literal["object", "array"]] = None,
) -> ParseResult[Any]:
    """Find and decode the JSON payload inside free text.

    Any preamble before the first opening bracket and any trailing text after
    the payload are ignored.

    Args:
        text: Raw model reply
        expect: "object" or "array" to require that shape, None for either

    Returns:
        Ok(decoded value) or Err(reason)
    """
    if not text or not text.strip():
        return Err("empty reply")

    body = _strip_preamble(text)
    openers = [_OPENERS[expect]] if expect else ["{", "["]
    positions = sorted(i for i, ch in enumerate(body) if ch in openers)
    if not positions:
        return Err(f"no JSON {expect or 'value'} found in reply")

    decoder = json.JSONDecoder()
    for pos in positions:
        try:
            value, _ = decoder.raw_decode(body, pos)
        except json.JSONDecodeError:
            continue
        if expect == "object" and not isinstance(value, dict):
            continue
        if expect == "array" and not isinstance(value, list):
            continue
        return Ok(value)

    return Err("reply contains no decodable JSON")


def parse_reply(text: Optional[str], model: type[M]) -> ParseResult[M]:
    """Decode a JSON object from the reply and validate it against ``model``.

    Missing required keys or wrongly typed values give Err.
    """
    result = extract_json(text, expect="object")
    if isinstance(result, Err):
        return result
    try:
        return Ok(model.model_validate(result.value))
    except ValidationError as e:
        return Err(f"reply does not match {model.__name__}: {e.error_count()} error(s)")


def parse_reply_list(text: Optional[str], model: type[M]) -> ParseResult[list[M]]:
    """Decode a JSON array and validate each item against ``model``.

    Items that fail validation are dropped; a reply that is not an array at
    all gives Err.
    """
    result = extract_json(text, expect="array")
    if isinstance(result, Err):
        return result

    items: list[M] = []
    for raw in result.value:
        try:
            items.append(model.model_validate(raw))
        except ValidationError:
            logger.warning("Dropping invalid %s item: %r", model.__name__, raw)
    return Ok(items)
