"""Structured-output parser: raw LLM text -> validated pydantic shape.

This is the robustness boundary against non-deterministic LLM output.  The
parser tolerates the packaging models commonly wrap around JSON (markdown
fences, prose before and after, trailing commas) but never the content: a
missing key, wrong type, out-of-range score, unknown enum value, or truncated
object yields :class:`~nelson.errors.MalformedOutput` and no partial result.
"""

from __future__ import annotations

import json
import re
from enum import Enum

from pydantic import BaseModel, ValidationError

from nelson.errors import MalformedOutput
from nelson.schemas.medical import (
    DifferentialDiagnosis,
    MedicalContext,
    QueryClassification,
    SafetyAssessment,
    TreatmentPlan,
)

# Trailing commas before ] or }, as models often emit them
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


class ShapeTag(str, Enum):
    CLASSIFICATION = "classification"
    CONTEXT = "context"
    DIAGNOSIS = "diagnosis"
    TREATMENT = "treatment"
    SAFETY = "safety"


SHAPES: dict[ShapeTag, type[BaseModel]] = {
    ShapeTag.CLASSIFICATION: QueryClassification,
    ShapeTag.CONTEXT: MedicalContext,
    ShapeTag.DIAGNOSIS: DifferentialDiagnosis,
    ShapeTag.TREATMENT: TreatmentPlan,
    ShapeTag.SAFETY: SafetyAssessment,
}


class _DuplicateKeyError(ValueError):
    pass


def _reject_duplicates(pairs: list[tuple[str, object]]) -> dict:
    obj: dict = {}
    for key, value in pairs:
        if key in obj:
            raise _DuplicateKeyError(key)
        obj[key] = value
    return obj


_DECODER = json.JSONDecoder(object_pairs_hook=_reject_duplicates)


def _sanitise_json(raw: str) -> str:
    """Strips trailing commas before closing brackets/braces."""
    return _TRAILING_COMMA_RE.sub(r"\1", raw)


def _candidates(response: str) -> list[str]:
    """Returns the text regions worth scanning, fenced blocks first."""
    fenced = [block.strip() for block in _FENCE_RE.findall(response)]
    return fenced + [response]


def _span_end(text: str, start: int) -> int | None:
    """Returns the index just past the brace closing the one at *start*.

    String literals are skipped so braces inside them do not count.  Returns
    ``None`` when the object is never closed (truncated output).
    """
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index + 1
    return None


def _first_object(text: str) -> dict | None:
    """Decodes the first complete top-level JSON object in *text*.

    Objects nested inside a brace span that fails to decode are never
    returned on their own, so a truncated wrapper yields ``None``.

    Raises:
        _DuplicateKeyError: when the object repeats a key.
    """
    position = text.find("{")
    while position != -1:
        try:
            obj, _ = _DECODER.raw_decode(text, position)
        except json.JSONDecodeError:
            end = _span_end(text, position)
            if end is None:
                return None
            position = text.find("{", end)
            continue
        return obj
    return None


def extract_json_object(response: str) -> dict | None:
    """Extracts the JSON object embedded in a model response, or ``None``."""
    for candidate in _candidates(response):
        obj = _first_object(_sanitise_json(candidate))
        if obj is not None:
            return obj
    return None


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "<root>"
    return f"{location}: {first['msg']}"


def parse(raw: str, shape: ShapeTag, stage: str | None = None) -> BaseModel:
    """Parses *raw* into the model registered for *shape*.

    Args:
        raw:   Raw text returned by the LLM service.
        shape: Which structural contract the output must satisfy.
        stage: Stage name attached to any raised error.

    Returns:
        A fully validated, frozen pydantic model instance.

    Raises:
        MalformedOutput: on unparsable JSON, duplicate keys, missing keys,
            wrong types, out-of-range values, or unknown enum values.
    """
    shape = ShapeTag(shape)
    if not raw or not raw.strip():
        raise MalformedOutput(shape.value, raw, "empty response", stage=stage)

    try:
        obj = extract_json_object(raw)
    except _DuplicateKeyError as exc:
        raise MalformedOutput(shape.value, raw, f"duplicate key '{exc}'", stage=stage) from exc
    if obj is None:
        raise MalformedOutput(shape.value, raw, "no complete JSON object found", stage=stage)

    try:
        return SHAPES[shape].model_validate(obj)
    except ValidationError as exc:
        raise MalformedOutput(shape.value, raw, _describe(exc), stage=stage) from exc
