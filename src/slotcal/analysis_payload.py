from __future__ import annotations

import json
import re
from datetime import datetime, tzinfo
from typing import Any

from .civil_time import JST, parse_instant
from .fallback_analyzer import normalize_category
from .planning.models import MAX_DURATION_MINUTES, TASK_PRIORITIES, TaskAnalysis, TaskPriority

DEFAULT_DURATION_MINUTES = 30


def analysis_from_payload(
    payload: dict[str, Any] | None,
    *,
    input_text: str,
    tz: tzinfo = JST,
) -> TaskAnalysis:
    """Build a TaskAnalysis from a model's JSON object, filling gaps with defaults."""
    if payload is None:
        raise RuntimeError("Model output is not valid JSON object text.")

    title_raw = payload.get("title")
    title = title_raw.strip() if isinstance(title_raw, str) and title_raw.strip() else input_text
    description_raw = payload.get("description")
    description = description_raw.strip() if isinstance(description_raw, str) else ""

    category_raw = payload.get("category")
    return TaskAnalysis(
        title=title,
        description=description or input_text,
        duration_minutes=_parse_duration(payload.get("durationMinutes")),
        deadline=_parse_optional_instant(payload.get("deadline"), tz=tz),
        preferred_start_time=_parse_optional_instant(payload.get("preferredStartTime"), tz=tz),
        category=normalize_category(category_raw) if isinstance(category_raw, str) else "other",
        priority=_parse_priority(payload.get("priority")),
    )


def json_object_from_text(text: str) -> dict[str, Any] | None:
    for candidate in _json_candidates_from_generation(text):
        parsed = _try_parse_json_object(candidate)
        if parsed is not None:
            return parsed

        scanned = _scan_first_json_object(candidate)
        if scanned is not None:
            return scanned
    return None


def _parse_duration(value: Any) -> int:
    if isinstance(value, bool):
        return DEFAULT_DURATION_MINUTES
    if isinstance(value, (int, float)):
        minutes = int(value)
    elif isinstance(value, str):
        match = re.match(r"\s*(\d+)", value)
        if match is None:
            return DEFAULT_DURATION_MINUTES
        minutes = int(match.group(1))
    else:
        return DEFAULT_DURATION_MINUTES
    return minutes if 0 < minutes <= MAX_DURATION_MINUTES else DEFAULT_DURATION_MINUTES


def _parse_priority(value: Any) -> TaskPriority:
    if isinstance(value, str):
        normalized = value.strip().lower()
        for priority in TASK_PRIORITIES:
            if priority == normalized:
                return priority
    return "medium"


def _parse_optional_instant(value: Any, *, tz: tzinfo) -> datetime | None:
    if not isinstance(value, str):
        return None
    return parse_instant(value, tz=tz)


def _json_candidates_from_generation(text: str) -> list[str]:
    stripped = text.strip()
    if not stripped:
        return []

    candidates: list[str] = []

    def add(value: str) -> None:
        normalized = value.strip()
        if normalized and normalized not in candidates:
            candidates.append(normalized)

    think_end_matches = list(re.finditer(r"</think>", stripped, flags=re.IGNORECASE))
    if think_end_matches:
        # Reasoning models put the final answer after </think>.
        add(stripped[think_end_matches[-1].end() :])

    answer_matches = list(
        re.finditer(r"<answer>(.*?)</answer>", stripped, flags=re.IGNORECASE | re.DOTALL)
    )
    if answer_matches:
        add(answer_matches[-1].group(1))

    fence_matches = list(re.finditer(r"```(?:json)?\s*(.*?)```", stripped, flags=re.DOTALL))
    if fence_matches:
        add(fence_matches[-1].group(1))

    add(re.sub(r"<think>.*?</think>", "", stripped, flags=re.IGNORECASE | re.DOTALL))
    add(stripped)
    return candidates


def _scan_first_json_object(text: str) -> dict[str, Any] | None:
    decoder = json.JSONDecoder()
    for index, char in enumerate(text):
        if char != "{":
            continue
        try:
            value, _ = decoder.raw_decode(text[index:])
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
    return None


def _try_parse_json_object(text: str) -> dict[str, Any] | None:
    payload = _try_json_loads_object(text)
    if payload is not None:
        return payload

    repaired_text = _lightweight_json_repair(text)
    if repaired_text == text:
        return None
    return _try_json_loads_object(repaired_text)


def _try_json_loads_object(text: str) -> dict[str, Any] | None:
    try:
        payload: Any = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def _lightweight_json_repair(text: str) -> str:
    repaired = text.strip()
    repaired = re.sub(
        r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:",
        r'\1"\2":',
        repaired,
    )
    repaired = re.sub(r",\s*([}\]])", r"\1", repaired)
    return repaired
