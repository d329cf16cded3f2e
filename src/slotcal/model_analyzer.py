from __future__ import annotations

import logging
import os
from contextlib import suppress
from datetime import datetime, tzinfo
from importlib import import_module, util
from threading import Lock
from typing import Any

from .analysis_payload import analysis_from_payload, json_object_from_text
from .civil_time import JST, format_date_full, format_time, to_local
from .fallback_analyzer import normalize_text
from .planning.models import TaskAnalysis

logger = logging.getLogger(__name__)

DEFAULT_MODEL_ID = "LiquidAI/LFM2.5-1.2B-Instruct"


def _optional_import(module_name: str) -> Any | None:
    if util.find_spec(module_name) is None:
        return None
    try:
        return import_module(module_name)
    except Exception:
        return None


transformers = _optional_import("transformers")
torch = _optional_import("torch")

_pipeline_lock = Lock()
_pipeline_cache: dict[str, Any] = {}
_pipeline_failed_models: set[str] = set()


def analyze_with_local_model(
    text: str,
    *,
    now: datetime | None = None,
    tz: tzinfo = JST,
    model_id: str | None = None,
    max_new_tokens: int | None = None,
) -> TaskAnalysis:
    """Ask an on-device text-generation model for a task analysis.

    Raises RuntimeError when the model is unavailable or its output cannot be
    turned into an analysis; callers fall back to the rule-based analyzer.
    """
    normalized = normalize_text(text)
    if not normalized:
        raise ValueError("Input is empty.")

    reference_time = to_local(now or datetime.now(tz), tz=tz)
    selected_model_id = model_id.strip() if model_id and model_id.strip() else _read_model_id()
    requested_max_new_tokens = (
        _read_max_new_tokens()
        if max_new_tokens is None
        else _normalize_max_new_tokens(max_new_tokens)
    )

    generated = _generate_analysis_response(
        query_text=normalized,
        reference_time=reference_time,
        max_new_tokens=requested_max_new_tokens,
        seed=_read_seed(),
        model_id=selected_model_id,
    )
    payload = json_object_from_text(generated)
    return analysis_from_payload(payload, input_text=normalized, tz=tz)


def _generate_analysis_response(
    *,
    query_text: str,
    reference_time: datetime,
    max_new_tokens: int,
    seed: int,
    model_id: str,
) -> str:
    pipe = _transformers_pipeline(model_id=model_id)
    messages = [
        {"role": "system", "content": _system_prompt(reference_time=reference_time)},
        {"role": "user", "content": f"入力: {query_text}"},
    ]
    prompt = _render_chat_prompt(pipe=pipe, messages=messages)

    if torch is not None:
        manual_seed = getattr(torch, "manual_seed", None)
        if callable(manual_seed):
            manual_seed(seed)

    generation_kwargs: dict[str, Any] = {"max_new_tokens": max_new_tokens, "do_sample": False}
    tokenizer = getattr(pipe, "tokenizer", None)
    eos_token_id = getattr(tokenizer, "eos_token_id", None)
    if isinstance(eos_token_id, int):
        generation_kwargs["eos_token_id"] = eos_token_id
        generation_kwargs["pad_token_id"] = eos_token_id

    try:
        outputs = pipe(prompt, return_full_text=False, **generation_kwargs)
    except TypeError:
        # Older pipelines reject return_full_text.
        try:
            outputs = pipe(prompt, **generation_kwargs)
        except Exception as exc:
            raise RuntimeError("Local model generation via transformers failed.") from exc
    except Exception as exc:
        raise RuntimeError("Local model generation via transformers failed.") from exc

    text = _extract_generated_text(outputs)
    if not text.strip():
        raise RuntimeError("Local model generation returned empty text.")
    logger.debug("Local model output: %s", text)
    return text


def _system_prompt(*, reference_time: datetime) -> str:
    reference_date = format_date_full(reference_time, tz=reference_time.tzinfo or JST)
    reference_clock = format_time(reference_time, tz=reference_time.tzinfo or JST)
    offset = reference_time.isoformat()[-6:]
    return (
        "あなたはタスク分析AIです。ユーザーが入力したタスクを分析し、JSONで返してください。\n"
        f"現在: {reference_date} {reference_clock} (UTC{offset})\n"
        "以下のキーを持つJSONオブジェクトを1つだけ返してください（コードブロックなし）:\n"
        '{"title": "タスクの簡潔なタイトル", "description": "補足", '
        '"durationMinutes": 所要時間（分・整数）, "priority": "high|medium|low", '
        '"deadline": "ISO 8601 または null", "preferredStartTime": "ISO 8601 または null", '
        '"category": "仕事/勉強/運動/家事/買い物/その他 のいずれか"}\n'
        "ルール:\n"
        "- 「9時からトレーニング」→ preferredStartTime を 9:00 に設定。deadline は null。\n"
        "- 「〜時までに」→ deadline に設定。preferredStartTime は null。\n"
        "- 所要時間は常識的に推定すること（トレーニング→60分、買い物→30分、会議→60分など）。\n"
        "- 午前/午後の指定がない1〜11時は午前として扱う。「午後」「夜」「夕方」または13時以上のみ午後。\n"
        f"- 日時には必ずタイムゾーンオフセット {offset} を付けること。"
    )


def _render_chat_prompt(*, pipe: Any, messages: list[dict[str, str]]) -> str:
    tokenizer = getattr(pipe, "tokenizer", None)
    apply_chat_template = getattr(tokenizer, "apply_chat_template", None)
    if callable(apply_chat_template):
        try:
            rendered = apply_chat_template(messages, tokenize=False, add_generation_prompt=True)
            if isinstance(rendered, str) and rendered.strip():
                return rendered
        except Exception:
            logger.debug("Chat template rendering failed; using plain prompt", exc_info=True)

    lines = [f"{msg.get('role', 'user').upper()}: {msg.get('content', '')}" for msg in messages]
    lines.append("ASSISTANT:")
    return "\n".join(lines)


def _extract_generated_text(outputs: Any) -> str:
    if isinstance(outputs, list) and outputs:
        first = outputs[0]
        if isinstance(first, dict):
            generated = first.get("generated_text") or first.get("text")
            if isinstance(generated, str):
                return generated
            if isinstance(generated, list) and generated:
                last = generated[-1]
                if isinstance(last, dict) and isinstance(last.get("content"), str):
                    return last["content"]
        if isinstance(first, str):
            return first
    if isinstance(outputs, dict):
        generated = outputs.get("generated_text") or outputs.get("text")
        if isinstance(generated, str):
            return generated
    raise RuntimeError("Local model generation returned unexpected output type.")


def _transformers_pipeline(*, model_id: str) -> Any:
    if transformers is None:
        raise RuntimeError("transformers is unavailable for local task analysis.")

    with _pipeline_lock:
        cached = _pipeline_cache.get(model_id)
        if cached is not None:
            return cached
        if model_id in _pipeline_failed_models:
            raise RuntimeError(f"Local model initialization previously failed: {model_id}")

        pipeline_builder = getattr(transformers, "pipeline", None)
        if pipeline_builder is None:
            raise RuntimeError("transformers.pipeline is unavailable.")

        allow_remote_code = _read_env_bool("SLOTCAL_ALLOW_REMOTE_CODE", default=False)
        pipeline_kwargs: dict[str, Any] = {
            "task": "text-generation",
            "model": model_id,
            "tokenizer": model_id,
            "trust_remote_code": allow_remote_code,
        }
        dtype_name = os.environ.get("SLOTCAL_LOCAL_TORCH_DTYPE", "").strip() or "float32"
        if torch is not None:
            dtype = getattr(torch, dtype_name, None)
            if dtype is not None:
                pipeline_kwargs["model_kwargs"] = {"dtype": dtype}

        if _read_device_mode() == "auto":
            pipeline_kwargs["device_map"] = "auto"
        else:
            pipeline_kwargs["device"] = -1

        try:
            pipe = pipeline_builder(**pipeline_kwargs)
        except Exception as exc:
            _pipeline_failed_models.add(model_id)
            if not allow_remote_code:
                raise RuntimeError(
                    "Failed to initialize local transformers model: "
                    f"{model_id}. If this model requires remote code, set "
                    "SLOTCAL_ALLOW_REMOTE_CODE=true explicitly."
                ) from exc
            raise RuntimeError(f"Failed to initialize local transformers model: {model_id}") from exc

        generation_config = getattr(getattr(pipe, "model", None), "generation_config", None)
        if generation_config is not None and getattr(generation_config, "max_length", None) == 20:
            with suppress(Exception):
                generation_config.max_length = None

        logger.info("Loaded local analysis model %s", model_id)
        _pipeline_cache[model_id] = pipe
        return pipe


def _read_model_id() -> str:
    model_id = os.environ.get("SLOTCAL_LOCAL_MODEL", "").strip()
    return model_id or DEFAULT_MODEL_ID


def _read_max_new_tokens() -> int:
    raw = os.environ.get("SLOTCAL_LOCAL_MAX_NEW_TOKENS", "").strip()
    if not raw:
        return 320
    try:
        value = int(raw)
    except ValueError:
        return 320
    return _normalize_max_new_tokens(value)


def _normalize_max_new_tokens(value: int) -> int:
    return min(max(value, 64), 4096)


def _read_seed() -> int:
    raw = os.environ.get("SLOTCAL_LOCAL_SEED", "").strip()
    try:
        return int(raw) if raw else 42
    except ValueError:
        return 42


def _read_device_mode() -> str:
    value = os.environ.get("SLOTCAL_LOCAL_DEVICE", "").strip().lower()
    if value in {"auto", "cpu"}:
        return value
    return "cpu"


def _read_env_bool(name: str, *, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    return default
