from __future__ import annotations

import sys
import traceback
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from slotcal.civil_time import JST
from slotcal.fallback_analyzer import apply_fallback_corrections, create_fallback_analysis
from slotcal.planning.models import TaskAnalysis


@dataclass(frozen=True)
class ExpectedResult:
    title: str
    preferred_start: datetime | None
    duration_minutes: int | None


@dataclass(frozen=True)
class ProbeCase:
    case_id: str
    text: str
    expected_builder: Callable[[datetime], ExpectedResult]


def _at(base: datetime, *, days: int, hour: int, minute: int = 0) -> datetime:
    return (base + timedelta(days=days)).replace(hour=hour, minute=minute, second=0, microsecond=0)


def _build_cases() -> list[ProbeCase]:
    return [
        ProbeCase(
            case_id="start-only",
            text="9時からトレーニング",
            expected_builder=lambda now: ExpectedResult(
                title="トレーニング",
                preferred_start=_at(now, days=0, hour=9),
                duration_minutes=None,
            ),
        ),
        ProbeCase(
            case_id="start-end",
            text="午後3時から5時まで打ち合わせ",
            expected_builder=lambda now: ExpectedResult(
                title="打ち合わせ",
                preferred_start=_at(now, days=0, hour=15),
                duration_minutes=120,
            ),
        ),
        ProbeCase(
            case_id="duration-half",
            text="英語の勉強を1時間半",
            expected_builder=lambda _now: ExpectedResult(
                title="英語の勉強",
                preferred_start=None,
                duration_minutes=90,
            ),
        ),
        ProbeCase(
            case_id="day-after-tomorrow",
            text="明後日の夜7時からジムに行って筋トレ",
            expected_builder=lambda now: ExpectedResult(
                title="筋トレ",
                preferred_start=_at(now, days=2, hour=19),
                duration_minutes=None,
            ),
        ),
        ProbeCase(
            case_id="multi-task",
            text="瞑想をします それから着替えて職場に向かいます",
            expected_builder=lambda _now: ExpectedResult(
                title="瞑想 / 着替え・職場",
                preferred_start=None,
                duration_minutes=None,
            ),
        ),
        ProbeCase(
            case_id="errand",
            text="スーパーに行って牛乳を買います",
            expected_builder=lambda _now: ExpectedResult(
                title="牛乳",
                preferred_start=None,
                duration_minutes=None,
            ),
        ),
    ]


def _analyze(text: str, *, now: datetime, use_model: bool) -> TaskAnalysis:
    fallback = create_fallback_analysis(text, now=now, tz=JST)
    if not use_model:
        return fallback.analysis

    from slotcal.model_analyzer import analyze_with_local_model

    return apply_fallback_corrections(analyze_with_local_model(text, now=now, tz=JST), fallback)


def _format(analysis: TaskAnalysis) -> str:
    start = analysis.preferred_start_time.isoformat() if analysis.preferred_start_time else None
    return (
        f"title={analysis.title} "
        f"start={start} "
        f"duration={analysis.duration_minutes} "
        f"category={analysis.category}"
    )


def main() -> int:
    use_model = "--model" in sys.argv[1:]
    now_jst = datetime.now(JST).replace(second=0, microsecond=0)
    print(f"reference_time={now_jst.isoformat()} model={'on' if use_model else 'off'}")

    cases = _build_cases()
    passed = 0
    for case in cases:
        expected = case.expected_builder(now_jst)
        try:
            analysis = _analyze(case.text, now=now_jst, use_model=use_model)
        except Exception as exc:  # pragma: no cover - manual probe
            cause = exc.__cause__
            print(f"[FAIL] {case.case_id}: exception={exc}")
            if cause is not None:
                print(f"  cause: {type(cause).__name__}: {cause}")
                traceback.print_exception(cause)
            continue

        title_ok = analysis.title == expected.title
        start_ok = analysis.preferred_start_time == expected.preferred_start
        duration_ok = (
            expected.duration_minutes is None
            or analysis.duration_minutes == expected.duration_minutes
        )
        ok = title_ok and start_ok and duration_ok
        status = "PASS" if ok else "FAIL"
        if ok:
            passed += 1

        print(f"[{status}] {case.case_id}")
        print(f"  input: {case.text}")
        print(
            "  expected: "
            f"title={expected.title} "
            f"start={expected.preferred_start.isoformat() if expected.preferred_start else None} "
            f"duration={expected.duration_minutes}"
        )
        print(f"  actual:   {_format(analysis)}")

    total = len(cases)
    print(f"summary: passed={passed}/{total} failed={total - passed}")
    return 0 if passed == total else 1


if __name__ == "__main__":
    raise SystemExit(main())
