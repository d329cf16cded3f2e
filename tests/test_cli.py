from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

import slotcal.commands.common as common_module
import slotcal.model_analyzer as model_analyzer
from slotcal.cli import app

runner = CliRunner()
NOW = "2026-02-14T08:00:00+09:00"


@pytest.fixture
def config_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    log_paths: list[Path] = []
    monkeypatch.setattr(
        common_module,
        "configure_logging",
        lambda log_path, level="INFO": log_paths.append(log_path),
    )
    path = tmp_path / "config.toml"
    path.write_text(f'data_dir = "{(tmp_path / "data").as_posix()}"\n', encoding="utf-8")
    return path


def _write_events(path: Path, items: list[dict[str, Any]]) -> Path:
    path.write_text(json.dumps({"items": items}, ensure_ascii=False), encoding="utf-8")
    return path


def _timed(event_id: str, start: str, end: str) -> dict[str, Any]:
    return {
        "id": event_id,
        "summary": event_id,
        "start": {"dateTime": start},
        "end": {"dateTime": end},
    }


def test_analyze_json(config_path: Path) -> None:
    result = runner.invoke(
        app,
        ["analyze", "--text", "9時からトレーニング", "--now", NOW, "--json", "--config", str(config_path)],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["source"] == "fallback"
    assert payload["analysis"]["title"] == "トレーニング"
    assert payload["analysis"]["duration_minutes"] == 60
    assert payload["analysis"]["preferred_start_time"] == "2026-02-14T09:00:00+09:00"
    assert payload["analysis"]["category"] == "exercise"


def test_analyze_text_output(config_path: Path) -> None:
    result = runner.invoke(
        app,
        ["analyze", "--text", "17時までにレポートを提出", "--now", NOW, "--config", str(config_path)],
    )

    assert result.exit_code == 0, result.output
    assert "deadline: 2/14(土) 17:00" in result.stdout


def test_schedule_json_includes_event_body(config_path: Path, tmp_path: Path) -> None:
    events = _write_events(
        tmp_path / "events.json",
        [_timed("会議", "2026-02-14T09:00:00+09:00", "2026-02-14T10:00:00+09:00")],
    )

    result = runner.invoke(
        app,
        [
            "schedule",
            "--text",
            "9時からトレーニング",
            "--events",
            str(events),
            "--now",
            NOW,
            "--json",
            "--config",
            str(config_path),
        ],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["result"] == {
        "slot_found": True,
        "start": "2026-02-14T10:00:00+09:00",
        "end": "2026-02-14T11:00:00+09:00",
        "reason": "nearby",
    }
    assert payload["event"]["summary"] == "トレーニング"
    assert payload["event"]["start"]["dateTime"] == "2026-02-14T10:00:00+09:00"
    assert "[AI-SCHEDULED]" in payload["event"]["description"]


def test_schedule_without_free_slot_exits_1(config_path: Path, tmp_path: Path) -> None:
    events = _write_events(
        tmp_path / "events.json",
        [_timed("出張", "2026-02-14T00:00:00+09:00", "2026-02-28T00:00:00+09:00")],
    )

    result = runner.invoke(
        app,
        [
            "schedule",
            "--text",
            "部屋の掃除",
            "--events",
            str(events),
            "--now",
            NOW,
            "--config",
            str(config_path),
        ],
    )

    assert result.exit_code == 1
    assert "scheduled:" not in result.stdout


def test_schedule_text_output(config_path: Path) -> None:
    result = runner.invoke(
        app,
        ["schedule", "--text", "明日の10時から会議", "--now", NOW, "--config", str(config_path)],
    )

    assert result.exit_code == 0, result.output
    assert "scheduled: 2/15(日) 10:00-11:00 reason=preferred duration=60m" in result.stdout


def test_model_failure_falls_back(config_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_model(text: str, **_: Any) -> Any:
        raise RuntimeError("transformers is unavailable for local task analysis.")

    monkeypatch.setattr(model_analyzer, "analyze_with_local_model", failing_model)

    result = runner.invoke(
        app,
        [
            "analyze",
            "--text",
            "英語の勉強を1時間半",
            "--now",
            NOW,
            "--model",
            "--json",
            "--config",
            str(config_path),
        ],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["source"] == "fallback"
    assert payload["analysis"]["duration_minutes"] == 90


def test_free_slots_json(config_path: Path, tmp_path: Path) -> None:
    events = _write_events(
        tmp_path / "events.json",
        [
            _timed("朝会", "2026-02-14T09:00:00+09:00", "2026-02-14T10:00:00+09:00"),
            {"id": "休日", "start": {"date": "2026-02-14"}, "end": {"date": "2026-02-15"}},
        ],
    )

    result = runner.invoke(
        app,
        ["free-slots", "--events", str(events), "--date", "2026-02-14", "--json", "--config", str(config_path)],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["slots"] == [
        {"start": "2026-02-14T08:00:00+09:00", "end": "2026-02-14T09:00:00+09:00", "duration_minutes": 60},
        {"start": "2026-02-14T10:00:00+09:00", "end": "2026-02-14T22:00:00+09:00", "duration_minutes": 720},
    ]


@pytest.mark.parametrize(
    "args",
    [
        ["analyze", "--text", "   "],
        ["analyze", "--text", "会議", "--now", "yesterday"],
        ["free-slots", "--events", "missing.json", "--date", "2026-02-14"],
        ["free-slots", "--events", "missing.json", "--date", "14/02/2026"],
        ["events", "--events", "missing.json"],
    ],
)
def test_bad_parameters_exit_2(config_path: Path, args: list[str]) -> None:
    result = runner.invoke(app, [*args, "--config", str(config_path)])

    assert result.exit_code == 2


def _day_events(tmp_path: Path) -> Path:
    standup = _timed("standup", "2026-02-14T07:00:00+09:00", "2026-02-14T07:30:00+09:00")
    standup["summary"] = "朝会"
    review = _timed("review", "2026-02-14T10:00:00+09:00", "2026-02-14T11:00:00+09:00")
    review["summary"] = "面談"
    review["description"] = "[AI-SCHEDULED] 自動で配置"
    weekly = _timed("weekly", "2026-02-16T09:00:00+09:00", "2026-02-16T10:00:00+09:00")
    weekly["summary"] = "定例"
    holiday = {
        "id": "holiday",
        "summary": "休日",
        "start": {"date": "2026-02-14"},
        "end": {"date": "2026-02-15"},
    }
    return _write_events(tmp_path / "events.json", [weekly, review, standup, holiday])


def test_events_json_groups_by_day(config_path: Path, tmp_path: Path) -> None:
    events_path = _day_events(tmp_path)

    result = runner.invoke(
        app,
        ["events", "--events", str(events_path), "--now", NOW, "--json", "--config", str(config_path)],
    )

    assert result.exit_code == 0, result.output
    days = json.loads(result.stdout)["days"]
    assert [day["date"] for day in days] == ["2026-02-14", "2026-02-16"]
    assert days[0]["label"] == "2/14(土)"
    assert days[0]["summary"] == "1件終了 ・ 残り2件"
    assert [event["id"] for event in days[0]["events"]] == ["holiday", "standup", "review"]
    assert [event["status"] for event in days[0]["events"]] == ["current", "past", "future"]
    assert days[0]["events"][0]["all_day"] is True
    assert days[0]["events"][2]["ai_scheduled"] is True
    assert days[0]["events"][2]["start"] == "2026-02-14T10:00:00+09:00"
    assert days[1]["label"] == "2/16(月)"
    assert days[1]["summary"] == "0件終了 ・ 残り1件"


def test_events_text_output(config_path: Path, tmp_path: Path) -> None:
    events_path = _day_events(tmp_path)

    result = runner.invoke(
        app,
        ["events", "--events", str(events_path), "--now", NOW, "--config", str(config_path)],
    )

    assert result.exit_code == 0, result.output
    lines = result.stdout.splitlines()
    assert lines[:4] == [
        "2/14(土)  1件終了 ・ 残り2件",
        "  終日 current 休日",
        "  07:00-07:30 past 朝会",
        "  10:00-11:00 future 面談 [AI]",
    ]
    assert lines[4] == "2/16(月)  0件終了 ・ 残り1件"


def test_events_file_with_malformed_start_exits_2(config_path: Path, tmp_path: Path) -> None:
    events_path = _write_events(
        tmp_path / "events.json",
        [{"id": "broken", "start": "2026-02-14", "end": "2026-02-15"}],
    )

    result = runner.invoke(
        app,
        ["free-slots", "--events", str(events_path), "--date", "2026-02-14", "--config", str(config_path)],
    )

    assert result.exit_code == 2
