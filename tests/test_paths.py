from __future__ import annotations

from pathlib import Path

import pytest

from slotcal.paths import default_config_path, default_data_dir


def test_default_data_dir_prefers_appdata(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APPDATA", str(tmp_path))

    assert default_data_dir() == tmp_path / "SlotCal"
    assert default_config_path() == tmp_path / "SlotCal" / "config.toml"


def test_default_data_dir_without_appdata(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("APPDATA", raising=False)
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

    assert default_data_dir() == tmp_path / ".slotcal"
