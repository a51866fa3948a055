"""Tests covering the command line entry point and its helpers."""

from __future__ import annotations

import io
import json
import os
from pathlib import Path
from typing import Any

import pytest

from chatstudio import app
from chatstudio.ai.client import ClientSettings, CompletionClient
from chatstudio.errors import ChatStudioError
from chatstudio.services.settings import Settings, SettingsStore
from tests.helpers import make_openai_stub


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("CHATSTUDIO_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CHATSTUDIO_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("CHATSTUDIO_TELEMETRY", "off")
    monkeypatch.setattr(app.logging_utils, "_ACTIVE", None)


def _stub_client(monkeypatch: pytest.MonkeyPatch, **stub_kwargs: Any):
    stub = make_openai_stub(**stub_kwargs)

    def _build(settings: Settings) -> CompletionClient:
        return CompletionClient(ClientSettings.from_settings(settings), client=stub)

    monkeypatch.setattr(app, "_build_client", _build)
    return stub


def test_coerce_cli_overrides_uses_field_types() -> None:
    overrides = app._coerce_cli_overrides(
        [
            "model=gpt-4o",
            "single_response=yes",
            "max_tokens=none",
            "line_wrap_limit=120",
            "temperature=0.1",
            'command_prompts={"explain": "Explain briefly:"}',
            "organization=null",
        ]
    )

    assert overrides == {
        "model": "gpt-4o",
        "single_response": True,
        "max_tokens": None,
        "line_wrap_limit": 120,
        "temperature": 0.1,
        "command_prompts": {"explain": "Explain briefly:"},
        "organization": "null",
    }


def test_coerce_cli_overrides_keeps_string_whitespace() -> None:
    assert app._coerce_cli_overrides(["line_break=\r\n"]) == {"line_break": "\r\n"}
    assert app._coerce_cli_overrides([r"line_break=\r\n"]) == {"line_break": "\r\n"}
    assert app._coerce_cli_overrides(["code_review_prompt=  Review:  "]) == {"code_review_prompt": "  Review:  "}
    assert app._coerce_cli_overrides(["line_wrap_limit= 80 "]) == {"line_wrap_limit": 80}


@pytest.mark.parametrize("entry", ["model", "=value", "colour=blue", "single_response=maybe", "command_prompts={"])
def test_coerce_cli_overrides_rejects_invalid_entries(entry: str) -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides([entry])


def test_parse_selection() -> None:
    assert app._parse_selection(None, 40) == (0, 40)
    assert app._parse_selection("3:7", 40) == (3, 7)
    assert app._parse_selection(":5", 40) == (0, 5)
    assert app._parse_selection("12:", 40) == (12, 40)
    with pytest.raises(ChatStudioError):
        app._parse_selection("12", 40)
    with pytest.raises(ChatStudioError):
        app._parse_selection("a:b", 40)


def test_dump_settings_redacts_api_key(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    buffer = io.StringIO()

    app._dump_settings(Settings(api_key="sk-1234567890"), store, overrides={"model": "x"}, stream=buffer)

    payload = json.loads(buffer.getvalue())
    assert payload["settings"]["api_key"] == "sk*********90"
    assert payload["meta"]["path"] == str(store.path)
    assert payload["meta"]["cli_overrides"] == ["model"]


def test_main_dump_settings_applies_overrides(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    settings_path = tmp_path / "settings.json"

    exit_code = app.main(["--settings-path", str(settings_path), "--set", "model=gpt-4o", "--dump-settings"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["settings"]["model"] == "gpt-4o"


def test_main_rejects_invalid_override(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = app.main(["--settings-path", str(tmp_path / "s.json"), "--set", "bogus=1", "--dump-settings"])

    assert exit_code == 2
    assert "Unknown setting 'bogus'" in capsys.readouterr().err


def test_main_run_dry_run_prints_updated_document(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    source = tmp_path / "calc.py"
    source.write_text("def add(a, b):\n    return a - b\n", encoding="utf-8")
    stub = _stub_client(monkeypatch, chunks=["def add(a, b):\n", "    return a + b"])

    exit_code = app.main(
        [
            "--settings-path",
            str(tmp_path / "settings.json"),
            "--set",
            "api_key=sk-test",
            "run",
            "optimize",
            str(source),
            "--selection",
            ":31",
            "--dry-run",
        ]
    )

    assert exit_code == 0
    assert capsys.readouterr().out == "def add(a, b):\n    return a + b\n"
    assert source.read_text(encoding="utf-8") == "def add(a, b):\n    return a - b\n"
    assert stub.chat.completions.calls[0]["model"] == Settings().model


def test_main_run_saves_document(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = tmp_path / "Program.cs"
    source.write_text("int x = 1;\n", encoding="utf-8")
    _stub_client(monkeypatch, chunks=["Declares x."])

    exit_code = app.main(
        ["--settings-path", str(tmp_path / "settings.json"), "--set", "api_key=sk-test", "run", "explain", str(source)]
    )

    assert exit_code == 0
    assert source.read_text(encoding="utf-8") == "// Declares x.\nint x = 1;\n"


def test_main_run_without_api_key_fails(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "calc.py"
    source.write_text("x = 1\n", encoding="utf-8")

    exit_code = app.main(["--settings-path", str(tmp_path / "settings.json"), "run", "explain", str(source)])

    assert exit_code == 1
    assert "API key" in capsys.readouterr().err


def test_main_models_lists_endpoint_models(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    _stub_client(monkeypatch, models=("gpt-4o", "gpt-4o-mini"))

    exit_code = app.main(["--settings-path", str(tmp_path / "settings.json"), "models"])

    assert exit_code == 0
    assert capsys.readouterr().out.splitlines() == ["gpt-4o", "gpt-4o-mini"]


def test_main_without_action_prints_help(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert app.main(["--settings-path", str(tmp_path / "settings.json")]) == 2
    assert "usage" in capsys.readouterr().out
