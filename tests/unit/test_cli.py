"""Unit tests for the command line entrypoint."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from hr_airdrop_orchestrator.orchestrator import main as main_module


@pytest.fixture
def cli_env(
    clean_env: None, keypair_path: Path, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("AIRDROP_KEYPAIR_PATH", str(keypair_path))
    monkeypatch.setattr(main_module, "configure_logging", lambda *_a, **_k: None)


def test_keypair_command_creates_and_prints_public_key(
    cli_env: None, keypair_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert main_module.main(["keypair"]) == 0
    first = capsys.readouterr().out.strip()

    assert keypair_path.exists()
    assert len(json.loads(keypair_path.read_text())) == 64

    assert main_module.main(["keypair"]) == 0
    assert capsys.readouterr().out.strip() == first


def test_bad_keypair_file_exits_with_error(
    cli_env: None, keypair_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    keypair_path.write_text("[1, 2]")

    assert main_module.main(["keypair"]) == 1
    assert "Error:" in capsys.readouterr().err


def test_configuration_error_exits_with_2(
    cli_env: None, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("AIRDROP_PORT", "abc")

    assert main_module.main(["keypair"]) == 2
    assert "Configuration error" in capsys.readouterr().err


def test_command_is_required() -> None:
    with pytest.raises(SystemExit):
        main_module.main([])


def test_serve_passes_bind_options(cli_env: None, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, object]] = []
    monkeypatch.setattr(main_module.uvicorn, "run", lambda app, **kwargs: calls.append(kwargs))

    assert main_module.main(["serve", "--port", "9000"]) == 0

    assert calls == [{"host": "127.0.0.1", "port": 9000, "log_config": None}]
