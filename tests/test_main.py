# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for the command line entry point.
"""

from pathlib import Path

import pytest
import yaml

from voicescroll.main import main

NUMBERED = " ".join(f"w{i}" for i in range(100))


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep config reads and writes inside a temporary directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def write_replay(path: Path, data: dict) -> Path:
    path.write_text(yaml.dump(data), encoding="utf-8")
    return path


class TestReplay:
    """--replay runs a recorded session against a synthetic clock."""

    def test_prints_highlight_progress(self, isolated_cwd: Path, capsys) -> None:
        replay_path = write_replay(isolated_cwd / "session.yaml", {
            "script": NUMBERED,
            "events": [
                {"at": 0.1, "text": "w4 w5 w6 w7 w8 w9"},
                {"at": 0.2, "text": "w4 w5 w6 w7 w8 w9 w10"},
            ],
        })

        assert main(["--replay", str(replay_path)]) == 0
        out = capsys.readouterr().out
        assert ">w13<" in out
        assert "confirmed word 9" in out

    def test_script_option_overrides_recording(self, isolated_cwd: Path, capsys) -> None:
        script_path = isolated_cwd / "talk.txt"
        script_path.write_text(NUMBERED, encoding="utf-8")
        replay_path = write_replay(isolated_cwd / "session.yaml", {
            "events": [
                {"at": 0.1, "text": "w4 w5 w6 w7 w8 w9"},
                {"at": 0.2, "text": "w4 w5 w6 w7 w8 w9 w10"},
            ],
        })

        assert main(["--replay", str(replay_path), "--script", str(script_path)]) == 0
        assert "confirmed word 9" in capsys.readouterr().out

    def test_missing_script(self, isolated_cwd: Path, capsys) -> None:
        replay_path = write_replay(isolated_cwd / "session.yaml", {"events": []})
        assert main(["--replay", str(replay_path)]) == 1
        assert "no script" in capsys.readouterr().err

    def test_invalid_replay(self, isolated_cwd: Path, capsys) -> None:
        replay_path = write_replay(isolated_cwd / "session.yaml", {"events": [{"text": "x"}]})
        assert main(["--replay", str(replay_path)]) == 1
        assert "Event 0" in capsys.readouterr().err


class TestCommands:
    """One-shot commands that exit without prompting."""

    def test_save_config(self, isolated_cwd: Path) -> None:
        assert main(["--save-config", "--wpm", "180", "--chunk-ms", "50"]) == 0

        saved = yaml.safe_load((isolated_cwd / ".voicescroll.yaml").read_text(encoding="utf-8"))
        assert saved["display"]["scroll_speed"] == 180
        assert saved["chunk_ms"] == 50
        assert saved["transcription"]["provider"] == "vosk"

    def test_list_models(self, capsys) -> None:
        assert main(["--list-models"]) == 0
        assert "vosk-en-us-small" in capsys.readouterr().out

    def test_unknown_model_download(self, capsys) -> None:
        assert main(["--download-model", "--model-id", "vosk-klingon"]) == 1
        assert "Unknown Vosk model" in capsys.readouterr().err

    def test_live_mode_needs_script(self) -> None:
        with pytest.raises(SystemExit):
            main([])
