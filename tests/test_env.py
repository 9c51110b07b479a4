"""
Tests for the .env credential loader.

Tests cover:
- key=value parsing with comments, blank lines and malformed lines
- Quoted values and the ``export`` prefix
- Explicit environment variables always win
- Only the first existing file is loaded, and its path is returned
- Unreadable files are skipped
- load_default_env() picks up the working directory
- first_env() precedence
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

import pytest

from forgeai.env import first_env, load_default_env, load_env_if_present

_KEYS = ("FORGE_TEST_A", "FORGE_TEST_B", "FORGE_TEST_C", "FORGE_TEST_SET", "FORGE_TEST_HIDDEN")


@pytest.fixture(autouse=True)
def _clean_env() -> Iterator[None]:
    yield
    for key in _KEYS:
        os.environ.pop(key, None)


def _write(path: Path, body: str) -> Path:
    path.write_text(body)
    return path


class TestParsing:
    def test_plain_pairs(self, tmp_path: Path) -> None:
        env = _write(tmp_path / ".env", "FORGE_TEST_A=hello\nFORGE_TEST_B=world\n")

        assert load_env_if_present([env]) == env
        assert os.environ["FORGE_TEST_A"] == "hello"
        assert os.environ["FORGE_TEST_B"] == "world"

    def test_comments_blank_and_malformed_lines(self, tmp_path: Path) -> None:
        env = _write(
            tmp_path / ".env",
            "# FORGE_TEST_HIDDEN=nope\n\nno equals here\n=orphan\nFORGE_TEST_A=kept\n",
        )
        load_env_if_present([env])

        assert os.environ["FORGE_TEST_A"] == "kept"
        assert "FORGE_TEST_HIDDEN" not in os.environ

    @pytest.mark.parametrize(
        "line, expected",
        [
            ('FORGE_TEST_A="quoted value"', "quoted value"),
            ("FORGE_TEST_A='single'", "single"),
            ("FORGE_TEST_A=a=b=c", "a=b=c"),
            ("  FORGE_TEST_A = spaced  ", "spaced"),
            ("FORGE_TEST_A=", ""),
            ("export FORGE_TEST_A=exported", "exported"),
        ],
    )
    def test_value_forms(self, tmp_path: Path, line: str, expected: str) -> None:
        load_env_if_present([_write(tmp_path / ".env", line + "\n")])
        assert os.environ["FORGE_TEST_A"] == expected


class TestPrecedence:
    def test_existing_variables_not_overwritten(self, tmp_path: Path) -> None:
        os.environ["FORGE_TEST_SET"] = "explicit"
        load_env_if_present([_write(tmp_path / ".env", "FORGE_TEST_SET=from_file\n")])
        assert os.environ["FORGE_TEST_SET"] == "explicit"

    def test_first_existing_file_only(self, tmp_path: Path) -> None:
        missing = tmp_path / "missing.env"
        first = _write(tmp_path / "first.env", "FORGE_TEST_A=first\n")
        second = _write(tmp_path / "second.env", "FORGE_TEST_A=second\nFORGE_TEST_C=second\n")

        assert load_env_if_present([missing, tmp_path, first, second]) == first
        assert os.environ["FORGE_TEST_A"] == "first"
        assert "FORGE_TEST_C" not in os.environ

    def test_nothing_found(self, tmp_path: Path) -> None:
        assert load_env_if_present([tmp_path / "absent.env"]) is None
        assert load_env_if_present([]) is None

    def test_undecodable_file_skipped(self, tmp_path: Path) -> None:
        broken = tmp_path / "broken.env"
        broken.write_bytes(b"\xff\xfe\xfa FORGE_TEST_B=x\n")
        fallback = _write(tmp_path / "fallback.env", "FORGE_TEST_A=fallback\n")

        assert load_env_if_present([broken, fallback]) == fallback
        assert os.environ["FORGE_TEST_A"] == "fallback"


class TestDefaults:
    def test_loads_from_working_directory(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        _write(tmp_path / ".env", "FORGE_TEST_B=from_cwd\n")

        load_default_env()

        assert os.environ["FORGE_TEST_B"] == "from_cwd"

    def test_first_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FORGE_TEST_B", "")
        monkeypatch.setenv("FORGE_TEST_C", "third")
        assert first_env("FORGE_TEST_A", "FORGE_TEST_B", "FORGE_TEST_C") == "third"
        assert first_env("FORGE_TEST_A") is None
