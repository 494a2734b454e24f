"""Shared fixtures for engine and analysis tests."""

import json
import sys
from pathlib import Path

import pytest

FAKE_ENGINE = Path(__file__).parent / "fixtures" / "fake_engine.py"


@pytest.fixture
def fake_engine(tmp_path):
    """
    Factory returning an argv that launches the scripted fake engine.

    Usage:
        command = fake_engine({"positions": {...}})
    """
    counter = {"n": 0}

    def _make(script=None):
        counter["n"] += 1
        script_path = tmp_path / f"engine_script_{counter['n']}.json"
        script_path.write_text(json.dumps(script or {}), encoding="utf-8")
        return [sys.executable, str(FAKE_ENGINE), str(script_path)]

    return _make


@pytest.fixture
def command_log(tmp_path):
    """Path the fake engine appends received commands to."""
    return tmp_path / "commands.txt"
