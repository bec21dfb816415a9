"""
Shared fixtures: an isolated service configuration and fake renderer binaries.

The fake renderers are small shell scripts that record their argv and behave
like wkhtmltopdf would in the scenario under test.
"""

import shlex
import stat
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from htmlpdf_backend.config import ServiceConfig
from server import build_app

API_KEY = "test-secret-api-key-0123456789abcdef"

# One tab-joined line per invocation; a single write keeps concurrent calls apart.
_SCRIPT = """#!/bin/sh
IFS='\t'
printf '%s\\n' "$*" >> @CALLS@
unset IFS
prev=""
last=""
for arg in "$@"; do prev="$last"; last="$arg"; done
@BODY@
"""

_BODIES = {
    # Output is the input prefixed with a PDF header, so tests can match them up.
    "ok": """{ printf '%%PDF-1.4\\n'; cat "$prev"; } > "$last\"""",
    "fail": """echo "Error: renderer exploded"
exit 2""",
    "no_output": "exit 0",
    "slow": "exec sleep 10",
    # Output path is a directory, so reading it back fails.
    "dir_output": 'mkdir "$last"',
    # Fails if another instance is running at the same time.
    "exclusive": """mkdir @LOCK@ 2>/dev/null || { echo "overlapping render"; exit 3; }
sleep 0.2
rmdir @LOCK@
{ printf '%%PDF-1.4\\n'; cat "$prev"; } > "$last\"""",
}


class FakeRenderer:
    def __init__(self, path: Path, calls_path: Path):
        self.path = path
        self.calls_path = calls_path

    def calls(self) -> list[list[str]]:
        if not self.calls_path.exists():
            return []
        return [line.split("\t") for line in self.calls_path.read_text().splitlines()]


@pytest.fixture
def temp_dir(tmp_path):
    return tmp_path / "pdf-service"


@pytest.fixture
def make_renderer(tmp_path):
    """Factory creating an executable fake renderer for the given mode."""
    def _make(mode: str = "ok") -> FakeRenderer:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        path = bin_dir / f"wkhtmltopdf-{mode}"
        calls_path = bin_dir / f"{mode}.calls"
        body = _BODIES[mode].replace("@LOCK@", shlex.quote(str(bin_dir / "render.lock")))
        script = _SCRIPT.replace("@CALLS@", shlex.quote(str(calls_path))).replace("@BODY@", body)
        path.write_text(script)
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return FakeRenderer(path, calls_path)

    return _make


@pytest.fixture
def fake_renderer(make_renderer):
    return make_renderer("ok")


@pytest.fixture
def make_config(tmp_path, temp_dir, fake_renderer):
    def _make(**overrides) -> ServiceConfig:
        values = dict(
            renderer_binary=fake_renderer.path,
            temp_dir=temp_dir,
            log_file=tmp_path / "logs" / "service.log",
            api_key=API_KEY,
            render_timeout_seconds=5.0,
        )
        values.update(overrides)
        return ServiceConfig(**values)

    return _make


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture
def auth_headers():
    return {"X-API-Key": API_KEY}


@pytest.fixture
def client(config):
    with TestClient(build_app(config)) as test_client:
        yield test_client
