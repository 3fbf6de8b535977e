"""Unit tests for the eip-bridge CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from eip_bridge import __version__
from eip_bridge.cli.app import app
from eip_bridge.domain.model.tags import Tag, TagDirectory, WireType

if TYPE_CHECKING:
    from pathlib import Path

runner = CliRunner()

VALID_CONFIG = "device:\n  host: 192.168.1.50\nmqtt:\n  topic_root: plant/line3\n"


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_generate_example_then_validate(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MQTT_USERNAME", "bridge")
    monkeypatch.setenv("MQTT_PASSWORD", "secret")
    output = tmp_path / "bridge.yaml"

    result = runner.invoke(app, ["generate-example", "--output", str(output)])
    assert result.exit_code == 0
    assert output.exists()

    result = runner.invoke(app, ["validate", str(output), "--verbose"])
    assert result.exit_code == 0
    assert "Configuration valid" in result.output


def test_validate_reports_errors(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("device:\n  host: plc1\n")

    result = runner.invoke(app, ["validate", str(path)])

    assert result.exit_code == 1
    assert "mqtt" in result.output


def test_run_exits_nonzero_on_startup_failure(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("EIP_BRIDGE_LOG_LEVEL", "INFO")
    monkeypatch.setenv("EIP_BRIDGE_LOG_FORMAT", "console")
    path = tmp_path / "bridge.yaml"
    path.write_text(VALID_CONFIG)

    with patch(
        "eip_bridge.cli.app.run_bridge",
        AsyncMock(side_effect=ConnectionError("Failed to connect to 192.168.1.50:44818")),
    ):
        result = runner.invoke(app, ["run", str(path)])

    assert result.exit_code == 1
    assert "Failed to connect" in result.output


def test_probe_lists_tags(tmp_path: Path) -> None:
    path = tmp_path / "bridge.yaml"
    path.write_text(VALID_CONFIG)
    directory = TagDirectory(
        [
            Tag("Temperature", WireType.DINT, "DINT", instance_id=1),
            Tag("Counts", WireType.INT, "INT", instance_id=2, dimensions=(8, 0, 0)),
        ]
    )

    with patch("eip_bridge.cli.app.EIPSession") as session_cls:
        session = session_cls.return_value
        session.connect = AsyncMock()
        session.enumerate_tags = AsyncMock(return_value=directory)
        session.disconnect = AsyncMock()

        result = runner.invoke(app, ["probe", str(path)])

    assert result.exit_code == 0
    assert "Temperature" in result.output
    assert "2 tags found" in result.output
    session.disconnect.assert_awaited_once()
