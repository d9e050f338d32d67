"""Tests for the render_job command-line tool."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
import yaml

from cnc_buffer.configs.loader import BufferConfig
from cnc_buffer.scripts import render_job
from cnc_buffer.scripts.render_job import JobFileError, format_report, load_job

SQUARE_JOB = Path(render_job.__file__).parent.parent / "configs" / "jobs" / "square.yaml"


@pytest.fixture()
def job_file(tmp_path: Path) -> Path:
    path = tmp_path / "job.yaml"
    path.write_text(yaml.safe_dump({
        "operations": [
            {"kind": "move", "data": {"x": 300, "y": 400}},
            {"kind": "message", "data": "halfway"},
            {"kind": "wait", "duration": 20},
        ],
    }))
    return path


@pytest.fixture()
def config_file(tmp_path: Path, raw_config: dict[str, Any]) -> Path:
    path = tmp_path / "device.yaml"
    path.write_text(yaml.safe_dump(raw_config))
    return path


class TestLoadJob:
    def test_shipped_example(self) -> None:
        ops = load_job(SQUARE_JOB)
        assert ops[0]["kind"] == "message"
        assert all("kind" in op for op in ops)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(JobFileError, match="not found"):
            load_job(tmp_path / "none.yaml")

    def test_no_operations(self, tmp_path: Path) -> None:
        path = tmp_path / "job.yaml"
        path.write_text("name: empty\n")
        with pytest.raises(JobFileError, match="operations"):
            load_job(path)

    def test_operation_without_kind(self, tmp_path: Path) -> None:
        path = tmp_path / "job.yaml"
        path.write_text(yaml.safe_dump({"operations": [{"data": 1}]}))
        with pytest.raises(JobFileError, match="operation 0"):
            load_job(path)


class TestRenderJob:
    def test_report(self, job_file: Path, config: BufferConfig) -> None:
        report = render_job.render_job(load_job(job_file), config)
        assert report["device"] == "testbot"
        assert [item["command"]["type"] for item in report["items"]] == [
            "move", "message", "wait",
        ]
        assert report["items"][0]["commands"] == ["SM,500,300,400"]
        assert report["items"][2]["commands"] == ["SM,20,0,0"]
        assert report["rejected"] == []
        assert report["intended"]["x"] == 300.0
        assert report["confirmed"]["x"] == 0.0

    def test_drain(self, job_file: Path, config: BufferConfig) -> None:
        report = render_job.render_job(load_job(job_file), config, drain=True)
        assert report["confirmed"] == report["intended"]
        assert "message" in report["events"]

    def test_rejected_operations(self, config: BufferConfig) -> None:
        ops = [{"kind": "move", "data": {"x": 1, "y": 1}}, {"kind": "fly"}]
        report = render_job.render_job(ops, config)
        assert report["rejected"] == [1]
        assert len(report["items"]) == 1

    def test_format_report(self, job_file: Path, config: BufferConfig) -> None:
        text = format_report(render_job.render_job(load_job(job_file), config))
        assert "Device: testbot" in text
        assert "    SM,500,300,400" in text
        assert "Intended pen: (300, 400)" in text


class TestMain:
    @pytest.fixture(autouse=True)
    def _no_logging_setup(self, monkeypatch: pytest.MonkeyPatch) -> MagicMock:
        setup = MagicMock()
        monkeypatch.setattr(render_job, "setup_logging", setup)
        monkeypatch.setattr(render_job, "install_excepthook", MagicMock())
        monkeypatch.setattr(render_job, "push_context", MagicMock())
        return setup

    def test_logging_from_config(
        self, job_file: Path, config_file: Path, _no_logging_setup: MagicMock,
    ) -> None:
        render_job.main([str(job_file), "-c", str(config_file), "--log-level", "debug"])
        kwargs = _no_logging_setup.call_args.kwargs
        assert kwargs["log_level"] == "DEBUG"
        assert kwargs["log_file"] is None

    def test_text_output(
        self, job_file: Path, config_file: Path, capsys: pytest.CaptureFixture,
    ) -> None:
        code = render_job.main([str(job_file), "--config", str(config_file)])
        assert code == 0
        assert "SM,500,300,400" in capsys.readouterr().out

    def test_json_output(
        self, job_file: Path, config_file: Path, capsys: pytest.CaptureFixture,
    ) -> None:
        code = render_job.main([str(job_file), "-c", str(config_file), "--json", "--drain"])
        assert code == 0
        report = json.loads(capsys.readouterr().out)
        assert report["confirmed"]["x"] == 300.0
        assert len(report["job_sha256"]) == 64

    def test_output_file(self, job_file: Path, config_file: Path, tmp_path: Path) -> None:
        out = tmp_path / "report.yaml"
        render_job.main([str(job_file), "-c", str(config_file), "-o", str(out)])
        data = yaml.safe_load(out.read_text())
        assert data["device"] == "testbot"
        assert len(data["items"]) == 3

    def test_bad_config(self, job_file: Path, tmp_path: Path) -> None:
        code = render_job.main([str(job_file), "-c", str(tmp_path / "missing.yaml")])
        assert code == 1

    def test_bad_job(self, config_file: Path, tmp_path: Path) -> None:
        code = render_job.main([str(tmp_path / "missing.yaml"), "-c", str(config_file)])
        assert code == 1

    def test_rejections_exit_code(
        self, config_file: Path, tmp_path: Path,
    ) -> None:
        path = tmp_path / "job.yaml"
        path.write_text(yaml.safe_dump({"operations": [{"kind": "fly"}]}))
        assert render_job.main([str(path), "-c", str(config_file)]) == 2
