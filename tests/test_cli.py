import json
import threading
from pathlib import Path

import pytest

from veo3ops import cli
from veo3ops.config import Settings
from veo3ops.operations.downloader import Downloader
from veo3ops.operations.models import OperationStatus
from veo3ops.operations.poller import Poller, PollingConfig
from veo3ops.operations.store import OperationStore

from fakes import FakeResponse, FakeSession, FakeStatusClient, make_operation

OP_ID = "models/veo-3.1-generate-preview/operations/abc123"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        api_key="test-key",
        output_directory=str(tmp_path / "videos"),
        download_retry_delay_seconds=0,
    )


def wire(monkeypatch, client, session=None):
    """Replace build_components with fakes and return the store."""
    store = OperationStore(client)

    def build_components(settings, show_progress):
        poller = Poller(client, store, PollingConfig(base_interval=0.001, max_interval=0.001))
        downloader = Downloader(session=session or FakeSession(), retry_delay=0)
        return client, store, poller, downloader

    monkeypatch.setattr(cli, "build_components", build_components)
    return store


@pytest.mark.parametrize("output,expected", [
    (None, "videos/abc123.mp4"),
    ("clips", "clips/abc123.mp4"),
    ("clips/final.mp4", "clips/final.mp4"),
    ("clips/FINAL.MP4", "clips/FINAL.MP4"),
])
def test_resolve_output_path(output, expected):
    assert cli.resolve_output_path(OP_ID, output, "videos") == Path(expected)


def test_parse_args_generate():
    args = cli.parse_args([
        "generate", "a koi pond at dawn", "--resolution", "1080p", "--wait", "-o", "out", "--json",
    ])

    assert args.command == "generate"
    assert args.prompt == "a koi pond at dawn"
    assert args.resolution == "1080p"
    assert args.duration == 8
    assert args.wait is True
    assert args.output == "out"
    assert args.json is True


def test_parse_args_rejects_unsupported_duration():
    with pytest.raises(SystemExit):
        cli.parse_args(["generate", "x", "--duration", "5"])


def test_status_prints_json(monkeypatch, settings, capsys):
    client = FakeStatusClient({OP_ID: [make_operation("remote-name", OperationStatus.RUNNING, progress=0.3)]})
    wire(monkeypatch, client)

    code = cli.run(cli.parse_args(["status", OP_ID, "--json"]), settings, threading.Event())

    data = json.loads(capsys.readouterr().out)
    assert code == 0
    assert data["id"] == OP_ID
    assert data["status"] == "RUNNING"
    assert data["progress"] == 0.3


def test_wait_downloads_when_done(monkeypatch, settings, tmp_path, capsys):
    client = FakeStatusClient({OP_ID: [
        make_operation(OP_ID, OperationStatus.RUNNING),
        make_operation(OP_ID, OperationStatus.DONE, video_uri="https://example.test/v.mp4"),
    ]})
    session = FakeSession([FakeResponse(200, b"video-bytes")])
    wire(monkeypatch, client, session)
    target = tmp_path / "clip.mp4"

    code = cli.run(
        cli.parse_args(["wait", OP_ID, "--download", str(target), "--json"]),
        settings,
        threading.Event(),
    )

    assert code == 0
    assert target.read_bytes() == b"video-bytes"
    data = json.loads(capsys.readouterr().out)
    assert data["file_size_bytes"] == len(b"video-bytes")


def test_wait_on_failed_operation_exits_nonzero(monkeypatch, settings, capsys):
    client = FakeStatusClient({OP_ID: [make_operation(OP_ID, OperationStatus.FAILED)]})
    wire(monkeypatch, client)

    code = cli.run(cli.parse_args(["wait", OP_ID]), settings, threading.Event())

    assert code == 1
    assert "Status:    FAILED" in capsys.readouterr().out


def test_download_uses_output_directory(monkeypatch, settings):
    client = FakeStatusClient({OP_ID: [
        make_operation(OP_ID, OperationStatus.DONE, video_uri="https://example.test/v.mp4"),
    ]})
    wire(monkeypatch, client, FakeSession([FakeResponse(200, b"abc")]))

    code = cli.run(cli.parse_args(["download", OP_ID]), settings, threading.Event())

    assert code == 0
    assert (Path(settings.output_directory) / "abc123.mp4").read_bytes() == b"abc"


def test_cancel(monkeypatch, settings, capsys):
    client = FakeStatusClient({OP_ID: [make_operation(OP_ID, OperationStatus.RUNNING)]})
    store = wire(monkeypatch, client)

    code = cli.run(cli.parse_args(["cancel", OP_ID]), settings, threading.Event())

    assert code == 0
    assert client.cancel_calls == [OP_ID]
    assert store.get(OP_ID).status == OperationStatus.CANCELLED
    assert "CANCELLED" in capsys.readouterr().out


def test_generate_without_wait(monkeypatch, settings, capsys):
    client = FakeStatusClient()
    wire(monkeypatch, client)

    code = cli.run(cli.parse_args(["generate", "a koi pond at dawn", "--json"]), settings, threading.Event())

    data = json.loads(capsys.readouterr().out)
    assert code == 0
    assert data["status"] == "PENDING"
    assert data["metadata"]["model"] == settings.default_model
    assert client.submitted[0].prompt == "a koi pond at dawn"


def test_main_reports_errors(monkeypatch, capsys):
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setattr(cli.Settings, "from_env", classmethod(lambda cls: cls(api_key=None)))

    code = cli.main(["status", OP_ID])

    assert code == 1
    assert "GEMINI_API_KEY" in capsys.readouterr().err


def test_main_cancel_of_finished_operation(monkeypatch, settings, capsys):
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)
    client = FakeStatusClient({OP_ID: [make_operation(OP_ID, OperationStatus.DONE)]})
    wire(monkeypatch, client)
    monkeypatch.setattr(cli.Settings, "from_env", classmethod(lambda cls: settings))

    code = cli.main(["cancel", OP_ID])

    assert code == 1
    assert "not cancellable" in capsys.readouterr().err
    assert client.cancel_calls == []
