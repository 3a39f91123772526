"""
Tests for the streamctl command-line client.

The HTTP session is mocked; no server is needed.
"""

from unittest.mock import MagicMock

import pytest
import requests

from streamlab.stream_client import (
    StreamClientError,
    StreamControlClient,
    build_parser,
    build_stream_config,
    main,
    run_command,
)


def fake_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    response.text = str(payload)
    return response


def make_client(response):
    session = MagicMock()
    session.headers = {}
    session.request.return_value = response
    return StreamControlClient("http://streams.local:3001/", session=session), session


def test_start_stream_posts_config():
    client, session = make_client(fake_response(payload={"message": "Stream started"}))

    result = client.start_stream({"streamName": "books", "interval": 500})

    assert result == {"message": "Stream started"}
    session.request.assert_called_once_with(
        "POST",
        "http://streams.local:3001/rxjs/streams/start",
        json={"streamName": "books", "interval": 500},
        timeout=10,
    )


def test_preset_and_stop_paths():
    client, session = make_client(fake_response())

    client.start_preset("timing")
    client.stop_stream("issues")
    client.stop_all()

    urls = [call.args[1] for call in session.request.call_args_list]
    assert urls == [
        "http://streams.local:3001/rxjs/presets/timing",
        "http://streams.local:3001/rxjs/streams/stop/issues",
        "http://streams.local:3001/rxjs/streams/stop-all",
    ]


def test_http_errors_raise():
    client, _ = make_client(fake_response(404, {"error": "Preset not found"}))

    with pytest.raises(StreamClientError) as excinfo:
        client.start_preset("turbo")

    assert excinfo.value.status_code == 404
    assert "Preset not found" in str(excinfo.value)


def test_connection_errors_raise():
    client, session = make_client(fake_response())
    session.request.side_effect = requests.ConnectionError("refused")

    with pytest.raises(StreamClientError) as excinfo:
        client.list_streams()

    assert excinfo.value.status_code == 0


def test_build_stream_config_from_arguments():
    args = build_parser().parse_args([
        "start", "issues", "--interval", "1500", "--error-rate", "20", "--burst", "--burst-size", "4",
    ])

    assert build_stream_config(args) == {
        "streamName": "issues",
        "interval": 1500.0,
        "errorRate": 20.0,
        "burstSize": 4,
        "burstMode": True,
    }


def test_run_command_dispatch():
    client = MagicMock()
    args = build_parser().parse_args(["preset", "basic"])

    run_command(client, args)

    client.start_preset.assert_called_once_with("basic")


def test_main_reports_failures(monkeypatch):
    def refuse(self, method, path, payload=None):
        raise StreamClientError("HTTP 404: Preset not found", 404)

    monkeypatch.setattr(StreamControlClient, "_request", refuse)

    assert main(["preset", "turbo"]) == 1
