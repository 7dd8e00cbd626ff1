from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from typer.testing import CliRunner

from numclimb.cli import app
from numclimb.level.generator import generate
from numclimb.net.protocol import CreateRoom, JoinRoom, Packet


class _RecordingTransport:
    def __init__(self, *, bind_host: str, bind_port: int) -> None:
        self.bind_host = bind_host
        self.bind_port = bind_port
        self.sent: list[tuple[tuple[str, int], Packet]] = []
        self._open = False

    @property
    def bound_port(self) -> int:
        return 50000

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        self._open = True

    def close(self) -> None:
        self._open = False

    def send_packet(self, addr: tuple[str, int], packet: Packet) -> bool:
        self.sent.append((addr, packet))
        return True

    def recv_packets(self) -> list[tuple[tuple[str, int], Packet]]:
        return []


def test_level_command_prints_summary_and_solution() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["level", "--tier", "1", "--seed", "42", "--solve"])

    assert result.exit_code == 0, result.output
    level = generate(1, 42)
    assert f"target {level.target}" in result.output
    assert "Solution:" in result.output


def test_level_command_json_output() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["level", "--tier", "6", "--seed", "9", "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    level = generate(6, 9)
    assert payload["target"] == level.target
    assert payload["tier"] == 6
    assert len(payload["tiles"]) == len(level.tiles)
    assert [tile["id"] for tile in payload["tiles"]] == list(range(len(level.tiles)))


def test_play_command_runs_solo_view(monkeypatch) -> None:
    captured: dict[str, Any] = {}

    def _fake_run_play(session, *, client, tier, fps):  # noqa: ANN001
        captured.update(session=session, client=client, tier=tier, fps=fps)

    monkeypatch.setattr("numclimb.cli._run_play", _fake_run_play)

    result = CliRunner().invoke(app, ["play", "--tier", "2", "--fps", "30"])

    assert result.exit_code == 0, result.output
    assert captured["client"] is None
    assert captured["tier"] == 2
    assert captured["fps"] == 30


def test_online_create_sends_create_room(monkeypatch, tmp_path: Path) -> None:
    captured: dict[str, Any] = {}

    def _fake_run_play(session, *, client, tier, fps):  # noqa: ANN001
        captured["client"] = client

    monkeypatch.setattr("numclimb.cli._run_play", _fake_run_play)
    monkeypatch.setattr("numclimb.net.client.UdpTransport", _RecordingTransport)

    result = CliRunner().invoke(
        app,
        ["online", "--host", "127.0.0.1", "--port", "32001", "--create", "--base-dir", str(tmp_path), "--debug-log"],
    )

    assert result.exit_code == 0, result.output
    client = captured["client"]
    transport = client.transport
    assert isinstance(transport, _RecordingTransport)
    assert client.session is not None
    addr, packet = transport.sent[0]
    assert addr == ("127.0.0.1", 32001)
    assert isinstance(packet.message, CreateRoom)
    assert list((tmp_path / "logs" / "net").glob("net-client-*.log"))


def test_online_join_uppercases_the_code(monkeypatch) -> None:
    captured: dict[str, Any] = {}
    monkeypatch.setattr("numclimb.cli._run_play", lambda session, **kwargs: captured.update(kwargs))
    monkeypatch.setattr("numclimb.net.client.UdpTransport", _RecordingTransport)

    result = CliRunner().invoke(app, ["online", "--join", "abcde"])

    assert result.exit_code == 0, result.output
    _addr, packet = captured["client"].transport.sent[0]
    assert isinstance(packet.message, JoinRoom)
    assert packet.message.room_id == "ABCDE"


def test_online_requires_exactly_one_of_create_or_join(monkeypatch) -> None:
    monkeypatch.setattr("numclimb.cli._run_play", lambda *_args, **_kwargs: None)

    neither = CliRunner().invoke(app, ["online"])
    both = CliRunner().invoke(app, ["online", "--create", "--join", "ABCDE"])

    assert neither.exit_code == 2
    assert both.exit_code == 2
