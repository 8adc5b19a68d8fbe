"""Tests for the command-line interface."""

import json
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from scrapchat.chat.exceptions import NotLiveError
from scrapchat.chat.models import Author, ChatMessage
from scrapchat.cli import cli
from scrapchat.models import ChannelInfo

INFO = ChannelInfo(
    id="UCabc",
    name="Some Channel",
    image="img",
    description="desc",
    url="https://www.youtube.com/channel/UCabc",
)


def test_info_custom_output():
    """Test the info command with a custom template."""
    runner = CliRunner()
    with patch("scrapchat.cli.ScrapChat.fetch_channel_info", new=AsyncMock(return_value=INFO)):
        result = runner.invoke(cli, ["info", "@some", "--format", "custom", "--custom-output", "NAME=ID"])

    assert result.exit_code == 0, result.output
    assert "Some Channel=UCabc" in result.output


def test_info_json_file():
    """Test the info command writing info_output.json."""
    runner = CliRunner()
    with runner.isolated_filesystem():
        with patch("scrapchat.cli.ScrapChat.fetch_channel_info", new=AsyncMock(return_value=INFO)):
            result = runner.invoke(cli, ["info", "@some", "-o", "file", "-f", "json"])

        assert result.exit_code == 0, result.output
        with open("info_output.json") as f:
            assert json.load(f)["id"] == "UCabc"


def test_custom_format_requires_template():
    """Test that custom format without a template is a usage error."""
    result = CliRunner().invoke(cli, ["info", "@some", "--format", "custom"])

    assert result.exit_code == 2
    assert "custom-output" in result.output


def test_live_json_file():
    """Test the live command writing the JSON array."""
    message = ChatMessage(id="m1", message="hello", author=Author(id="UC1", name="alice"), timestamp=1700000000)

    async def fake_stream(self, path):
        yield message

    runner = CliRunner()
    with runner.isolated_filesystem():
        with patch("scrapchat.cli.ScrapChat.fetch_live_chat", new=fake_stream):
            result = runner.invoke(cli, ["live", "@some", "-o", "file", "-f", "json"])

        assert result.exit_code == 0, result.output
        assert ":[alice] hello" in result.output
        with open("live_output.json") as f:
            assert [m["id"] for m in json.load(f)] == ["m1"]


def test_live_not_live_exits_with_error():
    """Test that a stream that isn't live exits non-zero."""

    async def not_live(self, path):
        raise NotLiveError("Stream not live")
        yield  # pragma: no cover

    runner = CliRunner()
    with patch("scrapchat.cli.ScrapChat.fetch_live_chat", new=not_live):
        result = runner.invoke(cli, ["live", "https://www.youtube.com/watch?v=x"])

    assert result.exit_code == 1
