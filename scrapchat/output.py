"""Rendering and writing of CLI results."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional, TextIO

import click

from scrapchat.chat.models import ChatMessage
from scrapchat.models import ChannelInfo, OutputFormat, OutputTarget

logger = logging.getLogger(__name__)

LIVE_JSON_FILE = Path("live_output.json")
LIVE_TEXT_FILE = Path("live_output.txt")
INFO_FILE_STEM = "info_output"

TIME_FORMAT = "%Y/%m/%d %H:%M:%S"


def apply_template(template: str, values: Dict[str, str]) -> str:
    """Replace template keys in one pass.

    Longer keys win over keys they contain (AUTHOR_ID before ID), and
    replaced text is never scanned again.
    """
    if not values:
        return template
    keys = sorted(values, key=len, reverse=True)
    pattern = re.compile("|".join(re.escape(key) for key in keys))
    return pattern.sub(lambda m: values[m.group(0)], template)


def live_template_values(message: ChatMessage) -> Dict[str, str]:
    """Template keys for a chat message."""
    return {
        "ID": message.id,
        "MESSAGE": message.message,
        "AUTHOR_ID": message.author.id,
        "AUTHOR_NAME": message.author.name,
        "AUTHOR_URL": message.author.url,
        "AUTHOR_THUMBNAIL": message.author.thumbnail,
        "TIME": str(message.timestamp),
    }


def info_template_values(info: ChannelInfo) -> Dict[str, str]:
    """Template keys for channel info."""
    return {
        "ID": info.id,
        "NAME": info.name,
        "DESC": info.description,
        "IMAGE": info.image,
        "URL": info.url,
    }


def format_time(timestamp: int) -> str:
    """Local time of a Unix timestamp as YYYY/MM/DD HH:MM:SS."""
    return datetime.fromtimestamp(timestamp).strftime(TIME_FORMAT)


def summary_line(message: ChatMessage) -> str:
    """One-line human readable rendering of a chat message."""
    return f"{format_time(message.timestamp)} :[{message.author.name}] {message.message}"


def format_message(
    message: ChatMessage,
    fmt: OutputFormat,
    template: Optional[str] = None,
) -> str:
    """Render a chat message in the requested format."""
    if fmt == OutputFormat.JSON:
        return json.dumps(message.to_dict(), indent=2, ensure_ascii=False)
    if fmt == OutputFormat.CUSTOM:
        return apply_template(template or "", live_template_values(message))
    return summary_line(message)


def format_info(
    info: ChannelInfo,
    fmt: OutputFormat,
    template: Optional[str] = None,
) -> str:
    """Render channel info in the requested format."""
    if fmt == OutputFormat.JSON:
        return info.model_dump_json(indent=2)
    if fmt == OutputFormat.CUSTOM:
        return apply_template(template or "", info_template_values(info))
    return "\n".join(f"{key}: {value}" for key, value in info.model_dump().items())


class JsonArrayWriter:
    """
    Appends JSON documents to a file holding one JSON array.

    An existing array is reopened by trimming its closing bracket, so runs
    accumulate in the same file. ``close()`` writes the closing bracket.
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._file: Optional[TextIO] = None
        self._first = True

    def open(self) -> "JsonArrayWriter":
        existing = ""
        if self._path.exists():
            existing = self._path.read_text(encoding="utf-8")

        trimmed = existing.rstrip(" \r\n")
        if trimmed.endswith("]"):
            trimmed = trimmed[:-1].rstrip(" \r\n")

        if not trimmed:
            self._path.write_text("[\n", encoding="utf-8")
            self._first = True
        else:
            self._path.write_text(trimmed, encoding="utf-8")
            self._first = trimmed.endswith("[")
            logger.info(f"Resuming JSON array in {self._path}")

        self._file = open(self._path, "a", encoding="utf-8")
        return self

    def write(self, document: str) -> None:
        if self._file is None:
            raise RuntimeError("JsonArrayWriter is not open")
        if not self._first:
            self._file.write(",\n")
        self._file.write(document)
        self._file.flush()
        self._first = False

    def close(self) -> None:
        if self._file is None:
            return
        self._file.write("\n]\n")
        self._file.close()
        self._file = None

    def __enter__(self) -> "JsonArrayWriter":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class LiveOutput:
    """
    Writes streamed chat messages to the log or to a file.

    ``file`` + ``json`` appends to a JSON array in live_output.json and
    echoes a summary line per message; other file formats append lines to
    live_output.txt.
    """

    def __init__(
        self,
        output: OutputTarget = OutputTarget.LOG,
        fmt: OutputFormat = OutputFormat.DEFAULT,
        template: Optional[str] = None,
        json_path: Path = LIVE_JSON_FILE,
        text_path: Path = LIVE_TEXT_FILE,
        echo: Callable[[str], None] = click.echo,
    ):
        self._output = output
        self._format = fmt
        self._template = template
        self._json_path = json_path
        self._text_path = text_path
        self._echo = echo

        self._array: Optional[JsonArrayWriter] = None
        self._text: Optional[TextIO] = None
        self._count = 0

    def open(self) -> "LiveOutput":
        if self._output == OutputTarget.FILE:
            if self._format == OutputFormat.JSON:
                self._array = JsonArrayWriter(self._json_path).open()
            else:
                self._text = open(self._text_path, "a", encoding="utf-8")
        return self

    def write(self, message: ChatMessage) -> None:
        line = format_message(message, self._format, self._template)
        if self._array is not None:
            self._array.write(line)
            self._echo(summary_line(message))
        elif self._text is not None:
            self._text.write(line + "\n")
            self._text.flush()
        else:
            self._echo(line)
        self._count += 1

    def close(self) -> None:
        if self._array is not None:
            self._array.close()
            self._array = None
            logger.info(f"Closed JSON array in {self._json_path}")
        if self._text is not None:
            self._text.close()
            self._text = None

    @property
    def count(self) -> int:
        """Number of messages written."""
        return self._count

    def __enter__(self) -> "LiveOutput":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def write_info(
    info: ChannelInfo,
    output: OutputTarget = OutputTarget.LOG,
    fmt: OutputFormat = OutputFormat.DEFAULT,
    template: Optional[str] = None,
    directory: Path = Path("."),
    echo: Callable[[str], None] = click.echo,
) -> Optional[Path]:
    """
    Write channel info to the log or to info_output.txt / info_output.json.

    Returns:
        Path of the written file, or None for log output
    """
    formatted = format_info(info, fmt, template)
    if output != OutputTarget.FILE:
        echo(formatted)
        return None

    ext = "json" if fmt == OutputFormat.JSON else "txt"
    path = Path(directory) / f"{INFO_FILE_STEM}.{ext}"
    path.write_text(formatted, encoding="utf-8")
    echo(f"Result written to {path}")
    return path
