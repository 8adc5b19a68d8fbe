"""Netscape cookie file loading."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Union

from scrapchat.chat.exceptions import ScrapChatError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Cookie:
    """One cookie from a Netscape cookie file."""
    domain: str
    path: str
    secure: bool
    expires: int
    name: str
    value: str


def parse_cookie_lines(lines: Iterable[str]) -> List[Cookie]:
    """Parse Netscape cookie file lines.

    Comments, blank lines and lines without exactly seven tab-separated
    fields are skipped. Lines with a non-numeric expiry are logged and
    skipped.
    """
    cookies = []
    for line in lines:
        line = line.rstrip("\r\n")
        if line.startswith("#") or not line.strip():
            continue

        parts = line.split("\t")
        if len(parts) != 7:
            continue

        try:
            expires = int(parts[4])
        except ValueError:
            logger.warning(f"Error parsing cookie time: {parts[4]!r}")
            continue

        cookies.append(
            Cookie(
                domain=parts[0],
                path=parts[2],
                secure=parts[3] == "TRUE",
                expires=expires,
                name=parts[5],
                value=parts[6],
            )
        )
    return cookies


def load_cookies(path: Union[str, Path]) -> List[Cookie]:
    """Load cookies from a Netscape cookie file.

    Raises:
        ScrapChatError: If the file can't be read
    """
    try:
        with open(path, encoding="utf-8") as f:
            cookies = parse_cookie_lines(f)
    except OSError as e:
        raise ScrapChatError(f"Failed to open cookie file: {e}")

    logger.info(f"Loaded {len(cookies)} cookies from {path}")
    return cookies


def cookie_header(cookies: Iterable[Cookie]) -> str:
    """Render cookies as a Cookie header value."""
    return "; ".join(f"{c.name}={c.value}" for c in cookies)
