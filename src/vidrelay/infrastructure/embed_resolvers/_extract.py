"""Shared extraction utilities for embed pages.

Helpers to pull playable media URLs (HLS m3u8, MP4) out of embed pages
that use JWPlayer, Dean Edwards packed JavaScript, JSON blobs inside
``<script>`` tags, or lightly obfuscated source strings.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from collections.abc import Iterator
from typing import Any

from bs4 import BeautifulSoup

from vidrelay.domain.entities.resolution import is_absolute_http_url

# Digit alphabet of the packer's base-N encoder (bases up to 62)
_PACKER_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"

_PACKED_START_RE = re.compile(
    r"eval\s*\(\s*function\s*\(\s*p\s*,\s*a\s*,\s*c\s*,\s*k\s*,\s*e\s*,\s*d\s*\)"
)
_PACKED_ARGS_RE = re.compile(
    r"}\s*\(\s*'(.*?)',\s*(\d+),\s*(\d+),\s*'([^']*)'\s*\.split\('\|'\)",
    re.DOTALL,
)

# Max characters scanned after an eval(function(p,a,c,k,e,d) marker
_PACKED_CHUNK = 65536

_NOISE_RE = re.compile(r"(thumbnail|sprite|track|banner|preview)", re.IGNORECASE)


def _packer_index(word: str, base: int) -> int | None:
    """Decode one base-N packer token, or None if it is not a token."""
    # The encoder never emits leading zeros ("01" is a literal, not 1)
    if len(word) > 1 and word[0] == "0":
        return None
    value = 0
    for ch in word:
        digit = _PACKER_ALPHABET.find(ch)
        if digit < 0 or digit >= base:
            return None
        value = value * base + digit
    return value


def unpack_packed_js(packed: str) -> str | None:
    """Unpack Dean Edwards packed JavaScript.

    Format: eval(function(p,a,c,k,e,d){...}('payload',base,count,'dict'.split('|')))

    Every base-N word token in the payload is replaced with the dictionary
    entry at that index; tokens with an empty entry stay as they are.
    """
    match = _PACKED_ARGS_RE.search(packed)
    if not match:
        return None

    payload = match.group(1)
    base = int(match.group(2))
    count = int(match.group(3))
    keywords = match.group(4).split("|")
    if not 2 <= base <= len(_PACKER_ALPHABET):
        return None
    if len(keywords) < count:
        keywords.extend([""] * (count - len(keywords)))

    def _replace_word(m: re.Match[str]) -> str:
        word = m.group(0)
        index = _packer_index(word, base)
        if index is not None and index < count and keywords[index]:
            return keywords[index]
        return word

    return re.sub(r"\b\w+\b", _replace_word, payload)


def iter_unpacked_blocks(html: str) -> Iterator[str]:
    """Yield the unpacked source of every packed block in *html*."""
    for m in _PACKED_START_RE.finditer(html):
        unpacked = unpack_packed_js(html[m.start() : m.start() + _PACKED_CHUNK])
        if unpacked:
            yield unpacked


def _normalize_js(js: str) -> str:
    # Unpacked output keeps the payload's string escapes
    return js.replace("\\'", "'").replace('\\"', '"').replace("\\/", "/")


def _usable(url: str) -> bool:
    return is_absolute_http_url(url) and not _NOISE_RE.search(url)


def find_jwplayer_source(js: str) -> str | None:
    """Extract the media URL from a JWPlayer ``setup()`` config.

    Prefers HLS over MP4. Handles escaped quotes from unpacked payloads.
    """
    normalized = _normalize_js(js)
    patterns = (
        # sources:[{file:"https://...master.m3u8"}]
        r"""sources\s*:\s*\[\s*\{[^}]*file\s*:\s*["'](https?://[^"']+\.m3u8[^"']*)""",
        r"""(?:file|hls)["']?\s*:\s*["'](https?://[^"']+\.m3u8[^"']*)""",
        r"""sources\s*:\s*\[\s*\{[^}]*file\s*:\s*["'](https?://[^"']+\.mp4[^"']*)""",
        r"""(?:source|src|file)["']?\s*:\s*["'](https?://[^"']+\.(?:m3u8|mp4)[^"']*)""",
    )
    for pattern in patterns:
        for m in re.finditer(pattern, normalized):
            if _usable(m.group(1)):
                return m.group(1)
    return None


def find_media_url(content: str) -> str | None:
    """Find a bare m3u8 (preferred) or mp4 URL anywhere in *content*."""
    normalized = _normalize_js(content)
    for ext in ("m3u8", "mp4"):
        for m in re.finditer(
            rf"""https?://[^\s"'<>\\]+\.{ext}(?:[?#][^\s"'<>\\]*)?""",
            normalized,
            re.IGNORECASE,
        ):
            if _usable(m.group(0)):
                return m.group(0)
    return None


def find_json_value(text: str, key: str) -> Iterator[Any]:
    """Yield every JSON value stored under ``"key":`` in *text*.

    Only the value is parsed (``raw_decode`` at the match position), so
    key order and unrelated fields around it do not matter.
    """
    decoder = json.JSONDecoder()
    for m in re.finditer(rf'"{re.escape(key)}"\s*:\s*', text):
        try:
            value, _ = decoder.raw_decode(text, m.end())
        except json.JSONDecodeError:
            continue
        yield value


def iter_script_texts(html: str) -> Iterator[str]:
    """Yield the text of every ``<script>`` element."""
    soup = BeautifulSoup(html, "lxml")
    for script in soup.find_all("script"):
        text = script.string or script.get_text()
        if text and text.strip():
            yield text


def find_media_in_json(obj: Any, keys: tuple[str, ...]) -> str | None:
    """Depth-first search of a decoded JSON value for a media URL.

    A string counts when it sits under one of *keys* and looks like an
    HLS/MP4 URL. HLS wins over MP4 at the same nesting level.
    """
    if isinstance(obj, dict):
        candidates = [
            v for k, v in obj.items() if k in keys and isinstance(v, str) and _usable(v)
        ]
        candidates.sort(key=lambda u: ".m3u8" not in u)
        for value in candidates:
            if ".m3u8" in value or ".mp4" in value:
                return value
        for v in obj.values():
            found = find_media_in_json(v, keys)
            if found:
                return found
    elif isinstance(obj, list):
        for item in obj:
            found = find_media_in_json(item, keys)
            if found:
                return found
    return None


def b64decode_text(data: str) -> str | None:
    """Decode standard or URL-safe base64 with padding fix, or None."""
    data = data.strip()
    padding = -len(data) % 4
    data += "=" * padding
    try:
        raw = base64.b64decode(data.replace("-", "+").replace("_", "/"), validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None


def rot13(text: str) -> str:
    """Apply ROT13 (its own inverse)."""
    result: list[str] = []
    for ch in text:
        code = ord(ch)
        if 0x41 <= code <= 0x5A:  # A-Z
            code = (code - 0x41 + 13) % 26 + 0x41
        elif 0x61 <= code <= 0x7A:  # a-z
            code = (code - 0x61 + 13) % 26 + 0x61
        result.append(chr(code))
    return "".join(result)


def validated_url(candidate: str | None) -> str | None:
    """Return *candidate* only if it is an absolute http(s) URL."""
    if candidate is None:
        return None
    candidate = candidate.strip()
    return candidate if is_absolute_http_url(candidate) else None
