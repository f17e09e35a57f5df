"""SRT to WebVTT conversion."""

from __future__ import annotations

import re

_LINE_BREAK_RE = re.compile(r"\r\n?")
_TIMESTAMP_LINE_RE = re.compile(r"^\s*\d{1,2}:\d{2}:\d{2}[,.]\d{3}\s*-->")
_COMMA_MILLIS_RE = re.compile(r"(\d{1,2}:\d{2}:\d{2}),(\d{3})")


def srt_to_vtt(text: str) -> str:
    """Convert SubRip text to WebVTT.

    - line breaks normalized to ``\\n`` and a leading BOM removed
    - numeric cue counters dropped (only when a timing line follows)
    - ``,`` millisecond separators in timestamps become ``.``
    - ``WEBVTT`` header prepended

    Cue text is left untouched, commas included.
    """
    text = _LINE_BREAK_RE.sub("\n", text).lstrip("\ufeff")
    lines = text.split("\n")

    out: list[str] = []
    for i, line in enumerate(lines):
        is_counter = line.strip().isdigit()
        if is_counter and i + 1 < len(lines) and _TIMESTAMP_LINE_RE.match(lines[i + 1]):
            continue
        if _TIMESTAMP_LINE_RE.match(line):
            line = _COMMA_MILLIS_RE.sub(r"\1.\2", line)
        out.append(line)

    return "WEBVTT\n\n" + "\n".join(out)
