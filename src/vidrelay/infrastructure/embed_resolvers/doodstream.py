"""DoodStream strategy: embed page -> /pass_md5/ follow-up -> signed MP4 URL.

The page embeds a ``/pass_md5/<id>/<hash>`` path and a ``&token=``
value. The pass_md5 endpoint answers with a CDN base URL; the player
appends a 10-character random suffix plus ``?token=<token>&expiry=<ms>``.
"""

from __future__ import annotations

import random
import re
import string
import time
from urllib.parse import urlparse

import httpx
import structlog

from vidrelay.domain.entities.resolution import ResolutionResult
from vidrelay.domain.exceptions import ExtractionFailed, FetchFailed

from ._base import EmbedStrategy

log = structlog.get_logger(__name__)

_PASS_MD5_RE = re.compile(r"""['"](/pass_md5/[^<>"']+)['"]""")
_TOKEN_RE = re.compile(r"&token=([a-z0-9]+)", re.IGNORECASE)

_SUFFIX_ALPHABET = string.ascii_letters + string.digits


class DoodStreamStrategy(EmbedStrategy):
    """Resolves dood.* / ds2play / d0o0d style embed pages."""

    provider = "doodstream"
    domains = frozenset(
        {
            "dood",
            "doods",
            "doodstream",
            "doodapi",
            "dooood",
            "ds2play",
            "ds2video",
            "d0o0d",
            "do0od",
            "d0000d",
            "d000d",
            "dooodster",
            "vidply",
            "do7go",
            "all3do",
            "doply",
            "vide0",
            "vvide0",
            "dsvplay",
            "myvidplay",
        }
    )

    def normalize_url(self, url: str) -> str:
        """Download links (``/d/``) become embed links (``/e/``)."""
        if "/e/" in url:
            return url
        return re.sub(r"/d/", "/e/", url, count=1)

    async def extract(self, html: str, page_url: str) -> ResolutionResult | None:
        if self._is_offline(html):
            log.info("doodstream_offline", url=page_url)
            return None
        if self._has_captcha(html):
            log.warning("doodstream_captcha_required", url=page_url)
            raise ExtractionFailed(
                "doodstream: embed page requires a captcha", embed_url=page_url
            )

        pass_match = _PASS_MD5_RE.search(html)
        token_match = _TOKEN_RE.search(html)
        if not pass_match or not token_match:
            log.warning(
                "doodstream_markers_missing",
                pass_md5=bool(pass_match),
                token=bool(token_match),
            )
            return None

        parsed = urlparse(page_url)
        pass_url = f"{parsed.scheme}://{parsed.netloc}{pass_match.group(1)}"
        video_base = await self._fetch_pass_md5(pass_url, page_url)
        if not video_base.startswith("http"):
            log.warning("doodstream_invalid_video_base", base=video_base[:50])
            return None

        suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=10))
        expiry = int(time.time() * 1000)
        video_url = f"{video_base}{suffix}?token={token_match.group(1)}&expiry={expiry}"
        return self._result(video_url, page_url, mime="video/mp4")

    async def _fetch_pass_md5(self, pass_url: str, page_url: str) -> str:
        try:
            resp = await self._http.get(
                pass_url,
                headers={"X-Requested-With": "XMLHttpRequest", "Referer": page_url},
                follow_redirects=True,
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            log.warning("doodstream_pass_md5_failed", url=pass_url, error=str(exc))
            raise FetchFailed(
                f"doodstream: pass_md5 request failed: {exc}", embed_url=page_url
            ) from exc

        if not 200 <= resp.status_code < 300:
            log.warning("doodstream_pass_md5_error", status=resp.status_code)
            raise FetchFailed(
                f"doodstream: pass_md5 answered HTTP {resp.status_code}",
                embed_url=page_url,
                status_code=resp.status_code,
            )
        return resp.text.strip()

    @staticmethod
    def _is_offline(html: str) -> bool:
        if '<iframe src="/e/"' in html and "minimalUserResponseInMiliseconds" not in html:
            return True
        if re.search(r"<h1>\s*Oops!\s*Sorry\s*</h1>", html):
            return True
        return bool(re.search(r"<title>\s*Video not found\s*\|\s*DoodStream", html))

    @staticmethod
    def _has_captcha(html: str) -> bool:
        return (
            "op=validate&gc_response=" in html
            or "data-sitekey=" in html
            or "cf-turnstile" in html.lower()
        )
