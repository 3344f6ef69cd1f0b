"""
Response Sanitizer

Deterministic post-pass applied to every answer before it reaches the
user, whatever the model produced:
- raw JSON blobs are removed
- registered tool names are removed
- links are checked against the trusted domain list; others are dropped
  and a disclosure sentence is appended once

Every rule only deletes text, so the passes are repeated until nothing
changes. That makes ``format`` idempotent.
"""

import json
import logging
import re
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from config import LINK_DISCLOSURE, TRUSTED_LINK_DOMAINS

logger = logging.getLogger(__name__)

FENCED_BLOCK_RE = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\n?(.*?)```", re.DOTALL)
JSON_OBJECT_START_RE = re.compile(r'^\{\s*(?:"[^"\n]*"|[A-Za-z_][\w-]*)\s*:')
JSON_ARRAY_START_RE = re.compile(r"^\[\s*[\{\[]")
MARKDOWN_LINK_RE = re.compile(r'\[([^\[\]\n]*)\]\(\s*<?([^()\s<>]*)>?(?:\s+"[^"\n]*")?\s*\)')
BARE_URL_RE = re.compile(r"<?\b((?:https?://|www\.)[^\s<>()\[\]]+)>?", re.IGNORECASE)
TRAILING_PUNCTUATION = ".,;:!?'\""
PLACEHOLDER = "\x00{}\x00"
PLACEHOLDER_RE = re.compile(r"\x00(\d+)\x00")


class ResponseSanitizer:
    """
    Output safety filter.

    Args:
        tool_names: Names that must never appear in an answer
        trusted_domains: Hosts (and their subdomains) links may point to
        disclosure: Sentence appended when any link was dropped
    """

    def __init__(
        self,
        tool_names: Iterable[str],
        trusted_domains: Optional[Iterable[str]] = None,
        disclosure: str = LINK_DISCLOSURE,
    ):
        names = sorted({n for n in tool_names if n}, key=len, reverse=True)
        self._tool_name_re = (
            re.compile(r"`?(?:" + "|".join(re.escape(n) for n in names) + r")`?", re.IGNORECASE)
            if names else None
        )
        domains = TRUSTED_LINK_DOMAINS if trusted_domains is None else trusted_domains
        self.trusted_domains = tuple(d.lower().strip(".") for d in domains if d)
        self.disclosure = disclosure

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def format(self, raw_text: Optional[str]) -> str:
        """
        Sanitize an answer.

        Args:
            raw_text: Text produced by the model (may be None)

        Returns:
            Safe text; empty string for empty input
        """
        if not raw_text:
            return ""

        # NUL is reserved for link placeholders
        text = raw_text.replace("\x00", "")
        dropped_links = 0
        while True:
            cleaned, dropped = self._single_pass(text)
            dropped_links += dropped
            if cleaned == text:
                break
            text = cleaned

        if dropped_links:
            logger.info(f"🔗 Dropped {dropped_links} untrusted link(s) from answer")
            if self.disclosure and self.disclosure not in text:
                text = f"{text}\n\n{self.disclosure}" if text else self.disclosure

        return text

    def is_trusted_url(self, url: str) -> bool:
        """True for well-formed http(s) URLs on a trusted domain."""
        candidate = url.strip()
        if candidate.lower().startswith("www."):
            candidate = "https://" + candidate
        try:
            parsed = urlparse(candidate)
            host = parsed.hostname
        except ValueError:
            return False
        if parsed.scheme.lower() not in ("http", "https") or not host:
            return False
        if parsed.username or parsed.password:
            return False
        host = host.lower().rstrip(".")
        return any(host == d or host.endswith("." + d) for d in self.trusted_domains)

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def _single_pass(self, text: str) -> Tuple[str, int]:
        text = self._strip_tool_names(text)
        text = self._strip_json(text)
        text, dropped = self._filter_links(text)
        text = self._normalize_whitespace(text)
        return text, dropped

    def _strip_tool_names(self, text: str) -> str:
        if self._tool_name_re is None:
            return text
        return self._tool_name_re.sub("", text)

    def _strip_json(self, text: str) -> str:
        def fenced(match):
            body = match.group(1).strip()
            if body.startswith(("{", "[")) and (
                JSON_OBJECT_START_RE.match(body) or JSON_ARRAY_START_RE.match(body) or _parses_as_data(body)
            ):
                return ""
            return match.group(0)

        text = FENCED_BLOCK_RE.sub(fenced, text)

        pieces: List[str] = []
        i = 0
        while i < len(text):
            ch = text[i]
            if ch in "{[":
                end = _balanced_end(text, i)
                if end is not None and _looks_like_data(text[i:end + 1]):
                    # drop a surrounding inline code span as well
                    if pieces and pieces[-1].endswith("`") and text[end + 1:end + 2] == "`":
                        pieces[-1] = pieces[-1][:-1]
                        i = end + 2
                    else:
                        i = end + 1
                    continue
            pieces.append(ch)
            i += 1
        return "".join(pieces)

    def _filter_links(self, text: str) -> Tuple[str, int]:
        kept: List[str] = []
        dropped = 0

        def keep(value: str) -> str:
            kept.append(value)
            return PLACEHOLDER.format(len(kept) - 1)

        def scrub(match):
            nonlocal dropped
            url = match.group(1).rstrip(TRAILING_PUNCTUATION)
            if url and self.is_trusted_url(url):
                return match.group(0)
            dropped += 1
            return ""

        def markdown(match):
            nonlocal dropped
            label, url = match.group(1), match.group(2)
            if url and self.is_trusted_url(url):
                # a trusted target does not vouch for URLs written in its label
                scrubbed = BARE_URL_RE.sub(scrub, label)
                if scrubbed == label:
                    return keep(match.group(0))
                clean_label = scrubbed.strip()
                return keep(f"[{clean_label}]({url})" if clean_label else url)
            dropped += 1
            return label

        text = MARKDOWN_LINK_RE.sub(markdown, text)

        def bare(match):
            nonlocal dropped
            url = match.group(1)
            trailing = ""
            while url and url[-1] in TRAILING_PUNCTUATION:
                trailing = url[-1] + trailing
                url = url[:-1]
            if url and self.is_trusted_url(url):
                return keep(match.group(0).replace(match.group(1), url)) + trailing
            dropped += 1
            return trailing

        text = BARE_URL_RE.sub(bare, text)
        text = PLACEHOLDER_RE.sub(lambda m: kept[int(m.group(1))], text)
        return text, dropped

    @staticmethod
    def _normalize_whitespace(text: str) -> str:
        text = re.sub(r"(?<=\S)[ \t]{2,}", " ", text)
        text = re.sub(r"[ \t]+(?=[.,;:!?](?:\s|$))", "", text)
        text = re.sub(r"[ \t]+\n", "\n", text)
        text = re.sub(r"\n{3,}", "\n\n", text)
        text = re.sub(r"\(\s*\)", "", text)
        return text.strip()


# ============================================================================
# HELPERS
# ============================================================================

def _balanced_end(text: str, start: int) -> Optional[int]:
    """Index of the bracket closing the one at ``start``, or None."""
    pairs = {"{": "}", "[": "]"}
    stack = [pairs[text[start]]]
    in_string = False
    escaped = False
    for i in range(start + 1, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in pairs:
            stack.append(pairs[ch])
        elif ch in "}]":
            if ch != stack.pop():
                return None
            if not stack:
                return i
    return None


def _parses_as_data(candidate: str) -> bool:
    try:
        value = json.loads(candidate)
    except ValueError:
        return False
    if isinstance(value, dict):
        return True
    return isinstance(value, list) and any(isinstance(v, (dict, list)) for v in value)


def _looks_like_data(candidate: str) -> bool:
    if candidate.startswith("{"):
        return bool(JSON_OBJECT_START_RE.match(candidate)) or _parses_as_data(candidate)
    return bool(JSON_ARRAY_START_RE.match(candidate)) or _parses_as_data(candidate)
