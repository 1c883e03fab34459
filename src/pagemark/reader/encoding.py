"""Encoding detection for plain-text books of unknown charset."""

from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass
from typing import Optional

import chardet

from pagemark.errors import UnreadableEncoding

log = logging.getLogger(__name__)

DETECT_SAMPLE_BYTES = 64 * 1024
DETECT_MIN_CONFIDENCE = 0.5
# chardet guesses wildly on a handful of bytes
DETECT_MIN_BYTES = 64
GARBLED_SAMPLE_CHARS = 1000
GARBLED_HIGH_RATIO = 0.8

# NUL shows up when BOM-less UTF-16 is read as a byte-oriented charset
MOJIBAKE_MARKERS = ("�", "锘", "ï»¿", "\x00")

# Tried in order once detection is inconclusive
FALLBACK_CASCADE = ("gbk", "gb2312", "big5", "latin-1")

# chardet label -> codec we decode with
KNOWN_LABELS = {
    "utf-8": "utf-8",
    "ascii": "utf-8",
    "gb2312": "gbk",
    "gbk": "gbk",
    "gb18030": "gb18030",
    "big5": "big5",
    "utf-16": "utf-16",
    "utf-16le": "utf-16-le",
    "utf-16be": "utf-16-be",
    "iso-8859-1": "latin-1",
    "windows-1252": "cp1252",
    "iso-8859-15": "iso8859-15",
}

# chardet reports Western text with low confidence; these labels skip the
# confidence floor and still have to pass is_garbled
LATIN_CODECS = {"latin-1", "cp1252", "iso8859-15"}

_BOMS = (
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)


@dataclass
class DecodedText:
    text: str
    charset: str


def _is_cjk(ch: str) -> bool:
    return "一" <= ch <= "鿿"


def is_garbled(text: str) -> bool:
    """Heuristic check for text decoded with the wrong charset.

    Flags replacement characters, NULs and the usual BOM mojibake. Also flags
    samples where more than 80% of the first 1000 code points sit above
    U+007F without a single CJK ideograph among them.
    """
    if any(marker in text for marker in MOJIBAKE_MARKERS):
        return True
    sample = text[:GARBLED_SAMPLE_CHARS]
    if not sample:
        return False
    high = 0
    cjk = 0
    for ch in sample:
        if ord(ch) > 0x7F:
            high += 1
            if _is_cjk(ch):
                cjk += 1
    return high / len(sample) > GARBLED_HIGH_RATIO and cjk == 0


def _try_decode(raw: bytes, encoding: str) -> Optional[str]:
    try:
        return raw.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        return None


def _sniff_bom(raw: bytes) -> Optional[DecodedText]:
    for bom, encoding in _BOMS:
        if raw.startswith(bom):
            text = raw[len(bom) :].decode(encoding, errors="replace")
            return DecodedText(text=text, charset=encoding)
    return None


def detect_label(raw: bytes) -> Optional[str]:
    """Return the codec chardet proposes for ``raw``, or None when unsure."""
    if len(raw) < DETECT_MIN_BYTES:
        return None
    result = chardet.detect(raw[:DETECT_SAMPLE_BYTES])
    label = KNOWN_LABELS.get((result.get("encoding") or "").lower())
    confidence = result.get("confidence") or 0.0
    if label is None or (confidence < DETECT_MIN_CONFIDENCE and label not in LATIN_CODECS):
        return None
    return label


def decode_bytes(raw: bytes) -> DecodedText:
    """Decode a byte blob to text, remembering the charset that worked.

    Order: BOM, strict UTF-8, chardet's proposal, then the GBK / GB2312 /
    Big5 / Latin-1 cascade. A Western label from chardet is tried whatever
    its confidence, so accented Latin-1 text is not mistaken for GBK. The
    first candidate that decodes cleanly and passes :func:`is_garbled` wins.
    The text is never trimmed or normalized so that byte offsets into its
    UTF-8 form stay faithful.
    """
    if not raw:
        return DecodedText(text="", charset="utf-8")

    bom = _sniff_bom(raw)
    if bom is not None:
        return bom

    text = _try_decode(raw, "utf-8")
    if text is not None and not is_garbled(text):
        return DecodedText(text=text, charset="utf-8")

    label = detect_label(raw)
    if label and label != "utf-8":
        text = _try_decode(raw, label)
        if text is not None and not is_garbled(text):
            return DecodedText(text=text, charset=label)
        log.debug("Detected charset %s rejected, running fallback cascade", label)

    for encoding in FALLBACK_CASCADE:
        text = _try_decode(raw, encoding)
        if text is not None and not is_garbled(text):
            if encoding == "latin-1":
                log.warning("Falling back to latin-1 decode")
            return DecodedText(text=text, charset=encoding)

    raise UnreadableEncoding("No decoder produced readable text")


def encode_text(text: str, charset: str) -> bytes:
    """Re-encode ``text`` with the label :func:`decode_bytes` reported."""
    return text.encode(charset)
