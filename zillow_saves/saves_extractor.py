"""
Saves extractor – regex-based extraction of the daily saves count from a
listing-report email body.

Patterns are compiled once at import time and applied in order against
the lower-cased body.  The first pattern that yields an integer wins.
"""

import logging
import re

from zillow_saves.errors import ConfigError

log = logging.getLogger(__name__)

# Active patterns, applied in order.
SAVES_PATTERNS = (
    re.compile(r"(\d+)\s+saves?"),
)

# Phrasing variants seen in other report templates.  Not active by
# default; pass them through config "extra_patterns" to enable.
ALTERNATE_SAVES_PATTERNS = (
    re.compile(r"saved\s+(\d+)\s+times?"),
    re.compile(r"(\d+)\s+people?\s+saved"),
    re.compile(r"total\s+saves?:\s*(\d+)"),
    re.compile(r"save\s+count:\s*(\d+)"),
    re.compile(r"(\d+)\s+favorites?"),
    re.compile(r"favorited\s+(\d+)\s+times?"),
)


def compile_patterns(raw_patterns):
    """Compile user-supplied regex strings, appended after the defaults.

    Matching runs on lower-cased text, so patterns are compiled with
    IGNORECASE to keep upper-case literals working.
    """
    compiled = list(SAVES_PATTERNS)
    for raw in raw_patterns or []:
        try:
            pat = re.compile(raw, re.IGNORECASE)
        except re.error as exc:
            raise ConfigError(f"Invalid saves pattern {raw!r}: {exc}") from exc
        if pat.groups < 1:
            raise ConfigError(f"Saves pattern {raw!r} has no capture group")
        compiled.append(pat)
    return tuple(compiled)


def extract_saves_count(body, patterns=SAVES_PATTERNS):
    """Return (count, found) for the first pattern that matches *body*.

    An unmatched body is not an error here: the caller decides what a
    missing count means for the batch.
    """
    lower = (body or "").lower()
    for pat in patterns:
        m = pat.search(lower)
        if not m:
            continue
        try:
            count = int(m.group(1))
        except (TypeError, ValueError):
            log.debug("Pattern %r matched non-integer %r", pat.pattern, m.group(1))
            continue
        log.debug("Saves pattern %r matched '%s'", pat.pattern, m.group(0))
        return count, True
    return 0, False
