"""Talkgroup parameter parsing for the last-heard filters."""

import re

_LEADING_INT_RE = re.compile(r"\s*([+-]?)0*([0-9]+)")

# Signed 64-bit range of the tg column; larger numbers saturate
TALKGROUP_MAX = 2**63 - 1
TALKGROUP_MIN = -(2**63)


def parse_talkgroup(value: str | None) -> int:
    """Parse a talkgroup number the lenient way.

    Leading whitespace is skipped and the leading integer part is used
    ("262abc" is 262). Anything without a leading integer is 0, and numbers
    beyond the 64-bit range are clamped to its bounds.
    """
    if not value:
        return 0
    match = _LEADING_INT_RE.match(value)
    if not match:
        return 0

    sign, digits = match.groups()
    if len(digits) > len(str(TALKGROUP_MAX)):
        return TALKGROUP_MIN if sign == "-" else TALKGROUP_MAX
    return max(TALKGROUP_MIN, min(TALKGROUP_MAX, int(sign + digits)))


def parse_talkgroup_list(value: str | None) -> list[int]:
    """Parse a comma-separated talkgroup list, keeping positive numbers only."""
    if not value:
        return []
    talkgroups = (parse_talkgroup(token.strip()) for token in value.split(","))
    return [tg for tg in talkgroups if tg > 0]
