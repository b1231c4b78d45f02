"""Utility modules for openfm-api."""

from .form_validation import parse_station_form
from .prefixes import prefix_to_country
from .talkgroups import parse_talkgroup, parse_talkgroup_list

__all__ = [
    "parse_station_form",
    "prefix_to_country",
    "parse_talkgroup",
    "parse_talkgroup_list",
]
