"""Validation and normalization of submitted station setup forms."""

import re
from collections.abc import Mapping

from pydantic import BaseModel

from ..exceptions import ConfigValidationError

# Form fields of the setup page, in submission order
EXPECTED_FIELDS: tuple[str, ...] = (
    "Callsign",
    "Region",
    "Location",
    "Locator",
    "Latitude",
    "Longitude",
    "URL",
    "CTCSS",
    "SYSOP",
    "RXFrequency",
    "TXFrequency",
    "Network",
    "CTCSSRepeater",
    "TGDefault",
    "TGMonitored",
    "RebootFlag",
)

CALLSIGN_RE = re.compile(r"[A-Za-z0-9/]{3,}")
DIGITS_RE = re.compile(r"[0-9]+")
NUMERIC_RE = re.compile(r"[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?")
URL_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)

# Characters removed from both ends of every value (Unicode spaces are kept)
TRIM_CHARS = " \t\n\r\0\x0b"

# default_tg is a signed 32-bit INT column
TG_DEFAULT_MAX = 2**31 - 1


class StationConfigUpdate(BaseModel):
    """Normalized values ready to be written to the config row."""

    callsign: str
    node_location: str | None = None
    location: str | None = None
    locator: str | None = None
    sysop: str | None = None
    latitude: str
    longitude: str
    website: str | None = None
    rx_freq: str
    tx_freq: str
    dns_domain: str | None = None
    ctcss: str | None = None
    default_tg: int | None = None
    monitor_tgs: str | None = None
    reboot_requested: bool = False


def collect_fields(form: Mapping[str, object]) -> dict[str, str]:
    """Pick the expected fields from a submitted form.

    Missing fields and non-text values such as uploaded files become empty
    strings, and every value is trimmed of ASCII whitespace and NUL. Decimal
    commas in coordinates are turned into points, and a website without a
    scheme gets ``https://``.
    """
    data = {}
    for name in EXPECTED_FIELDS:
        value = form.get(name)
        data[name] = value.strip(TRIM_CHARS) if isinstance(value, str) else ""

    for name in ("Latitude", "Longitude"):
        if data[name]:
            data[name] = data[name].replace(",", ".")

    if data["URL"] and not URL_SCHEME_RE.match(data["URL"]):
        data["URL"] = "https://" + data["URL"]

    return data


def exceeds(digits: str, limit: int) -> bool:
    """Compare a digit string against a limit without converting huge numbers."""
    digits = digits.lstrip("0")
    return len(digits) > len(str(limit)) or int(digits or "0") > limit


def is_numeric(value: str) -> bool:
    """Decimal or exponent notation number check."""
    return bool(NUMERIC_RE.fullmatch(value))


def validate_fields(data: Mapping[str, str]) -> list[str]:
    """Return every violation found in the collected fields."""
    errors: list[str] = []

    if not data["Callsign"] or not CALLSIGN_RE.fullmatch(data["Callsign"]):
        errors.append("Invalid callsign")

    for name in ("RXFrequency", "TXFrequency"):
        if not data[name] or not DIGITS_RE.fullmatch(data[name]):
            errors.append(f"{name} must be an integer number (Hz)")

    latitude, longitude = data["Latitude"], data["Longitude"]
    if (
        not latitude
        or not longitude
        or not is_numeric(latitude)
        or not is_numeric(longitude)
    ):
        errors.append("Latitude/Longitude invalid")

    if data["TGDefault"]:
        if not DIGITS_RE.fullmatch(data["TGDefault"]):
            errors.append("TGDefault must be numeric if set")
        elif exceeds(data["TGDefault"], TG_DEFAULT_MAX):
            errors.append(f"TGDefault must not exceed {TG_DEFAULT_MAX}")

    return errors


def _optional(value: str) -> str | None:
    return value if value else None


def parse_station_form(
    form: Mapping[str, object],
) -> tuple[StationConfigUpdate, int]:
    """Validate a submitted setup form.

    Args:
        form: Submitted form fields (the password field is ignored)

    Returns:
        Tuple of the normalized update and the number of non-empty fields

    Raises:
        ConfigValidationError: With all violations when any field is invalid
    """
    data = collect_fields(form)

    errors = validate_fields(data)
    if errors:
        raise ConfigValidationError(errors)

    update = StationConfigUpdate(
        callsign=data["Callsign"].upper(),
        node_location=_optional(data["Region"]),
        location=_optional(data["Location"]),
        locator=data["Locator"].upper() if data["Locator"] else None,
        sysop=_optional(data["SYSOP"]),
        latitude=data["Latitude"],
        longitude=data["Longitude"],
        website=_optional(data["URL"]),
        rx_freq=data["RXFrequency"],
        tx_freq=data["TXFrequency"],
        dns_domain=_optional(data["Network"]),
        # The repeater tone is what the node actually uses
        ctcss=data["CTCSSRepeater"],
        default_tg=int(data["TGDefault"]) if data["TGDefault"] else None,
        monitor_tgs=_optional(data["TGMonitored"]),
        reboot_requested=data["RebootFlag"] == "1",
    )

    filled = sum(1 for value in data.values() if value != "")
    return update, filled
