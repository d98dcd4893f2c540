"""Caption text for flight maps.

Track files are stored under a canonical name,
YYYY-MM-DD-<registration>-<hash>.kml (e.g. 2025-05-29-ZS-HMB-727b7ddf.kml),
so the date and registration come from the filename.  Owners come from an
optional registry file keyed by registration."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import orjson

logger = logging.getLogger(__name__)

UNKNOWN_DATE = "Unknown Date"
UNKNOWN_REGISTRATION = "Unknown Registration"
UNKNOWN_OWNER = "Unknown Owner"

DATE_RE = re.compile(r"(\d{4}-\d{2}-\d{2})")
REGISTRATION_RE = re.compile(r"(\d{4}-\d{2}-\d{2})-([A-Z]{2}-[A-Z0-9]{3})")

@dataclass(frozen=True)
class FlightCaption:
    date: str = UNKNOWN_DATE
    registration: str = UNKNOWN_REGISTRATION
    owner: Optional[str] = None

    def owner_known(self) -> bool:
        return bool(self.owner) and self.owner != UNKNOWN_OWNER

    def flight_line(self) -> str:
        owner_text = f" ({self.owner})" if self.owner_known() else ""
        return f"Flight taken on {self.date}, by {self.registration}{owner_text}."

    def incident_text(self, zone_label: str, image_ref: Optional[str] = None) -> str:
        """One-paragraph incident report, as sent to the park authorities."""
        owner = self.owner if self.owner_known() else UNKNOWN_OWNER
        text = (f"It appears that a helicopter, registration {self.registration} "
                f"({owner}), entered restricted airspace ({zone_label}) on {self.date}.")
        if image_ref:
            text += f" Please find a flight map here: {image_ref}."
        return text

def zone_line(zone_label: str) -> str:
    return f"Restricted airspace ({zone_label}) shown in red."

def load_owner_registry(path) -> dict[str, str]:
    """Read a registry json of the form
    {"ZS-HMB": {"registration": "ZS-HMB", "owner": "...", "imageUrl": "..."}}
    and return registration -> owner.  Missing file gives an empty registry."""
    path = Path(path)
    if not path.exists():
        logger.info("No owner registry at %s", path)
        return {}
    data = orjson.loads(path.read_bytes())
    owners = {}
    for registration, entry in data.items():
        owner = entry.get("owner") if isinstance(entry, dict) else entry
        if owner:
            owners[registration] = owner
    logger.info("Loaded %d aircraft owners from %s", len(owners), path)
    return owners

def caption_for_file(filename: str, owners: Optional[dict[str, str]] = None) -> FlightCaption:
    """Build a caption from a canonical track filename."""
    date_match = DATE_RE.search(filename)
    reg_match = REGISTRATION_RE.search(filename)
    date = date_match.group(1) if date_match else UNKNOWN_DATE
    registration = reg_match.group(2) if reg_match else UNKNOWN_REGISTRATION
    owner = (owners or {}).get(registration)
    return FlightCaption(date=date, registration=registration, owner=owner)
