"""Postcode area to region lookup."""

from __future__ import annotations

import re

from fuelwatch.core.models import RegionName

OTHER_REGION: RegionName = "Other"

# Postcode areas covered by the statistics screens. Areas not listed fall
# into OTHER_REGION.
POSTCODE_REGIONS: dict[str, RegionName] = {
    "AB": "Aberdeen",
    "B": "Birmingham",
    "BA": "Bath",
    "BN": "Brighton",
    "BR": "Bromley",
    "BS": "Bristol",
    "CB": "Cambridge",
    "CF": "Cardiff",
    "CH": "Chester",
    "CM": "Chelmsford",
    "CR": "Croydon",
    "CT": "Canterbury",
    "CV": "Coventry",
    "DA": "Dartford",
    "DD": "Dundee",
    "DE": "Derby",
    "DH": "Durham",
    "DL": "Darlington",
    "DN": "Doncaster",
    "EH": "Edinburgh",
    "EN": "Enfield",
    "G": "Glasgow",
    "GL": "Gloucester",
    "GU": "Guildford",
    "HA": "Harrow",
    "HD": "Huddersfield",
    "HG": "Harrogate",
    "HP": "Hemel Hempstead",
    "HR": "Hereford",
    "IG": "Ilford",
    "IP": "Ipswich",
    "KT": "Kingston",
    "L": "Liverpool",
    "LA": "Lancaster",
    "LE": "Leicester",
    "LS": "Leeds",
    "LU": "Luton",
    "M": "Manchester",
    "ME": "Medway",
    "MK": "Milton Keynes",
    "N": "North London",
    "NE": "Newcastle",
    "NG": "Nottingham",
    "NN": "Northampton",
    "NW": "North West London",
    "OX": "Oxford",
    "PE": "Peterborough",
    "PO": "Portsmouth",
    "RG": "Reading",
    "RH": "Redhill",
    "RM": "Romford",
    "S": "Sheffield",
    "SE": "South East London",
    "SG": "Stevenage",
    "SK": "Stockport",
    "SL": "Slough",
    "SM": "Sutton",
    "SN": "Swindon",
    "SO": "Southampton",
    "SP": "Salisbury",
    "SR": "Sunderland",
    "SS": "Southend",
    "ST": "Stoke",
    "SW": "South West London",
    "TN": "Tonbridge",
    "TW": "Twickenham",
    "UB": "Uxbridge",
    "W": "West London",
    "WA": "Warrington",
    "WC": "Central London",
    "WD": "Watford",
    "WF": "Wakefield",
    "WN": "Wigan",
    "WR": "Worcester",
    "WS": "Walsall",
    "WV": "Wolverhampton",
    "YO": "York",
}

_AREA_RE = re.compile(r"^([A-Za-z]{1,2})(?=\d|\s|$)")


def postcode_area(postcode: str) -> str | None:
    """Return the alphabetic area code of a postcode (``"SW1A 1AA"`` -> ``"SW"``).

    The area is the run of one or two letters before the first digit.
    """
    match = _AREA_RE.match(postcode.strip())
    if match is None:
        return None
    return match.group(1).upper()


def region_for_postcode(postcode: str) -> RegionName:
    """Map a postcode to its region name, or OTHER_REGION."""
    area = postcode_area(postcode)
    if area is None:
        return OTHER_REGION
    return POSTCODE_REGIONS.get(area, OTHER_REGION)
