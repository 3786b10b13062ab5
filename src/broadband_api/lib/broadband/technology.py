"""Technology-code lookup tables for FCC broadband data.

Two code systems are in use: the legacy Form 477 codes (open-data API and
ArcGIS map service) and the Broadband Data Collection (BDC) codes used by the
National Broadband Map and the bulk availability files mirrored locally.
"""

from enum import StrEnum

FORM_477_TECHNOLOGIES: dict[str, str] = {
    "10": "Copper Wireline",
    "11": "DSL",
    "12": "DSL - ADSL",
    "13": "DSL - SDSL",
    "14": "DSL - HDSL",
    "15": "DSL - VDSL",
    "16": "DSL - IDSL",
    "20": "Optical Carrier/Fiber to the End User",
    "30": "Cable Modem - DOCSIS 1, 1.1, 2.0",
    "31": "Cable Modem - DOCSIS 3.0",
    "32": "Cable Modem - DOCSIS 3.1",
    "40": "Terrestrial Fixed Wireless",
    "41": "Terrestrial Fixed Wireless - Unlicensed",
    "42": "Terrestrial Fixed Wireless - Licensed",
    "43": "Terrestrial Fixed Wireless - MMDS BRS",
    "50": "Satellite",
    "60": "Electric Power Line",
    "70": "All Other",
    "90": "Other",
}

BDC_TECHNOLOGIES: dict[str, str] = {
    "0": "Other",
    "10": "Asymmetric xDSL",
    "11": "ADSL2, ADSL2+",
    "12": "VDSL",
    "20": "Symmetric xDSL",
    "30": "Other Copper Wireline",
    "40": "Cable Modem - DOCSIS 1.0",
    "41": "Cable Modem - DOCSIS 1.1",
    "42": "Cable Modem - DOCSIS 2.0",
    "43": "Cable Modem - DOCSIS 3.0",
    "44": "Cable Modem - DOCSIS 3.1",
    "45": "Cable Modem - DOCSIS 4.0",
    "50": "Optical Carrier/Fiber to the End User",
    "60": "Satellite",
    "61": "Satellite - GSO",
    "62": "Satellite - NGSO",
    "70": "Terrestrial Fixed Wireless",
    "71": "Terrestrial Fixed Wireless - Licensed",
    "72": "Terrestrial Fixed Wireless - Unlicensed",
    "73": "Terrestrial Fixed Wireless - CBRS",
    "74": "Terrestrial Fixed Wireless - 60GHz (802.11ad/ay)",
    "90": "Electric Power Line",
}


class TechnologyCodeSystem(StrEnum):
    """Which code table a data source reports in."""

    FORM_477 = "form_477"
    BDC = "bdc"


_TABLES: dict[TechnologyCodeSystem, dict[str, str]] = {
    TechnologyCodeSystem.FORM_477: FORM_477_TECHNOLOGIES,
    TechnologyCodeSystem.BDC: BDC_TECHNOLOGIES,
}


def normalize_code(code: object) -> str:
    """Return the canonical string form of a technology code.

    ``50``, ``"50"``, ``50.0`` and ``" 50 "`` all become ``"50"``; values that
    are not integral numbers are returned stripped, as text.
    """
    if code is None:
        return ""
    text = str(code).strip()
    try:
        number = float(text)
    except ValueError:
        return text
    if number.is_integer():
        return str(int(number))
    return text


def technology_name(code: object, system: TechnologyCodeSystem) -> str:
    """Map a technology code to its human-readable name.

    Unknown codes never fail; they map to ``"Technology Code {code}"``.

    Args:
        code: Raw code as reported by the source.
        system: The code table the source reports in.
    """
    key = normalize_code(code)
    return _TABLES[system].get(key, f"Technology Code {key}")
