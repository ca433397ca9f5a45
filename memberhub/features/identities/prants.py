"""
Prant (state-level region) registry and the short codes used in membership ids.
"""
from typing import Optional

PRANT_CODES: dict[str, str] = {
    "Gujarat Prant": "GUJ",
    "Meerut Prant": "MRT",
    "Jodhpur Prant": "JDH",
    "Telangana Prant": "TLG",
    "North Tamil Nadu Prant": "NTN",
    "Punjab Prant": "PNJ",
    "Jammu & Kashmir Prant": "JNK",
    "Chittor Prant": "CHT",
    "Jaipur Prant": "JPR",
    "Bangalore Prant": "BLR",
    "Paschim Maharashtra Prant": "PMH",
    "Jharkhand Prant": "JHK",
    "Kashi Prant": "KSH",
    "Awadh Prant": "AWD",
    "Konkan Prant": "KNK",
    "Chhattisgarh Prant": "CHG",
    "South Bengal Prant": "SBG",
    "Malwa Prant": "MLW",
    "Himachal Prant": "HIM",
    "Kerala Prant": "KER",
    "Madhya Bharat Prant": "MBH",
    "Vidarbha Prant": "VID",
    "Haryana Prant": "HRY",
    "Kanpur Prant": "KNP",
    "Delhi Prant": "DEL",
    "South Tamil Nadu Prant": "STN",
    "Andhra Pradesh Prant": "APR",
    "South Karnataka Prant": "SKT",
    "North Karnataka Prant": "NKT",
    "Deogiri Prant": "DGR",
    "Mahakaushal Prant": "MKL",
    "Orissa East Prant": "ORE",
    "Orissa West Prant": "ORW",
    "North Bengal Prant": "NBG",
    "Sikkim - Darjeeling Prant": "SDK",
    "Assam Prant": "ASM",
    "Arunachal Pradesh Prant": "ARP",
    "Nagaland Prant": "NGL",
    "Manipur Prant": "MNP",
    "Mizoram Prant": "MZR",
    "Meghalaya Prant": "MGY",
    "South Bihar Prant": "SBH",
    "North Bihar Prant": "NBH",
    "Goraksha Prant": "GRK",
    "Braj Prant": "BRJ",
    "Uttarakhand Prant": "UTK",
}

PRANTS: tuple[str, ...] = tuple(PRANT_CODES)


def prant_code(state: Optional[str]) -> str:
    """Short code for a prant; unknown names fall back to their first three letters."""
    if not state:
        return "GEN"
    code = PRANT_CODES.get(state)
    if code:
        return code
    letters = "".join(ch for ch in state if ch.isalpha())
    return (letters[:3] or "GEN").upper()


def is_known_prant(state: str) -> bool:
    return state in PRANT_CODES
