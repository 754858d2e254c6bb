"""
Header aliases for claim CSV uploads.

Keys are Claim fields; values are the header spellings seen in client
exports. Comparison ignores case, spaces, underscores and dashes, so
"Claim ID", "claim_id" and "claim-id" all resolve to `claim_id`.
"""

CLAIM_REQUIRED: dict[str, list[str]] = {
    "claim_charge": [
        "claimcharge", "claim_charge", "charge", "chargeamount", "totalcharge",
        "amountbilled", "billedamount", "billed_amount", "amount",
    ],
}

CLAIM_OPTIONAL: dict[str, list[str]] = {
    "claim_id": ["claimid", "claim_id", "claimnumber", "claimno", "clmid", "claim_number"],
    "patient_id": ["patientid", "patient_id", "memberid", "member_id", "subscriberid"],
    "age": ["age", "patientage"],
    "gender": ["gender", "sex"],
    "date_admitted": ["dateadmitted", "date_admitted", "admissiondate", "admitdate"],
    "date_discharged": ["datedischarged", "date_discharged", "dischargedate"],
    "claim_date": ["servicedate", "service_date", "claimdate", "claim_date", "dos", "dateofservice"],
    "diagnosis": ["diagnosis", "diagnosiscode", "dxcode", "icdcode", "primarydx"],
    "treatment": ["treatment", "treatmentcode"],
    "procedure_code": ["procedurecode", "procedure_code", "cptcode", "cpt", "proccode", "hcpcs"],
    "provider_id": ["providerid", "provider_id", "npi", "providernpi", "renderingnpi"],
    "provider_type": ["providertype", "provider_type", "providercategory"],
    "fraud_type": ["fraudtype", "fraud_type"],
}


def _normalize(name: str) -> str:
    return "".join(ch for ch in name.lower() if ch not in " _-")


def auto_map_columns(csv_headers: list[str]) -> dict[str, str | None]:
    """Map each claim field to the CSV header that carries it, or None.

    Aliases are tried in listed order and a header is assigned to at most
    one field; required fields claim their header first.
    """
    available = {_normalize(h): h for h in reversed(csv_headers) if h}
    mapping: dict[str, str | None] = {}

    for field_name, aliases in {**CLAIM_REQUIRED, **CLAIM_OPTIONAL}.items():
        mapping[field_name] = next(
            (available.pop(key) for key in map(_normalize, aliases) if key in available),
            None,
        )

    return mapping


def unmapped_required(mapping: dict[str, str | None]) -> list[str]:
    return [f for f in CLAIM_REQUIRED if mapping.get(f) is None]
