#!/usr/bin/env python3
"""
Generate a sample claims CSV with embedded overcharge patterns for exercising
the upload → baseline → scoring pipeline.
"""

import csv
import os
import random
from datetime import date, timedelta

random.seed(42)

OUTPUT_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "sample_data")
CLAIMS_CSV = os.path.join(OUTPUT_DIR, "claims.sample.csv")

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

DATE_START = date(2024, 6, 1)
DATE_END = date(2025, 9, 30)


def random_date(start=DATE_START, end=DATE_END):
    return start + timedelta(days=random.randint(0, (end - start).days))


def fmt_date(d):
    return d.strftime("%Y-%m-%d")


def money(value):
    return round(value, 2)


# ---------------------------------------------------------------------------
# Claims configuration
# ---------------------------------------------------------------------------

PROVIDER_TYPES = ["Hospital", "Clinic", "Lab", "Pharmacy", "DME"]
PROVIDERS = {f"PRV-{1000 + i}": random.choice(PROVIDER_TYPES) for i in range(40)}
PATIENT_IDS = [f"PAT-{10000 + i}" for i in range(150)]

# Typical price ranges per procedure code
PROCEDURE_PRICE_RANGES = {
    "99213": (75, 200),
    "99214": (120, 300),
    "99215": (180, 450),
    "80053": (20, 90),
    "85025": (15, 60),
    "71046": (60, 250),
    "E0601": (600, 1400),
    "J1100": (10, 40),
    "29881": (3000, 8000),
    "99285": (800, 2500),
}

DIAGNOSES = ["M54.5", "E11.9", "I10", "J06.9", "Z00.00", "M17.11", "K21.0", "R10.9"]

CLAIMS_HEADERS = [
    "claim_id", "patient_id", "age", "gender", "provider_id", "provider_type",
    "procedure_code", "diagnosis", "claim_charge", "service_date",
]


def _row(claim_id, provider, procedure, charge, provider_type=None):
    return [
        f"CLM-{claim_id:05d}",
        random.choice(PATIENT_IDS),
        random.randint(18, 90),
        random.choice(["F", "M"]),
        provider,
        PROVIDERS[provider] if provider_type is None else provider_type,
        procedure,
        random.choice(DIAGNOSES),
        f"{money(charge):.2f}",
        fmt_date(random_date()),
    ]


def generate_normal_claim(claim_id):
    provider = random.choice(list(PROVIDERS))
    procedure = random.choice(list(PROCEDURE_PRICE_RANGES))
    low, high = PROCEDURE_PRICE_RANGES[procedure]
    return _row(claim_id, provider, procedure, random.uniform(low, high))


def generate_overcharge_claims(start_id, count=25):
    """Charges 2-4x the top of the procedure's normal range."""
    rows = []
    for i in range(count):
        provider = random.choice(list(PROVIDERS))
        procedure = random.choice(list(PROCEDURE_PRICE_RANGES))
        _, high = PROCEDURE_PRICE_RANGES[procedure]
        rows.append(_row(start_id + i, provider, procedure, high * random.uniform(2.0, 4.0)))
    return rows


def generate_missing_metadata_claims(start_id, count=15):
    """Blank provider type and/or procedure code."""
    rows = []
    for i in range(count):
        row = generate_normal_claim(start_id + i)
        if i % 2 == 0:
            row[5] = ""
        if i % 3 == 0:
            row[6] = ""
        rows.append(row)
    return rows


def generate_dme_upcharge_claims(start_id, count=10):
    """Equipment claims billed well above the usual range."""
    dme_providers = [p for p, t in PROVIDERS.items() if t == "DME"] or list(PROVIDERS)[:1]
    return [
        _row(start_id + i, random.choice(dme_providers), "E0601", random.uniform(2200, 4000), "DME")
        for i in range(count)
    ]


def generate_claims_csv(total=500):
    all_rows = []
    claim_counter = 1

    for generator in (generate_overcharge_claims, generate_missing_metadata_claims, generate_dme_upcharge_claims):
        fraud_rows = generator(claim_counter)
        all_rows.extend(fraud_rows)
        claim_counter += len(fraud_rows)

    pattern_count = len(all_rows)
    normal_needed = total - pattern_count
    for i in range(normal_needed):
        all_rows.append(generate_normal_claim(claim_counter + i))

    # Shuffle so pattern rows aren't all at the top
    random.shuffle(all_rows)

    with open(CLAIMS_CSV, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(CLAIMS_HEADERS)
        writer.writerows(all_rows)

    print(f"Claims CSV written: {CLAIMS_CSV}")
    print(f"  Total rows: {len(all_rows)}")
    print(f"  Pattern rows: {pattern_count}")
    print(f"  Normal rows: {normal_needed}")


if __name__ == "__main__":
    os.makedirs(OUTPUT_DIR, exist_ok=True)
    generate_claims_csv()
