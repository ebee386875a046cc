"""
Sample application record used by test invocations.

Covers every catalog source field so operators see the full payload shape
their mappings produce without needing a real application.
"""

from datetime import date
from decimal import Decimal

from .records import ApplicationRecord

SAMPLE_APPLICATION = {
    "amount": Decimal("15000.00"),
    "purpose": "debt_consolidation",
    "term_months": 36,
    "duration_months": 36,
    "interest_rate": Decimal("7.900"),
    "monthly_payment": Decimal("469.35"),
    "employment_status": "employed",
    "monthly_income": Decimal("4200.00"),
    "loan_purpose_details": "Consolidating two credit cards into a single loan",
    "phone_number": "+15555550123",
}

SAMPLE_PROFILE = {
    "full_name": "Jane Mary Doe",
    "email": "jane.doe@example.com",
    "phone_number": "+15555550123",
    "gender": "female",
    "date_of_birth": date(1990, 5, 14),
}


def build_sample_record() -> ApplicationRecord:
    """Build a representative application record for test invocations."""
    return ApplicationRecord(
        application_id=None,
        application=dict(SAMPLE_APPLICATION),
        profile=dict(SAMPLE_PROFILE),
    )
