"""
Shared fixtures: sample statement text for several bank layouts.
"""
from datetime import date
from decimal import Decimal

import pytest

from ..models.schema import ParsedTransaction

COMMBANK_HEADER = "\n".join([
    "COMMONWEALTH BANK OF AUSTRALIA",
    "CommBank Smart Access",
    "Account number: 1234 5678 9012 3456",
    "Statement period: 1 Jan 2024 to 31 Jan 2024",
    "Opening balance: $1,000.00",
    "Closing balance: $2,764.72",
])

COMMBANK_ROWS = [
    "03 Jan 2024 SALARY ACME PTY LTD 4,000.00 5,000.00",
    "05 Jan 2024 WOOLWORTHS 1234 SYDNEY -156.78 4,843.22",
    "10 Jan 2024 TRANSFER TO SAVINGS -2,000.00 2,843.22",
    "15 Jan 2024 CREDIT INTEREST 10.50 2,853.72",
    "20 Jan 2024 DIRECT DEBIT TELSTRA -89.00 2,764.72",
]


def commbank_page(rows):
    return "\n".join(["Transaction details", "Date Description Amount Balance"] + rows + ["Page 2 of 2"])


@pytest.fixture
def commbank_pages():
    """Two-page CommBank statement that reconciles exactly."""
    return [COMMBANK_HEADER, commbank_page(COMMBANK_ROWS)]


@pytest.fixture
def commbank_duplicate_pages():
    """CommBank statement with the savings transfer printed twice."""
    rows = COMMBANK_ROWS[:3] + [COMMBANK_ROWS[2]] + COMMBANK_ROWS[3:]
    return [COMMBANK_HEADER, commbank_page(rows)]


@pytest.fixture
def nab_pages():
    """NAB statement with debit/credit columns and two unsigned rows."""
    return ["\n".join([
        "National Australia Bank Limited ABN 12 004 044 937",
        "NAB Classic Banking",
        "Account number: 083-123 45-678",
        "Statement period: 01/03/2024 to 31/03/2024",
        "Opening balance: $500.00",
        "Closing balance: $1,140.00",
        "Date Description Debit Credit Balance",
        "01/03/2024 BROUGHT FORWARD - - 500.00",
        "02/03/2024 PAYROLL DEPOSIT - 1,000.00 1,500.00",
        "05/03/2024 EFTPOS COLES 4321 120.00 - 1,380.00",
        "09/03/2024 ATM WITHDRAWAL 200.00 1,180.00",
        "15/03/2024 REFUND FROM STORE 40.00 1,220.00",
        "20/03/2024 MONTHLY ACCOUNT FEE 5.00 - 1,215.00",
        "28/03/2024 BPAY ENERGY AUSTRALIA 75.00 - 1,140.00",
    ])]


@pytest.fixture
def anz_pages():
    """ANZ statement with year-less dates spanning new year."""
    return ["\n".join([
        "Australia and New Zealand Banking Group Limited",
        "ANZ Access Advantage",
        "Statement period: 15 Dec 2023 to 14 Jan 2024",
        "Opening balance: $200.00",
        "Closing balance: $260.00",
        "Date Details Withdrawals Deposits Balance",
        "20 Dec WAGES ACME - 100.00 300.00",
        "05 Jan WOOLWORTHS 40.00 - 260.00",
    ])]


@pytest.fixture
def westpac_pages():
    """Westpac statement with debit/credit columns and two-digit years."""
    return ["\n".join([
        "Westpac Banking Corporation ABN 33 007 457 141",
        "Westpac Choice",
        "BSB 032-000 Account number: 123 456",
        "Statement period: 01/03/2024 to 31/03/2024",
        "Opening balance: $100.00",
        "Closing balance: $1,050.00",
        "Date Transaction Details Debit Credit Balance",
        "01/03/24 PAYROLL - 1,000.00 1,100.00",
        "04/03/24 EFTPOS BAKERY 50.00 - 1,050.00",
    ])]


@pytest.fixture
def ing_pages():
    """ING statement with signed amounts."""
    return ["\n".join([
        "ING Bank (Australia) Limited ABN 24 000 893 292",
        "Orange Everyday",
        "Account name: J CITIZEN",
        "Statement period: 01/04/2024 to 30/04/2024",
        "Opening balance: $20.00",
        "Closing balance: $70.00",
        "Date Description Money out Money in Balance",
        "02/04/2024 SALARY ACME 60.00 80.00",
        "05/04/2024 VISA PURCHASE CAFE -10.00 70.00",
    ])]


@pytest.fixture
def unknown_pages():
    return ["Dear customer,\nThank you for your letter.", "Kind regards"]


@pytest.fixture
def make_transaction():
    """Factory for ParsedTransaction with sensible defaults."""
    def factory(day=date(2024, 1, 10), description="TRANSFER TO SAVINGS",
                debit=None, credit=None, **kwargs):
        if debit is None and credit is None:
            debit = Decimal("100.00")
        fields = dict(
            transaction_date=day,
            description=description,
            normalized_description=description,
            debit=Decimal(str(debit)) if debit is not None else None,
            credit=Decimal(str(credit)) if credit is not None else None,
            source_page=1,
            source_line_index=0,
        )
        fields.update(kwargs)
        return ParsedTransaction(**fields)

    return factory
