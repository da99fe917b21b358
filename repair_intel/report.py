"""Plaintext cost-analysis report.

``format_report`` is pure: the same identity, estimate and ``today`` always
produce the same text, so a stored estimate can be re-rendered without going
back to Claude.
"""
from datetime import date
from typing import List

from .models import CostEstimate, CustomerIdentity, RepairCategory

HEAVY_RULE = "═" * 43
MEDIUM_RULE = "━" * 40
THIN_RULE = "─" * 43

DEFAULT_PREPARED_BY = "Anarumo Inspection Services"
BRAND = "The Repair Intel"


def format_money(amount: float) -> str:
    amount = float(amount or 0)
    if amount.is_integer():
        return f"${int(amount):,}"
    # en-US number formatting: up to three decimals, no trailing zeros
    return "$" + f"{amount:,.3f}".rstrip("0").rstrip(".")


def format_report_date(d: date) -> str:
    return f"{d.month}/{d.day}/{d.year}"


def _header(identity: CustomerIdentity, today: date, prepared_by: str) -> str:
    return (
        f"{HEAVY_RULE}\n"
        f"         THE REPAIR INTEL\n"
        f"   COST ANALYSIS INTELLIGENCE REPORT\n"
        f"{HEAVY_RULE}\n"
        f"\n"
        f"PREPARED FOR:      {identity.full_name}\n"
        f"PROPERTY ADDRESS:  {identity.property_address}\n"
        f"DATE PREPARED:     {format_report_date(today)}\n"
        f"PREPARED BY:       {prepared_by}\n"
        f"\n"
        f"{MEDIUM_RULE}\n"
        f"\n"
        f"EXECUTIVE SUMMARY\n"
        f"\n"
        f"This intelligence report provides repair cost estimates \n"
        f"based on your home inspection findings. Costs are shown \n"
        f"as HANDYMAN to CONTRACTOR ranges.\n"
        f"\n"
        f"{HEAVY_RULE}\n"
        f"\n"
    )


def _category_block(cat: RepairCategory) -> str:
    lines: List[str] = [
        f"{cat.category_name}",
        "",
        "Estimated Range: Handyman to Contractor",
        f"  Handyman Cost:   {format_money(cat.handyman_cost)}",
        f"  Contractor Cost: {format_money(cat.contractor_cost)}",
        "",
        "Referenced inspection items:",
    ]
    for item in cat.inspection_items:
        lines.append(f"  • Section {item.section_number} – {item.description}")
    lines.append("")
    lines.append(f"Recommended Trade: {cat.recommended_trade}")
    return "\n".join(lines) + "\n"


def _footer(estimate: CostEstimate, today: date) -> str:
    return (
        f"\n{HEAVY_RULE}\n"
        f"\n"
        f"TOTAL ESTIMATED REPAIR RANGE\n"
        f"\n"
        f"Handyman Total:   {format_money(estimate.handyman_total)}\n"
        f"Contractor Total: {format_money(estimate.contractor_total)}\n"
        f"\n"
        f"Note: These estimates are for negotiation context only.\n"
        f"\n"
        f"{HEAVY_RULE}\n"
        f"© {today.year} {BRAND}\n"
    )


def format_report(
    identity: CustomerIdentity,
    estimate: CostEstimate,
    today: date,
    prepared_by: str = DEFAULT_PREPARED_BY,
) -> str:
    separator = f"\n{THIN_RULE}\n\n"
    body = separator.join(_category_block(cat) for cat in estimate.repair_categories)
    return _header(identity, today, prepared_by) + body + _footer(estimate, today)
