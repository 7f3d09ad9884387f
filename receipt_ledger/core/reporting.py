"""
CSV export and PDF summary of the canonical record set.
"""

import csv
import calendar
import datetime as dt
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .models import Record
from .utils import money_fmt, parse_transaction_date

CSV_HEADERS = ["ID", "Date", "Merchant", "Total", "Currency", "Category", "Status", "Items Count"]


def sync_status(record: Record) -> str:
    return "Synced" if record.synced else "Local"


def default_export_name(today: Optional[dt.date] = None) -> str:
    """File name for a CSV export, e.g. receipts_export_2024-05-01.csv."""
    today = today or dt.date.today()
    return f"receipts_export_{today.isoformat()}.csv"


def export_rows(records: Sequence[Record]) -> List[List]:
    """Flat tabular projection of the records, one row per record."""
    return [
        [r.id, r.transaction_date, r.merchant_name, r.total_amount, r.currency,
         r.category, sync_status(r), len(r.items)]
        for r in records
    ]


def write_csv(records: Sequence[Record], out_csv: Path):
    """Write records to a CSV file."""
    out_csv.parent.mkdir(parents=True, exist_ok=True)
    with out_csv.open("w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(CSV_HEADERS)
        w.writerows(export_rows(records))


def _month_label(year_month: str) -> str:
    if year_month != "Unknown":
        year, month = year_month.split("-")
        return f"{calendar.month_name[int(month)]} {year}"
    return year_month


def summarize(records: Sequence[Record]) -> Tuple[Dict[Tuple[str, str], float],
                                                  Dict[Tuple[str, str], float]]:
    """
    Totals by (category, currency) and by (year-month, currency).

    Amounts in different currencies are never added together.
    """
    category_totals = defaultdict(float)
    monthly_totals = defaultdict(float)
    for r in records:
        parsed = parse_transaction_date(r.transaction_date)
        year_month = parsed.strftime("%Y-%m") if parsed else "Unknown"
        category_totals[(r.category or "Uncategorized", r.currency)] += float(r.total_amount or 0.0)
        monthly_totals[(year_month, r.currency)] += float(r.total_amount or 0.0)
    return dict(category_totals), dict(monthly_totals)


def build_summary_pdf(records: Sequence[Record], out_pdf: Path,
                      title: str = "Receipts Summary"):
    """
    Build a summary PDF: category totals, monthly totals, then one line per
    record with its sync status.
    """
    from reportlab.lib.pagesizes import letter
    from reportlab.pdfgen import canvas
    from reportlab.lib.units import inch

    category_totals, monthly_totals = summarize(records)

    out_pdf.parent.mkdir(parents=True, exist_ok=True)
    c = canvas.Canvas(out_pdf.as_posix(), pagesize=letter)
    width, height = letter

    def new_page_if_needed(y: float, limit: float = 1.0 * inch) -> float:
        if y < limit:
            c.showPage()
            c.setFont("Helvetica", 9)
            return height - 1 * inch
        return y

    # Title
    y = height - 1 * inch
    c.setFont("Helvetica-Bold", 16)
    c.drawString(1 * inch, y, title)
    y -= 0.3 * inch
    c.setFont("Helvetica", 10)
    timestamp = dt.datetime.now().isoformat(timespec='seconds')
    synced = sum(1 for r in records if r.synced)
    c.drawString(1 * inch, y, f"Generated: {timestamp}   Receipts: {len(records)}   Synced: {synced}")
    y -= 0.4 * inch

    # Category Totals
    c.setFont("Helvetica-Bold", 12)
    c.drawString(1 * inch, y, "Category Totals")
    y -= 0.25 * inch
    c.setFont("Helvetica", 10)
    for (cat, currency), amt in sorted(category_totals.items()):
        c.drawString(1.1 * inch, y, f"{cat}: {money_fmt(amt, currency)}")
        y = new_page_if_needed(y - 0.2 * inch)

    # Monthly breakdown
    y -= 0.2 * inch
    c.setFont("Helvetica-Bold", 12)
    c.drawString(1 * inch, y, "Monthly Totals")
    y -= 0.25 * inch
    c.setFont("Helvetica", 10)
    for (year_month, currency), amt in sorted(monthly_totals.items(), reverse=True):
        c.drawString(1.1 * inch, y, f"{_month_label(year_month)}: {money_fmt(amt, currency)}")
        y = new_page_if_needed(y - 0.2 * inch)

    # Records, canonical order
    c.showPage()
    y = height - 1 * inch
    c.setFont("Helvetica-Bold", 9)
    c.drawString(1.00 * inch, y, "Date")
    c.drawString(2.00 * inch, y, "Merchant")
    c.drawString(4.10 * inch, y, "Category")
    c.drawString(5.60 * inch, y, "Status")
    c.drawRightString(7.50 * inch, y, "Total")
    y -= 0.15 * inch
    c.line(1.0 * inch, y, 7.6 * inch, y)
    y -= 0.15 * inch

    c.setFont("Helvetica", 9)
    for r in records:
        c.drawString(1.00 * inch, y, (r.transaction_date or "")[:10])
        c.drawString(2.00 * inch, y, (r.merchant_name or "")[:30])
        c.drawString(4.10 * inch, y, (r.category or "")[:20])
        c.drawString(5.60 * inch, y, sync_status(r))
        c.drawRightString(7.50 * inch, y, money_fmt(r.total_amount, r.currency))
        y = new_page_if_needed(y - 0.18 * inch, limit=0.8 * inch)

    c.showPage()
    c.save()
