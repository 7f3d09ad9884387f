import csv
import datetime as dt

import pytest

from receipt_ledger.core.reporting import (CSV_HEADERS, build_summary_pdf, default_export_name,
                                           summarize, write_csv)

from conftest import make_record


def test_csv_export(tmp_path):
    records = [
        make_record("2", "2024-02-01", synced=True, merchant_name='Joe\'s "Best", Deli'),
        make_record("1", "2024-01-01", items=()),
    ]
    out = tmp_path / "receipts.csv"

    write_csv(records, out)

    with out.open(newline="", encoding="utf-8") as fh:
        rows = list(csv.reader(fh))
    assert rows[0] == CSV_HEADERS
    assert rows[1] == ["2", "2024-02-01", 'Joe\'s "Best", Deli', "10.0", "$", "Food", "Synced", "2"]
    assert rows[2][6:] == ["Local", "0"]


def test_default_export_name():
    assert default_export_name(dt.date(2024, 5, 1)) == "receipts_export_2024-05-01.csv"


def test_summarize_keeps_currencies_apart():
    records = [
        make_record("1", "2024-01-03", total_amount=5.0),
        make_record("2", "2024-01-20", total_amount=2.5),
        make_record("3", "2024-02-01", total_amount=4.0, currency="EUR"),
        make_record("4", "", total_amount=1.0, category="Transport"),
    ]

    category_totals, monthly_totals = summarize(records)

    assert category_totals == {("Food", "$"): 7.5, ("Food", "EUR"): 4.0, ("Transport", "$"): 1.0}
    assert monthly_totals == {("2024-01", "$"): 7.5, ("2024-02", "EUR"): 4.0, ("Unknown", "$"): 1.0}


def test_summary_pdf_with_many_records(tmp_path):
    records = [make_record(str(i), f"2024-01-{i % 28 + 1:02d}") for i in range(120)]
    out = tmp_path / "summary.pdf"

    build_summary_pdf(records, out)

    assert out.read_bytes().startswith(b"%PDF")


@pytest.mark.parametrize("date", ["not a date", "2024/01/05", "2024-13-01"])
def test_malformed_dates_are_unknown_month(tmp_path, date):
    records = [make_record("1", date, total_amount=3.0), make_record("2", "2024-03-09")]

    _, monthly_totals = summarize(records)
    assert monthly_totals == {("Unknown", "$"): 3.0, ("2024-03", "$"): 10.0}

    out = tmp_path / "summary.pdf"
    build_summary_pdf(records, out)
    assert out.read_bytes().startswith(b"%PDF")
