import pandas as pd
import pytest

from workforce_ingest import ingestion
from workforce_ingest.errors import SourceReadError


def test_read_csv_keeps_strings_and_drops_blank_rows(tmp_path):
    csv_path = tmp_path / "extract.csv"
    csv_path.write_text(
        "Person Number,Name,Annual Salary\n"
        "00123,Ann Lee,\"85,000\"\n"
        ",,\n"
        "00124,Bo Chen,\n",
        encoding="utf-8",
    )

    source = ingestion.read_source(csv_path)

    assert source.file_name == "extract.csv"
    assert source.file_size == csv_path.stat().st_size
    assert source.headers == ["Person Number", "Name", "Annual Salary"]
    assert len(source.rows) == 2
    assert source.rows[0]["Person Number"] == "00123"
    assert source.rows[0]["Annual Salary"] == "85,000"
    assert source.rows[1]["Annual Salary"] is None


def test_read_excel_first_sheet(tmp_path):
    excel_path = tmp_path / "extract.xlsx"
    pd.DataFrame(
        {" Person Number ": ["A1", "A2"], "Department Name": ["Sales", None]}
    ).to_excel(excel_path, index=False)

    source = ingestion.read_source(excel_path)

    assert source.headers == ["Person Number", "Department Name"]
    assert [row["Person Number"] for row in source.rows] == ["A1", "A2"]
    assert source.rows[1]["Department Name"] is None


def test_read_missing_source_raises(tmp_path):
    with pytest.raises(SourceReadError):
        ingestion.read_source(tmp_path / "nope.csv")


def test_detect_mapping_from_headers():
    headers = [
        "Person Number",
        "Display Name",
        "Department Name",
        "Full-Time Equivalent",
        "Assignment Status",
        "Annual Salary",
        "Hire Date",
        "Notes",
    ]

    mapping = ingestion.detect_mapping(headers)
    targets = {source: rule.target for source, rule in mapping.columns.items()}

    assert targets == {
        "Person Number": "employee_id",
        "Display Name": "name",
        "Department Name": "department",
        "Full-Time Equivalent": "fte",
        "Assignment Status": "status",
        "Annual Salary": "base_salary",
        "Hire Date": "start_date",
    }
    assert mapping.columns["Full-Time Equivalent"].transform == "percentage"
    assert mapping.columns["Hire Date"].transform == "date"
    assert mapping.name == "auto-detected"
