"""
Tests for core/exporter.py — class sheet CSV and Excel exports.
"""

import io
import os
import sys
import tempfile

import pandas as pd
from openpyxl import load_workbook

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.class_sheet import build_class_results, division_distribution
from core.exporter import class_sheet_csv, generate_class_sheet_excel

SCHOOL_NAME = "Test Primary School"


class TestClassSheetCsv:
    """Tests for the CSV export."""

    def test_round_trips_through_pandas(self, eot_df):
        results = build_class_results(eot_df, "P7")
        text = class_sheet_csv(results)
        back = pd.read_csv(io.StringIO(text))
        assert list(back["pupil_id"]) == ["S001", "S002", "S003", "S004"]
        assert list(back["division"]) == ["I", "I", "I", "X"]

    def test_absent_mark_is_blank(self, eot_df):
        text = class_sheet_csv(build_class_results(eot_df, "P7"))
        daniel = next(line for line in text.splitlines() if line.startswith("S004"))
        assert ",," in daniel

    def test_comments_optional(self, eot_df):
        results = build_class_results(eot_df, "P7")
        assert "class_teacher_comment" not in class_sheet_csv(results)
        assert "class_teacher_comment" in class_sheet_csv(results, include_comments=True)


class TestGenerateClassSheetExcel:
    """Tests for the Excel export."""

    def test_creates_workbook(self, eot_df):
        results = build_class_results(eot_df, "P7")
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "class_sheet.xlsx")
            generate_class_sheet_excel(
                output_path=path,
                results=results,
                school_name=SCHOOL_NAME,
                title="P7 Term 1 2024 EOT",
                division_counts=division_distribution(eot_df),
            )
            assert os.path.exists(path)
            assert os.path.getsize(path) > 0

            wb = load_workbook(path)
            assert wb.sheetnames == ["Class Sheet", "Divisions"]
            ws = wb["Class Sheet"]
            assert ws["A1"].value == SCHOOL_NAME
            assert ws["A3"].value == "pupil_id"
            assert ws["A4"].value == "S001"

            divisions = {row[0]: row[1] for row in wb["Divisions"].iter_rows(min_row=2, values_only=True)}
            assert divisions["I"] == 3
            assert divisions["X"] == 1
            assert divisions["Total"] == 4
            wb.close()

    def test_counts_from_results_when_not_given(self, eot_df):
        results = build_class_results(eot_df, "P7")
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "class_sheet.xlsx")
            generate_class_sheet_excel(path, results, SCHOOL_NAME, "P7")
            wb = load_workbook(path)
            divisions = {row[0]: row[1] for row in wb["Divisions"].iter_rows(min_row=2, values_only=True)}
            wb.close()
            assert divisions["I"] == 3
