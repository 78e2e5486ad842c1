"""
Shared fixtures: a small P7 class with BOT and EOT marks for Term 1 2024.
"""

import pandas as pd
import pytest


def _row(pupil_id, name, assessment_type, english, maths, science, sst, **extra):
    row = {
        "pupil_id": pupil_id,
        "name": name,
        "class_level": "P7",
        "stream": "Blue",
        "term": 1,
        "year": 2024,
        "assessment_type": assessment_type,
        "english": english,
        "maths": maths,
        "science": science,
        "sst": sst,
    }
    row.update(extra)
    return row


@pytest.fixture
def marks_records():
    return [
        # EOT: Amina 5, Brian 12 (raw 339), Claire 12 (raw 300), Daniel incomplete
        _row("S001", "Amina Nakato", "EOT", 92, 85, 90, 90),
        _row("S002", "Brian Okello", "EOT", 100, 100, 100, 39, fees="yes"),
        _row("S003", "Claire Auma", "EOT", 90, 90, 90, 30),
        _row("S004", "Daniel Mugisha", "EOT", 92, 85, None, 90, sickness="true"),
        # BOT: Brian 4, Amina 16, Claire 24, Daniel 28
        _row("S001", "Amina Nakato", "BOT", 60, 60, 60, 60),
        _row("S002", "Brian Okello", "BOT", 91, 91, 91, 91, fees="yes"),
        _row("S003", "Claire Auma", "BOT", 50, 50, 50, 50),
        _row("S004", "Daniel Mugisha", "BOT", 45, 45, 45, 45, sickness="true"),
    ]


@pytest.fixture
def marks_df(marks_records):
    return pd.DataFrame(marks_records)


@pytest.fixture
def eot_df(marks_df):
    return marks_df[marks_df["assessment_type"] == "EOT"].copy()
