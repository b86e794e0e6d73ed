"""
Candidate import from delimited text (CSV exports from spreadsheets and ATS tools).

Flow: parse_delimited -> suggest_mappings -> (caller overrides) ->
validate_mappings -> convert_rows. Rows that fail validation are skipped
and reported as warnings; they never abort the batch.
"""

import csv
import io
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from pydantic import Field

from hireflow.errors import CandidateImportError, UnknownStageError
from hireflow.models.domain.base import CamelModel
from hireflow.models.domain.campaign_domain import Stage
from hireflow.pipeline.stages import StagePolicy, resolve_stage_by_name

SystemField = Literal["name", "email", "phone", "resumeUrl", "stage", "ignore"]

PREVIEW_ROW_COUNT = 3

TEMPLATE_HEADERS = ("Full Name", "Email", "Phone", "Resume URL", "Stage")
TEMPLATE_ROWS = (
    ("John Doe", "john.doe@example.com", "+91 9876543210", "https://example.com/resume.pdf", "Sourced"),
    ("Jane Smith", "jane.smith@example.com", "+91 8765432109", "", "Screening"),
)
TEMPLATE_FILENAME = "candidate_upload_template.csv"


@dataclass(slots=True)
class ParsedData:
    headers: list[str]
    rows: list[list[str]]

    @property
    def preview_rows(self) -> list[list[str]]:
        return self.rows[:PREVIEW_ROW_COUNT]


class ColumnMapping(CamelModel):
    csv_column: str
    system_field: SystemField = "ignore"


class CandidateUpload(CamelModel):
    """A validated import row, or a manually entered candidate."""

    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    phone: str | None = None
    resume_url: str | None = None
    stage: str | None = None


@dataclass(slots=True)
class ImportResult:
    candidates: list[CandidateUpload] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def parse_delimited(text: str) -> ParsedData:
    """
    Split uploaded text into a header row and data rows.

    Blank lines are dropped and cells are trimmed.

    Raises:
        CandidateImportError: fewer than two non-blank lines
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise CandidateImportError("File must contain at least a header row and one data row")

    records = [[cell.strip() for cell in record] for record in csv.reader(io.StringIO("\n".join(lines)))]
    return ParsedData(headers=records[0], rows=records[1:])


def _suggest_field(header: str) -> SystemField:
    lowered = header.lower()
    if "name" in lowered or "full" in lowered or "candidate" in lowered:
        return "name"
    if "email" in lowered or "mail" in lowered:
        return "email"
    if "phone" in lowered or "mobile" in lowered or "contact" in lowered:
        return "phone"
    if "resume" in lowered or "cv" in lowered or "url" in lowered:
        return "resumeUrl"
    if "stage" in lowered or "status" in lowered or "level" in lowered:
        return "stage"
    return "ignore"


def suggest_mappings(headers: Sequence[str]) -> list[ColumnMapping]:
    """One mapping per column, in column order."""
    return [ColumnMapping(csv_column=header, system_field=_suggest_field(header)) for header in headers]


def validate_mappings(mappings: Sequence[ColumnMapping]) -> None:
    fields = {mapping.system_field for mapping in mappings}
    if "name" not in fields:
        raise CandidateImportError('Please map a column to "Full Name"')
    if "email" not in fields:
        raise CandidateImportError('Please map a column to "Email Address"')


def _index_of(mappings: Sequence[ColumnMapping], system_field: SystemField) -> int:
    return next((i for i, m in enumerate(mappings) if m.system_field == system_field), -1)


def _cell(row: Sequence[str], index: int) -> str:
    if 0 <= index < len(row):
        return row[index].strip()
    return ""


def convert_rows(
    parsed: ParsedData,
    mappings: Sequence[ColumnMapping],
    stages: Sequence[Stage],
    policy: StagePolicy = StagePolicy.FALLBACK,
) -> ImportResult:
    """
    Turn parsed rows into candidate uploads.

    Row numbers in warnings count the header as row 1. Stage values are
    matched against stage names case-insensitively; a blank value lands in
    the first stage, an unknown one follows the stage policy (REJECT skips
    the row with a warning).
    """
    validate_mappings(mappings)

    name_index = _index_of(mappings, "name")
    email_index = _index_of(mappings, "email")
    phone_index = _index_of(mappings, "phone")
    resume_index = _index_of(mappings, "resumeUrl")
    stage_index = _index_of(mappings, "stage")
    needed = max(name_index, email_index) + 1

    result = ImportResult()

    for i, row in enumerate(parsed.rows):
        row_number = i + 2

        if len(row) < needed:
            result.warnings.append(f"Row {row_number}: Insufficient columns (has {len(row)}, needs {needed})")
            continue

        name = _cell(row, name_index)
        email = _cell(row, email_index)

        if not name:
            result.warnings.append(f"Row {row_number}: Missing name")
            continue
        if not email:
            result.warnings.append(f"Row {row_number}: Missing email")
            continue
        if "@" not in email or "." not in email:
            result.warnings.append(f"Row {row_number}: Invalid email format ({email})")
            continue

        stage_value = _cell(row, stage_index)
        stage_name = stages[0].name if stages else None
        if stage_value and stages:
            try:
                stage_name = resolve_stage_by_name(stages, stage_value).unwrap(stages, policy).name
            except UnknownStageError:
                result.warnings.append(f"Row {row_number}: Unknown stage ({stage_value})")
                continue

        result.candidates.append(
            CandidateUpload(
                name=name,
                email=email,
                phone=_cell(row, phone_index) or None,
                resume_url=_cell(row, resume_index) or None,
                stage=stage_name,
            )
        )

    return result


def template_csv() -> str:
    """Sample file offered for download next to the upload form."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(TEMPLATE_HEADERS)
    writer.writerows(TEMPLATE_ROWS)
    return buffer.getvalue()
