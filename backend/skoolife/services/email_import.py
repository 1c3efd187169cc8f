"""Extract email addresses from pasted text and uploaded CSV/TXT/Excel files."""

import io
import logging
import re

from openpyxl import load_workbook

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = ("csv", "txt", "xlsx", "xls")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
SEPARATORS = re.compile(r"[\n,;]")


class EmailImportError(ValueError):
    """The uploaded file cannot be read as an email list."""


def parse_emails(text: str) -> list[str]:
    """
    Split on newlines, commas and semicolons; keep valid addresses.

    Addresses are trimmed and lowercased; duplicates are dropped keeping the
    first occurrence.
    """
    seen: set[str] = set()
    emails = []
    for token in SEPARATORS.split(text):
        candidate = token.strip().strip("\"'").lower()
        if not EMAIL_PATTERN.match(candidate) or candidate in seen:
            continue
        seen.add(candidate)
        emails.append(candidate)
    return emails


def _file_extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def _spreadsheet_text(content: bytes) -> str:
    try:
        wb = load_workbook(filename=io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise EmailImportError("Could not read the Excel file") from e

    try:
        ws = wb.worksheets[0]
        cells = [
            str(value)
            for row in ws.iter_rows(values_only=True)
            for value in row
            if value is not None
        ]
    finally:
        wb.close()
    return "\n".join(cells)


def extract_emails_from_file(filename: str, content: bytes) -> list[str]:
    """
    Read every email address from an uploaded file.

    Excel files are flattened cell by cell (first sheet only); text files are
    decoded as UTF-8 (BOM tolerated, latin-1 fallback).
    """
    extension = _file_extension(filename)
    if extension not in ALLOWED_EXTENSIONS:
        raise EmailImportError("Unsupported file type, expected CSV, TXT or Excel (.xlsx, .xls)")

    if extension in ("xlsx", "xls"):
        text = _spreadsheet_text(content)
    else:
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError:
            text = content.decode("latin-1")

    emails = parse_emails(text)
    logger.info("Extracted %d email(s) from %s", len(emails), filename)
    return emails
