"""Tests for email extraction from pasted text and uploaded files."""

import io

import pytest
from openpyxl import Workbook

from skoolife.services.email_import import EmailImportError, extract_emails_from_file, parse_emails


def _xlsx(rows) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class TestParseEmails:
    def test_mixed_separators_and_invalid_tokens(self):
        assert parse_emails("a@b.com, BAD, c@d.com;  e@f.com ") == ["a@b.com", "c@d.com", "e@f.com"]

    def test_lowercases_and_dedupes_keeping_first(self):
        assert parse_emails("Zoe@Example.com\nzoe@example.com\nadam@example.com") == [
            "zoe@example.com",
            "adam@example.com",
        ]

    def test_strips_quotes(self):
        assert parse_emails('"jean@ecole.fr"; \'marie@ecole.fr\'') == ["jean@ecole.fr", "marie@ecole.fr"]

    @pytest.mark.parametrize("text", ["", "   ", "not-an-email", "a@b", "two words@x.com"])
    def test_nothing_valid(self, text):
        assert parse_emails(text) == []


class TestExtractFromFile:
    def test_csv_with_header_row(self):
        content = b"email,name\njean@ecole.fr,Jean\nmarie@ecole.fr,Marie\n"
        assert extract_emails_from_file("students.csv", content) == ["jean@ecole.fr", "marie@ecole.fr"]

    def test_txt_with_bom(self):
        content = "\ufeffjean@ecole.fr\nmarie@ecole.fr".encode("utf-8")
        assert extract_emails_from_file("list.TXT", content) == ["jean@ecole.fr", "marie@ecole.fr"]

    def test_latin1_fallback(self):
        content = "Élève;jean@ecole.fr".encode("latin-1")
        assert extract_emails_from_file("list.csv", content) == ["jean@ecole.fr"]

    def test_xlsx_reads_every_cell(self):
        content = _xlsx([["Nom", "Email"], ["Jean", "jean@ecole.fr"], [None, "MARIE@ecole.fr"], [42, None]])
        assert extract_emails_from_file("classe.xlsx", content) == ["jean@ecole.fr", "marie@ecole.fr"]

    def test_corrupt_spreadsheet(self):
        with pytest.raises(EmailImportError):
            extract_emails_from_file("classe.xlsx", b"definitely not a zip archive")

    @pytest.mark.parametrize("filename", ["students.pdf", "students", "archive.zip"])
    def test_unsupported_extension(self, filename):
        with pytest.raises(EmailImportError):
            extract_emails_from_file(filename, b"jean@ecole.fr")
