"""Signature comparator tests."""

from __future__ import annotations

from sigaudit.schemas.audit import Discrepancy, SignatureStatus
from sigaudit.schemas.template import TemplateDefinition
from sigaudit.services.comparator import (
    classify_difference,
    compare_signatures,
    extract_email,
    extract_marked_text,
    normalize_html,
)
from sigaudit.services.renderer import render_signature

EXPECTED = (
    '<p style="margin: 0; font-weight: bold; color: #3154A5">Ada Lovelace</p>\n'
    '<p style="margin: 0; color: #77787B">E: ada@example.org</p>'
)


class TestHelpers:

    def test_normalize_collapses_whitespace_and_case(self):
        assert normalize_html("  <P>\n  Hello \t World</P> ") == "<p> hello world</p>"

    def test_extract_marked_text_first_match(self):
        html = '<p style="font-weight: bold">One</p><p style="font-weight: bold">Two</p>'
        assert extract_marked_text(html) == "One"

    def test_extract_marked_text_absent(self):
        assert extract_marked_text("<p>plain</p>") is None

    def test_extract_email_first_match(self):
        assert extract_email("a@x.org then b@y.org") == "a@x.org"
        assert extract_email("no address here") is None


class TestCompareSignatures:

    def test_missing_signature(self):
        for observed in (None, "", "   \n"):
            result = compare_signatures(EXPECTED, observed)
            assert len(result) == 1
            assert result[0].field == "Signature"
            assert result[0].actual_value == "Missing"

    def test_equal_after_normalisation(self):
        observed = "  " + EXPECTED.upper().replace("\n", "\n\n   ") + "  "
        assert compare_signatures(EXPECTED, observed) == []

    def test_name_mismatch(self):
        observed = EXPECTED.replace("Ada Lovelace", "Ada King")
        result = compare_signatures(EXPECTED, observed)
        assert [d.field for d in result] == ["Name"]
        assert result[0].expected_value == "Ada Lovelace"
        assert result[0].actual_value == "Ada King"

    def test_email_mismatch(self):
        observed = EXPECTED.replace("ada@example.org", "ada.king@example.org")
        result = compare_signatures(EXPECTED, observed)
        assert [d.field for d in result] == ["Email"]

    def test_name_compare_is_case_insensitive(self):
        observed = EXPECTED.replace("Ada Lovelace", "ADA LOVELACE") + "<p>extra</p>"
        result = compare_signatures(EXPECTED, observed)
        assert [d.field for d in result] == ["Content"]

    def test_generic_content_difference(self):
        observed = EXPECTED + '<p style="margin: 0">Mon-Fri</p>'
        result = compare_signatures(EXPECTED, observed)
        assert len(result) == 1
        assert result[0].description == "Signature content differs from template"

    def test_rendered_signature_matches_itself(self, ada):
        html = render_signature(TemplateDefinition.create_default(), ada)
        assert compare_signatures(html, html) == []


class TestClassifyDifference:

    def test_no_difference_is_match(self):
        assert classify_difference([]) is SignatureStatus.MATCH

    def test_missing(self):
        assert classify_difference(compare_signatures(EXPECTED, None)) is SignatureStatus.MISSING

    def test_identity_mismatch_is_inconsistent(self):
        assert classify_difference([Discrepancy(field="Email")]) is SignatureStatus.INCONSISTENT

    def test_content_only_is_outdated(self):
        assert classify_difference([Discrepancy(field="Content")]) is SignatureStatus.OUTDATED
