"""Heuristic comparison of an expected signature against an observed one.

Only meaningful for legacy-format signatures. Field extraction takes the
first bold fragment and the first email-shaped substring; later matches are
ignored.
"""

from __future__ import annotations

import re

from sigaudit.schemas.audit import Discrepancy, SignatureStatus

BOLD_MARKER = "font-weight: bold"

_WHITESPACE_RE = re.compile(r"\s+")
_EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")


def normalize_html(value: str) -> str:
    """Collapse whitespace runs, trim and lowercase."""
    return _WHITESPACE_RE.sub(" ", value).strip().lower()


def extract_marked_text(value: str, marker: str = BOLD_MARKER) -> str | None:
    """Text between the tag carrying ``marker`` and the next tag."""
    index = value.lower().find(marker.lower())
    if index < 0:
        return None
    start = value.find(">", index)
    if start < 0:
        return None
    end = value.find("<", start)
    if end < 0:
        return None
    return value[start + 1:end].strip()


def extract_email(value: str) -> str | None:
    match = _EMAIL_RE.search(value)
    return match.group(0) if match else None


def _same(left: str | None, right: str | None) -> bool:
    if left is None or right is None:
        return left is right
    return left.lower() == right.lower()


def compare_signatures(expected_html: str, observed_html: str | None) -> list[Discrepancy]:
    """Discrepancies between the expected and the observed signature."""
    if observed_html is None or not observed_html.strip():
        return [
            Discrepancy(
                field="Signature",
                expected_value="Present",
                actual_value="Missing",
                description="No signature found for this user",
            )
        ]

    if normalize_html(expected_html) == normalize_html(observed_html):
        return []

    discrepancies = []

    expected_name = extract_marked_text(expected_html)
    actual_name = extract_marked_text(observed_html)
    if not _same(expected_name, actual_name):
        discrepancies.append(
            Discrepancy(
                field="Name",
                expected_value=expected_name,
                actual_value=actual_name,
                description="Name in signature does not match profile",
            )
        )

    expected_email = extract_email(expected_html)
    actual_email = extract_email(observed_html)
    if not _same(expected_email, actual_email):
        discrepancies.append(
            Discrepancy(
                field="Email",
                expected_value=expected_email,
                actual_value=actual_email,
                description="Email in signature does not match profile",
            )
        )

    if not discrepancies:
        discrepancies.append(
            Discrepancy(
                field="Content",
                expected_value="(see expected signature)",
                actual_value="(see actual signature)",
                description="Signature content differs from template",
            )
        )

    return discrepancies


def classify_difference(discrepancies: list[Discrepancy]) -> SignatureStatus:
    """Map comparator output onto a legacy-signature status.

    Identity fields (name, email) that disagree make the signature
    inconsistent; any other difference means it is merely outdated.
    """
    if not discrepancies:
        return SignatureStatus.MATCH
    fields = {d.field for d in discrepancies}
    if "Signature" in fields:
        return SignatureStatus.MISSING
    if fields & {"Name", "Email"}:
        return SignatureStatus.INCONSISTENT
    return SignatureStatus.OUTDATED
