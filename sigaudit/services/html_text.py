"""HTML-to-text conversion for signature plain-text parts."""

from __future__ import annotations

from bs4 import BeautifulSoup


def html_to_text(value: str | None) -> str:
    """Visible text of an HTML fragment, one line per block, entities decoded.

    Blank lines are dropped so a signature reads as a compact block.
    """
    if not value:
        return ""

    soup = BeautifulSoup(value, "html.parser")
    for tag in soup(["script", "style", "head"]):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")

    lines = (line.strip() for line in soup.get_text(separator="\n").splitlines())
    return "\n".join(line for line in lines if line)
