"""Pure email extraction utilities."""

from __future__ import annotations

import re
import warnings

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

EMAIL_REGEX = re.compile(r"[a-zA-Z0-9._-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
STRICT_EMAIL_REGEX = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


def description_to_text(description: str | None) -> str:
    """Strip markup and unescape entities from a playlist description."""
    if not description:
        return ""
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
        soup = BeautifulSoup(description, "html.parser")
    return " ".join(soup.get_text(" ").split())


def dedupe_preserve_order(items: list[str]) -> list[str]:
    """Dedupe values while preserving first-seen order."""
    output: list[str] = []
    seen: set[str] = set()
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        output.append(item)
    return output


def extract_emails(text: str | None) -> list[str]:
    """Return unique emails found in plain text, in first-seen order."""
    return dedupe_preserve_order([match.group(0) for match in EMAIL_REGEX.finditer(text or "")])


def extract_description_emails(description: str | None) -> list[str]:
    """Emails in a playlist description, raw markup first, then its plain text.

    Matching the raw string keeps addresses written as `<a@b.com>` or inside a
    `mailto:` href; the plain-text pass adds entity-encoded ones.
    """
    raw = description or ""
    return dedupe_preserve_order(extract_emails(raw) + extract_emails(description_to_text(raw)))


def is_valid_email(email: str) -> bool:
    """Stricter syntax check than the extraction pattern."""
    return bool(email) and bool(STRICT_EMAIL_REGEX.match(email))


def email_domains(emails: list[str]) -> list[str]:
    """Unique domains of the valid addresses, in first-seen order."""
    return dedupe_preserve_order(
        [email.split("@", maxsplit=1)[1].lower() for email in emails if is_valid_email(email)]
    )

