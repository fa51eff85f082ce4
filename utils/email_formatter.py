"""Markdown composition for outbound email, rendered to sanitized HTML and plain text."""
import re
from typing import Dict, List

import bleach
from markdown_it import MarkdownIt


# Single parser reused for performance; raw HTML disabled for safety
_md = MarkdownIt("commonmark", {"typographer": True, "html": False}).enable(["table", "strikethrough"])

EMAIL_ALLOWED_TAGS = [
    "p",
    "ul",
    "ol",
    "li",
    "strong",
    "em",
    "h1",
    "h2",
    "h3",
    "h4",
    "code",
    "table",
    "thead",
    "tbody",
    "tr",
    "th",
    "td",
    "hr",
    "a",
    "br",
]

ALLOWED_ATTRIBUTES = {
    "a": ["href", "title", "rel", "target"],
    "th": ["colspan", "rowspan", "align"],
    "td": ["colspan", "rowspan", "align"],
}


def _normalize_whitespace(text: str) -> str:
    cleaned = re.sub(r"[\r\t]+", " ", text or "")
    cleaned = re.sub(r" +", " ", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def markdown_to_html(md_text: str) -> str:
    rendered = _md.render(_normalize_whitespace(md_text))
    return bleach.clean(rendered, tags=EMAIL_ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES, strip=True)


def markdown_to_email_html(md_text: str) -> str:
    safe_html = markdown_to_html(md_text)
    return (
        "<div style=\"font-family: 'Segoe UI', Arial, sans-serif; font-size: 14px; line-height: 1.6; color: #0f172a;\">"
        f"{safe_html}"
        "</div>"
    )


def markdown_to_plaintext(md_text: str) -> str:
    rendered = markdown_to_html(md_text)
    text_only = bleach.clean(rendered, tags=[], attributes={}, strip=True)
    text_only = re.sub(r"\s+", " ", text_only).strip()
    return text_only


def format_sections(sections: List[Dict[str, object]]) -> str:
    """Build markdown from an ordered list of sections."""
    parts: List[str] = []
    for section in sections:
        title = _normalize_whitespace(str(section.get("title", "") or ""))
        if title:
            parts.append(f"## {title}")
        body = section.get("body") or ""
        if body:
            parts.append(_normalize_whitespace(str(body)))
        bullets = section.get("bullets") or []
        for bullet in bullets:
            if bullet is None:
                continue
            bullet_text = _normalize_whitespace(str(bullet))
            if bullet_text:
                parts.append(f"- {bullet_text}")
        parts.append("")
    return "\n".join([p for p in parts if p.strip()])


def format_otp_markdown(user_name: str, otp: str, purpose: str, ttl_minutes: int) -> str:
    sections = [
        {
            "title": f"Your {purpose}",
            "body": f"Hello {user_name}, you requested a {purpose.lower()} for your Smart City complaint account.",
            "bullets": [f"Code: **{otp}**"],
        },
        {
            "title": "Important",
            "bullets": [
                f"This code is valid for {ttl_minutes} minutes and can be used once.",
                "Do not share this code with anyone.",
                "If you did not request it, ignore this email.",
            ],
        },
    ]
    return format_sections(sections)


def format_complaint_noted_markdown(complaint: Dict[str, object]) -> str:
    sections = [
        {
            "title": "Complaint Status Update",
            "body": "Your complaint has been noted and will be resolved shortly. Thank you for helping improve our city.",
        },
        {
            "title": "Complaint Details",
            "bullets": [
                f"Reference: {complaint.get('id', '')}",
                f"Category: {complaint.get('category', '')}",
                f"Urgency: {complaint.get('urgency', '')}",
                f"Location: {complaint.get('location', '')}",
                "Status: Noted",
            ],
        },
    ]
    return format_sections(sections)
