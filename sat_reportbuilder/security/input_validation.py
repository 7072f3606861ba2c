"""
Input Validation Security Module

Sanitizes user supplied rich text before it is persisted. Rich text
coming from the report wizard keeps its formatting markup, anything
outside the allow-list below is stripped by bleach.
"""

import logging

import bleach

log = logging.getLogger(__name__)


class InputValidator:
    """Input validation and sanitization"""

    # Formatting produced by the wizard rich text editor
    ALLOWED_TAGS = {
        "b", "i", "em", "strong", "u", "s", "br", "p", "span", "div",
        "h1", "h2", "h3", "h4", "h5", "h6", "ul", "ol", "li", "blockquote",
        "a", "table", "thead", "tbody", "tr", "td", "th",
    }

    ALLOWED_ATTRIBUTES = {
        "a": ["href", "title", "target", "rel"],
        "span": ["class"],
        "div": ["class"],
        "p": ["class"],
        "td": ["colspan", "rowspan"],
        "th": ["colspan", "rowspan"],
    }

    ALLOWED_PROTOCOLS = ["http", "https", "mailto", "tel"]

    @classmethod
    def sanitize_html(cls, value: str) -> str:
        """
        Sanitize HTML content, disallowed tags, attributes and
        URL protocols are removed.

        Args:
            value: HTML content to sanitize

        Returns:
            Sanitized HTML content
        """
        if not value:
            return value
        cleaned = bleach.clean(
            value,
            tags=cls.ALLOWED_TAGS,
            attributes=cls.ALLOWED_ATTRIBUTES,
            protocols=cls.ALLOWED_PROTOCOLS,
            strip=True,
            strip_comments=True,
        )
        if cleaned != value:
            log.debug(
                "Rich text sanitized from %s to %s characters", len(value), len(cleaned)
            )
        return cleaned.strip()
