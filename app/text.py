"""Cleaning of text submitted from rich-text editors."""
import re

_TAG_RE = re.compile(r'<[^>]*>')


def strip_tags(value):
    return _TAG_RE.sub('', value or '').replace('&nbsp;', ' ').strip()


def clean_html(value):
    """Returns None for editor output without text, such as ``<p><br></p>``."""
    if value is None:
        return None
    value = value.strip()
    if not strip_tags(value):
        return None
    return value


def clean_text(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None
