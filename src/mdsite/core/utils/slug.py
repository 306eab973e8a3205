"""URL slugs for document paths and tag pages"""

import re
import unicodedata


_STRIP_RE = re.compile(r'[^\w\s-]')
_SEP_RE = re.compile(r'[\s_-]+')


def slugify(text: str) -> str:
    """Lowercase, ASCII-folded, hyphen-separated URL segment; '' if nothing survives."""
    text = unicodedata.normalize('NFKD', text).encode('ascii', 'ignore').decode('ascii')
    text = _STRIP_RE.sub('', text.lower())
    return _SEP_RE.sub('-', text).strip('-')
