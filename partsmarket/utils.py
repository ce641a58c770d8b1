import html
import re
from typing import Optional
import bleach


def sanitize_input(value: Optional[str]) -> str:
    """Sanitize user-supplied free text before it is stored and shown to other customers.

    - Removes NULL bytes
    - Strips HTML tags using bleach.clean(..., strip=True)
    - Unescapes the entities bleach leaves behind so plain text is stored as typed
    - Collapses runs of whitespace and trims the result
    """
    if value is None:
        return ""
    val = value.replace("\x00", "")
    val = bleach.clean(val, tags=set(), strip=True)
    val = html.unescape(val)
    val = re.sub(r"\s+", " ", val)
    return val.strip()
