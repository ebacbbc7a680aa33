# base/utils/sanitize.py

import re
import os
import unicodedata

_JS_PROTOCOL = re.compile(r'javascript:', re.IGNORECASE)


def sanitize_input(value):
    """Strips angle brackets and javascript: protocols, then trims."""
    if not isinstance(value, str):
        return value
    cleaned = re.sub(r'[<>]', '', value)
    # nested fragments can reassemble after one pass
    while True:
        stripped = _JS_PROTOCOL.sub('', cleaned)
        if stripped == cleaned:
            break
        cleaned = stripped
    return cleaned.strip()


def safe_filename(orig_name, maxlen=200):
    name = os.path.basename(orig_name or "artifact")
    name = unicodedata.normalize('NFKC', name)
    name = re.sub(r'[\x00-\x1f<>:"/\\|?*]', '_', name)
    name = re.sub(r'\s+', ' ', name).strip()
    if len(name) > maxlen:
        name = name[:maxlen]
    return name
