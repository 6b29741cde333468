from typing import Optional

from semver import Version


def parse_semver(text: str) -> Optional[Version]:
    # "v2.5.0" and "2.5.0" are the same version
    if not isinstance(text, str) or not text:
        return None
    if text[0] in ("v", "V"):
        text = text[1:]
    try:
        return Version.parse(text)
    except ValueError:
        return None
