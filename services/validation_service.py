from note_constants import DEFAULT_NOTE_FORMAT, NOTE_FORMATS, ROOT_MARKERS


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ["1", "true", "yes", "on"]


def parse_id(value):
    """Return a positive int id from an int or digit string, else None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    text = str(value).strip()
    if not text.isdigit():
        return None
    parsed = int(text)
    return parsed if parsed > 0 else None


def is_root_value(value):
    """Folder references that all mean "no folder"."""
    if value is None:
        return True
    if isinstance(value, bool):
        return False
    return str(value).strip().lower() in ROOT_MARKERS


def normalize_note_format(raw):
    """Return a known note format, the default for empty input, or None when unknown."""
    if raw is None or str(raw).strip() == "":
        return DEFAULT_NOTE_FORMAT
    value = str(raw).strip().lower()
    return value if value in NOTE_FORMATS else None


def parse_id_list(raw):
    """
    Parse a reorder payload into a list of int ids.

    Returns (ids, error). The list must be non-empty, every entry must be an
    int-like id and no id may appear twice.
    """
    if not isinstance(raw, list) or not raw:
        return None, "a non-empty list of ids is required"
    ids = []
    seen = set()
    for value in raw:
        parsed = parse_id(value)
        if parsed is None:
            return None, f"invalid id: {value!r}"
        if parsed in seen:
            return None, f"duplicate id: {parsed}"
        seen.add(parsed)
        ids.append(parsed)
    return ids, None


def json_object(payload):
    """A missing body reads as {}; any JSON value other than an object gives None."""
    if payload is None:
        return {}
    return payload if isinstance(payload, dict) else None


def parse_text(value, strip=True):
    """Text from a string field. None reads as ""; any other type gives None."""
    if value is None:
        return ""
    if not isinstance(value, str):
        return None
    return value.strip() if strip else value
