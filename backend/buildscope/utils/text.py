import re


def sanitize_filename(name: str) -> str:
    """Convert an uploaded file name into a safe storage key segment."""
    stem, dot, ext = name.rpartition(".")
    if not dot:
        stem, ext = name, ""
    # Remove special characters, keep alphanumeric and spaces
    clean = re.sub(r'[^\w\s-]', '', stem)
    # Replace spaces with hyphens
    clean = re.sub(r'\s+', '-', clean.strip())
    # Remove multiple hyphens
    clean = re.sub(r'-+', '-', clean) or "file"
    ext = re.sub(r'[^\w]', '', ext)
    return f"{clean}.{ext.lower()}" if ext else clean


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + "\n\n[... truncated]"
