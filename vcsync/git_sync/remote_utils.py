"""Remote URL and remote reachability helpers."""

from typing import Optional


def normalize_remote_url(raw_url: Optional[str]) -> Optional[str]:
    """
    Normalize a configured remote URL for display.

    Surrounding whitespace, trailing slashes and any trailing ``.git``
    suffixes are removed. Blank input yields None.
    """
    if raw_url is None:
        return None

    url = raw_url.strip()
    while True:
        stripped = url.rstrip("/")
        if stripped.endswith(".git"):
            stripped = stripped[:-len(".git")]
        if stripped == url:
            break
        url = stripped

    return url or None


def extract_fatal_message(message: str) -> str:
    """Return the text after git's last ``fatal: `` marker, with quotes removed."""
    return message.split("fatal: ")[-1].replace("'", "").strip()
