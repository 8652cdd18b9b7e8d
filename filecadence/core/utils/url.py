# filecadence/core/utils/url.py
"""URL helper for logging database locations without credentials."""

from __future__ import annotations

from urllib.parse import urlparse


def mask_database_url(url: str) -> str:
    """Replace the password in a database URL with ``***``.

    Falls back to splitting on ``@`` when the URL cannot be parsed.
    """
    try:
        parsed = urlparse(url)
        if not parsed.password:
            return url
        netloc = parsed.netloc.replace(f':{parsed.password}@', ':***@', 1)
        return parsed._replace(netloc=netloc).geturl()
    except ValueError:
        if '@' not in url:
            return url
        credentials, host = url.rsplit('@', 1)
        scheme_user = credentials.rsplit(':', 1)[0]
        return f'{scheme_user}:***@{host}'
