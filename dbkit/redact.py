import re
from typing import Any, Iterable, Mapping


_SECRET_KEYS = ("password", "passwd", "pwd", "secret", "token", "sslpassword")

_DEFAULT_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # user:password@host inside URLs
    (re.compile(r"(//[^:/@\s]+:)[^@\s]+@"), r"\1[REDACTED]@"),
    # key=value pairs in DSNs and option strings
    (re.compile(r"\b(password|passwd|pwd|sslpassword)\s*=\s*[^\s;&]+", re.IGNORECASE), r"\1=[REDACTED]"),
]


def redact_text(text: str, extra_patterns: Iterable[tuple[re.Pattern[str], str]] | None = None) -> str:
    """
    Redact credentials from connection URLs, DSNs and log lines.
    Anything derived from connection properties MUST pass through here before logging.
    """
    patterns = list(_DEFAULT_PATTERNS)
    if extra_patterns:
        patterns.extend(list(extra_patterns))

    redacted = text
    for pattern, repl in patterns:
        redacted = pattern.sub(repl, redacted)
    return redacted


def redact_options(options: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of a connection-properties mapping with secret values masked."""
    return {
        k: "[REDACTED]" if any(s in k.lower() for s in _SECRET_KEYS) else v
        for k, v in options.items()
    }
