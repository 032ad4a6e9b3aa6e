"""Scrub credential material from terraform output before it reaches a client."""
import re
from typing import Iterable, Optional

from terraform_api.config import settings

REDACTED = "********"

# Variable names whose values must never be echoed back
SENSITIVE_KEYS = [
    'aws_access_key_id', 'aws_secret_access_key', 'aws_session_token',
    'AWS_ACCESS_KEY_ID', 'AWS_SECRET_ACCESS_KEY', 'AWS_SESSION_TOKEN',
    'ARM_CLIENT_SECRET', 'GOOGLE_CREDENTIALS',
    'password', 'secret', 'token', 'private_key',
]

_ACCESS_KEY_ID = re.compile(r"\b(?:AKIA|ASIA)[A-Z0-9]{16}\b")
_ASSIGNMENT = re.compile(
    r"(?P<key>[\w.-]*(?:%s)[\w.-]*)(?P<sep>\"?\s*[:=]\s*\"?)(?P<value>[^\s\",]+)"
    % "|".join(re.escape(k) for k in SENSITIVE_KEYS),
    re.IGNORECASE,
)


def _configured_secrets() -> Iterable[str]:
    for value in (settings.aws_access_key_id, settings.aws_secret_access_key):
        if value:
            yield value


def redact(text: Optional[str]) -> str:
    """Mask configured credential values, AWS key ids and ``secret = value`` assignments."""
    if not text:
        return ""
    for secret in _configured_secrets():
        text = text.replace(secret, REDACTED)
    text = _ACCESS_KEY_ID.sub(REDACTED, text)
    return _ASSIGNMENT.sub(lambda m: f"{m.group('key')}{m.group('sep')}{REDACTED}", text)
