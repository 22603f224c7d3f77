# habittracker/credentials.py
"""
Local credential cache for silent sign-in on start.

Holds a single email/password pair in a JSON file readable only by
the owner. Anything wrong with the file is logged and treated as
"nothing cached"; the caller then falls back to a manual login.
"""
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from habittracker.core.exceptions import AuthenticationError, StoreError

logger = logging.getLogger("habittracker.credentials")


@dataclass(frozen=True)
class Credentials:
    email: str
    password: str


class CredentialCache:

    def __init__(self, path):
        self.path = Path(path).expanduser()

    def save(self, email: str, password: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump({"email": email, "password": password}, f)
        # O_CREAT mode only applies to new files
        os.chmod(self.path, 0o600)
        logger.debug(f"Credentials cached for {email}")

    def load(self) -> Optional[Credentials]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            return Credentials(email=data["email"], password=data["password"])
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable credential cache {self.path}: {e}")
            return None

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


def silent_sign_in(cache: CredentialCache, provider):
    """Try the cached pair. Returns a UserSession, or None to ask the user."""
    creds = cache.load()
    if creds is None:
        return None
    try:
        return provider.sign_in(creds.email, creds.password)
    except (AuthenticationError, StoreError) as e:
        logger.warning(f"Silent sign-in failed for {creds.email}: {e}")
        return None
