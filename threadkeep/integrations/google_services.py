"""Shared OAuth2 credential and lazily built Google API service objects.

The token is stored at GOOGLE_TOKEN_FILE and refreshed silently; the browser
consent flow only runs when no usable token exists.
"""

import logging
from pathlib import Path
from typing import Any

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

logger = logging.getLogger(__name__)

SCOPES: list[str] = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/tasks",
]


def get_credentials(client_secret_file: str | Path, token_file: str | Path) -> Credentials:
    """Return valid credentials, refreshing or re-authorizing as needed."""
    token_path = Path(token_file)
    creds = None
    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)

    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        creds.refresh(Request())
        logger.info("Google token refreshed")
    else:
        flow = InstalledAppFlow.from_client_secrets_file(str(client_secret_file), SCOPES)
        creds = flow.run_local_server(port=0)
        logger.info("Google OAuth flow completed")

    token_path.parent.mkdir(parents=True, exist_ok=True)
    token_path.write_text(creds.to_json())
    return creds


class GoogleServiceFactory:
    """Builds each Google API service at most once from a single credential.

    Usage::

        factory = GoogleServiceFactory(client_secret_file, token_file)
        gmail = GmailThreadSource(factory.gmail)
        tasks = GoogleTasksStore(factory.tasks)
    """

    def __init__(self, client_secret_file: str | Path, token_file: str | Path) -> None:
        self._client_secret_file = client_secret_file
        self._token_file = token_file
        self._creds: Credentials | None = None
        self._services: dict[str, Any] = {}

    @property
    def credentials(self) -> Credentials:
        if self._creds is None or not self._creds.valid:
            self._creds = get_credentials(self._client_secret_file, self._token_file)
        return self._creds

    def _build(self, name: str, version: str) -> Any:
        key = f"{name}/{version}"
        if key not in self._services:
            self._services[key] = build(
                name, version, credentials=self.credentials, cache_discovery=False
            )
        return self._services[key]

    @property
    def gmail(self) -> Any:
        return self._build("gmail", "v1")

    @property
    def tasks(self) -> Any:
        return self._build("tasks", "v1")
