"""
Google credentials for the Sheets API.

Two sources, checked in order:
  1. A service-account JSON file (headless / scheduled runs).
  2. An installed-app OAuth client file plus a cached user token.  When
     the token is missing or cannot be refreshed, a browser consent flow
     runs once and the new token is written back to disk.

The provider is created per run and owns the credential for the run's
lifetime; nothing is cached at module level.
"""

import logging
import os

from google.auth.exceptions import GoogleAuthError, RefreshError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from zillow_saves.errors import AuthError

log = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


class GoogleCredentialProvider:
    """Acquire, refresh and persist Google credentials for one run."""

    def __init__(self, client_secrets_path="google-credentials.json",
                 token_path="google-token.json", service_account_path=None,
                 scopes=None, flow_factory=None):
        self.client_secrets_path = client_secrets_path
        self.token_path = token_path
        self.service_account_path = service_account_path
        self.scopes = scopes or SCOPES
        self._flow_factory = flow_factory or InstalledAppFlow.from_client_secrets_file
        self._credentials = None

    @property
    def credentials(self):
        return self._credentials

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def acquire(self):
        """Return valid credentials, running the consent flow if needed."""
        if self.service_account_path:
            self._credentials = self._load_service_account()
            return self._credentials

        self._credentials = self._load_token()
        if self._credentials is not None and not self._credentials.valid:
            if self._credentials.expired and self._credentials.refresh_token:
                try:
                    self.refresh()
                except AuthError as exc:
                    log.warning("Cached Google token could not be refreshed: %s", exc)
                    self._credentials = None
            else:
                self._credentials = None

        if self._credentials is None:
            self._credentials = self._run_consent_flow()
            self.persist()

        return self._credentials

    def refresh(self):
        """Refresh the current user credential and persist the new token."""
        if self._credentials is None:
            raise AuthError("No Google credentials to refresh")
        log.info("Refreshing expired Google token")
        try:
            self._credentials.refresh(Request())
        except (RefreshError, GoogleAuthError) as exc:
            raise AuthError(f"Unable to refresh Google token: {exc}") from exc
        self.persist()
        return self._credentials

    def persist(self):
        """Write the current user credential to the token file."""
        if self._credentials is None or self.service_account_path:
            return
        log.info("Saving credential file to: %s", self.token_path)
        token_dir = os.path.dirname(os.path.abspath(self.token_path))
        os.makedirs(token_dir, exist_ok=True)
        try:
            fd = os.open(self.token_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(self._credentials.to_json())
        except OSError as exc:
            raise AuthError(f"Unable to cache token at {self.token_path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load_service_account(self):
        if not os.path.isfile(self.service_account_path):
            raise AuthError(f"Service-account file not found: {self.service_account_path}")
        try:
            creds = service_account.Credentials.from_service_account_file(
                self.service_account_path, scopes=self.scopes
            )
        except (ValueError, GoogleAuthError) as exc:
            raise AuthError(f"Unable to parse service-account credentials: {exc}") from exc
        log.info("Google creds: using service account %s", self.service_account_path)
        return creds

    def _load_token(self):
        if not os.path.exists(self.token_path):
            return None
        try:
            log.debug("Loading token from %s", self.token_path)
            return Credentials.from_authorized_user_file(self.token_path, self.scopes)
        except (ValueError, OSError) as exc:
            log.warning("Failed to load token %s: %s", self.token_path, exc)
            return None

    def _run_consent_flow(self):
        if not os.path.isfile(self.client_secrets_path):
            raise AuthError(
                f"Unable to read {self.client_secrets_path}. Download OAuth client "
                "credentials from the Google Cloud Console."
            )
        log.info("Running Google OAuth consent flow")
        try:
            flow = self._flow_factory(self.client_secrets_path, self.scopes)
            return flow.run_local_server(
                port=0,
                authorization_prompt_message="Go to this URL and authorize access:\n{url}",
                success_message="Authorization complete. You can close this window.",
                open_browser=True,
            )
        except (ValueError, GoogleAuthError) as exc:
            raise AuthError(f"Unable to retrieve token: {exc}") from exc
