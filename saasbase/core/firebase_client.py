"""
Firebase client.

Wraps the identity provider (Firebase Auth) and the hosted database
(Firestore). One instance is built at process startup and closed at
shutdown; request handlers reach it through the application context.
"""

import os
from datetime import timedelta
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import auth, credentials, firestore

from saasbase.config import (
    FIREBASE_CREDENTIALS_PATH,
    FIREBASE_PROJECT_ID,
    PROJECT_ROOT,
    logger,
)

# Allow 5 minutes of clock skew (containers vs host time drift)
CLOCK_SKEW_SECONDS = 300


def _resolve_credentials_path(credentials_path: str) -> str:
    if os.path.isabs(credentials_path):
        if not os.path.exists(credentials_path):
            raise FileNotFoundError(f"Firebase credentials file not found at: {credentials_path}")
        return credentials_path

    possible_paths = [
        os.path.join(str(PROJECT_ROOT), credentials_path),
        os.path.join(str(PROJECT_ROOT), os.path.basename(credentials_path)),
        credentials_path,
    ]
    for path in possible_paths:
        if os.path.exists(path):
            logger.debug("Found Firebase credentials at: %s", path)
            return os.path.abspath(path)

    raise FileNotFoundError(
        f"Firebase credentials file not found. Tried: {', '.join(possible_paths)}. "
        f"Set FIREBASE_CREDENTIALS_PATH to an absolute path or ensure the file exists."
    )


class FirebaseClient:
    """Explicitly constructed handle on a Firebase app and its Firestore client."""

    def __init__(self, app: firebase_admin.App, db: firestore.Client):
        self._app = app
        self.db = db

    @classmethod
    def from_config(
        cls,
        project_id: str = FIREBASE_PROJECT_ID,
        credentials_path: str = FIREBASE_CREDENTIALS_PATH,
        app_name: str = "saasbase",
    ) -> "FirebaseClient":
        if not project_id or not credentials_path:
            raise RuntimeError("FIREBASE_PROJECT_ID and FIREBASE_CREDENTIALS_PATH must be configured")

        cred = credentials.Certificate(_resolve_credentials_path(credentials_path))
        app = firebase_admin.initialize_app(cred, {"projectId": project_id}, name=app_name)
        db = firestore.client(app=app)
        logger.info("Firebase initialized for project %s", project_id)
        return cls(app, db)

    def close(self) -> None:
        firebase_admin.delete_app(self._app)
        logger.info("Firebase app %s released", self._app.name)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def verify_id_token(self, id_token: str) -> Dict[str, Any]:
        try:
            return auth.verify_id_token(id_token, app=self._app, clock_skew_seconds=CLOCK_SKEW_SECONDS)
        except Exception as exc:
            logger.warning("Failed to verify Firebase ID token: %s", exc)
            raise

    def verify_session_cookie(self, session_cookie: str) -> Dict[str, Any]:
        try:
            return auth.verify_session_cookie(
                session_cookie,
                check_revoked=True,
                app=self._app,
                clock_skew_seconds=CLOCK_SKEW_SECONDS,
            )
        except Exception as exc:
            logger.warning("Failed to verify Firebase session cookie: %s", exc)
            raise

    def create_session_cookie(self, id_token: str, expires_in: timedelta) -> str:
        return auth.create_session_cookie(id_token, expires_in=expires_in, app=self._app)

    def get_user(self, uid: str) -> Optional[Dict[str, Any]]:
        """Fetch the identity record for a user, or None when unknown."""
        try:
            record = auth.get_user(uid, app=self._app)
        except auth.UserNotFoundError:
            return None
        last_sign_in = None
        if record.user_metadata and record.user_metadata.last_sign_in_timestamp:
            last_sign_in = record.user_metadata.last_sign_in_timestamp
        return {
            "uid": record.uid,
            "email": record.email,
            "email_verified": record.email_verified,
            "name": record.display_name,
            "picture": record.photo_url,
            "custom_claims": record.custom_claims or {},
            "last_sign_in_timestamp": last_sign_in,
        }
