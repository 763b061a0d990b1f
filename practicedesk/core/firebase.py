"""
Firebase admin initialization and helpers.

The frontend signs staff in with Firebase Authentication and passes
Firebase ID tokens to this API. The API verifies those tokens with the
Firebase Admin SDK and reads/writes the practice and patient documents
in Firestore on the caller's behalf.
"""

import os
import firebase_admin
from firebase_admin import credentials, firestore

from practicedesk.core.config import settings

# Global references to avoid re-initialization
_firebase_app = None
db = None


def init_firebase():
    """
    Initialize Firebase Admin SDK if not already initialized.

    The credentials path comes from FIREBASE_CREDENTIALS (environment or
    .env), falling back to practicedesk/core/firebase_key.json.
    """

    global _firebase_app, db

    # Prevent re-initialization (important for Uvicorn reload)
    if firebase_admin._apps:
        if db is None:
            db = firestore.client()
        return

    cred_path = settings.FIREBASE_CREDENTIALS

    if not os.path.exists(cred_path):
        raise RuntimeError(
            f"Firebase credentials not found at: {cred_path}\n"
            "Set FIREBASE_CREDENTIALS env var or place firebase_key.json correctly."
        )

    cred = credentials.Certificate(cred_path)
    _firebase_app = firebase_admin.initialize_app(cred)

    db = firestore.client()

    print("Firebase Admin initialized successfully.")


def get_db():
    """Return the shared Firestore client, initializing Firebase on first use."""
    if db is None:
        init_firebase()
    return db
