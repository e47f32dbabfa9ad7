"""
Firebase initialization.
Single source of truth for the DocumentStore used by the backend.
"""

from typing import Optional
import json
import logging
import os

import firebase_admin
from firebase_admin import credentials, firestore, initialize_app

from app.core.settings import settings
from app.store.base import DocumentStore

logger = logging.getLogger(__name__)

store: Optional[DocumentStore] = None


def _validate_credentials_file(cred_path: str) -> None:
    if not os.path.exists(cred_path):
        raise FileNotFoundError(
            f"Firebase credentials file not found: {cred_path}\n"
            f"Please check your .env file and ensure FIREBASE_CREDENTIALS_PATH is correct.\n"
            f"Current working directory: {os.getcwd()}"
        )

    try:
        with open(cred_path, "r") as f:
            cred_data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(
            f"Firebase credentials file is not valid JSON: {e}\n"
            f"Please check the file at: {cred_path}"
        )

    required_fields = ["type", "project_id", "private_key", "client_email"]
    missing_fields = [field for field in required_fields if field not in cred_data]
    if missing_fields:
        raise ValueError(
            f"Firebase credentials file is missing required fields: {missing_fields}\n"
            f"Please download a fresh service account key from Firebase Console."
        )

    logger.info(f"[FIRESTORE] Credentials file validated: {cred_path} (project {cred_data.get('project_id', 'N/A')})")


def initialize_firebase_app() -> None:
    """Initialize the Firebase Admin SDK once per process."""
    if firebase_admin._apps:
        return

    if settings.FIREBASE_CREDENTIALS_PATH:
        _validate_credentials_file(settings.FIREBASE_CREDENTIALS_PATH)
        initialize_app(credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH))
        logger.info("[FIRESTORE] Firebase Admin SDK initialized with service account")
    else:
        logger.info("[FIRESTORE] No credentials path set, using Application Default Credentials")
        initialize_app()


def initialize_store() -> DocumentStore:
    global store

    if store is not None:
        return store

    if settings.USE_MOCK_DB:
        from app.store.memory import InMemoryStore
        store = InMemoryStore()
        logger.warning("[FIRESTORE] USING IN-MEMORY MOCK DATABASE")
        return store

    try:
        initialize_firebase_app()
        from app.store.firestore_store import FirestoreStore
        store = FirestoreStore(firestore.client())
        logger.info(f"[FIRESTORE] USING REAL FIRESTORE DATABASE (project {settings.FIREBASE_PROJECT_ID or 'default'})")
        return store
    except FileNotFoundError as e:
        raise RuntimeError(
            f"Firestore initialization FAILED - Credentials file not found.\n"
            f"{str(e)}\n"
            f"SOLUTION: Check your .env file and ensure FIREBASE_CREDENTIALS_PATH points to a valid service account JSON file."
        )
    except ValueError as e:
        raise RuntimeError(
            f"Firestore initialization FAILED - Invalid credentials file.\n"
            f"{str(e)}\n"
            f"SOLUTION: Download a fresh service account key from Firebase Console."
        )


def get_store() -> DocumentStore:
    """
    Get the initialized DocumentStore.

    Raises RuntimeError if the store cannot be initialized.
    """
    if store is None:
        try:
            initialize_store()
        except Exception as e:
            raise RuntimeError(
                f"Store not initialized and initialization failed: {e}. "
                "Please check your Firebase credentials and configuration."
            )
    return store
