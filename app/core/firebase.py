"""Firebase Admin SDK initialization and utilities."""

import json
import os

import firebase_admin
from firebase_admin import auth, credentials, firestore, firestore_async
from structlog import get_logger

logger = get_logger(__name__)

_firebase_app: firebase_admin.App | None = None


def initialize_firebase(
    firebase_credentials_path: str | None = None, firebase_config_json: str | None = None
) -> firebase_admin.App:
    """
    Initialize Firebase Admin SDK.

    Args:
        firebase_credentials_path: Optional path to service account JSON file.
        firebase_config_json: Optional raw JSON string of service account.

    Credentials are looked up in order: raw JSON string, file path, then
    Application Default Credentials. The Firestore emulator is honoured
    through the standard FIRESTORE_EMULATOR_HOST variable.
    """
    global _firebase_app

    if _firebase_app is not None:
        logger.info("firebase_already_initialized")
        return _firebase_app

    try:
        cred = None

        if firebase_config_json:
            logger.info("firebase_init_from_json")
            cred = credentials.Certificate(json.loads(firebase_config_json))
        elif firebase_credentials_path and os.path.exists(firebase_credentials_path):
            logger.info("firebase_init_from_file", path=firebase_credentials_path)
            cred = credentials.Certificate(firebase_credentials_path)

        if cred:
            _firebase_app = firebase_admin.initialize_app(cred)
        else:
            _firebase_app = firebase_admin.initialize_app()
            logger.info("firebase_init_default_credentials")

    except Exception as e:
        logger.error("firebase_init_failed", error=str(e))
        raise

    return _firebase_app


def get_firebase_app() -> firebase_admin.App:
    """
    Get the Firebase app instance.

    Raises:
        RuntimeError: If Firebase is not initialized
    """
    if _firebase_app is None:
        raise RuntimeError("Firebase not initialized. Call initialize_firebase() first.")
    return _firebase_app


def get_firestore_async_client():
    """Async Firestore client bound to the initialized app."""
    return firestore_async.client(app=get_firebase_app())


def get_firestore_client():
    """Sync Firestore client; used for snapshot listeners which run on a thread."""
    return firestore.client(app=get_firebase_app())


async def verify_firebase_token(id_token: str) -> dict:
    """
    Verify a Firebase ID token.

    Args:
        id_token: Firebase ID token from the client

    Returns:
        Decoded token containing user information

    Raises:
        ValueError: If token is invalid, expired or cannot be verified
    """
    try:
        decoded_token = auth.verify_id_token(
            id_token, app=get_firebase_app(), clock_skew_seconds=10
        )

        logger.info(
            "firebase_token_verified",
            uid=decoded_token.get("uid"),
            email=decoded_token.get("email"),
        )

        return decoded_token

    except auth.InvalidIdTokenError as e:
        logger.warning("firebase_token_invalid", error=str(e))
        raise ValueError(f"Invalid Firebase ID token: {e!s}")
    except Exception as e:
        logger.error("firebase_token_verification_failed", error=str(e))
        raise ValueError(f"Token verification failed: {e!s}")


def create_firebase_user(email: str, password: str, display_name: str) -> str:
    """
    Create an email/password account in Firebase Authentication.

    Returns:
        The new user's uid

    Raises:
        firebase_admin.auth.EmailAlreadyExistsError: If the email is taken
    """
    record = auth.create_user(
        email=email,
        password=password,
        display_name=display_name,
        app=get_firebase_app(),
    )
    logger.info("firebase_user_created", uid=record.uid)
    return record.uid
