# practicedesk/core/config.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Service account JSON for the Firebase Admin SDK
    FIREBASE_CREDENTIALS: str = "practicedesk/core/firebase_key.json"

    # Firestore layout: tenants/{practiceId}/patients/{patientId}
    TENANT_COLLECTION: str = "tenants"
    PATIENT_COLLECTION: str = "patients"
    # Flat pre-tenancy collection: patients/{patientId}
    LEGACY_PATIENT_COLLECTION: str = "patients"
    PRACTICE_COLLECTION: str = "practices"
    USER_COLLECTION: str = "users"

    # Refuse writes that carry no practice id
    STRICT_TENANCY: bool = True

    DUPLICATE_PROBE_LIMIT: int = 10
    LIST_LIMIT: int = 500
    ALL_PRACTICES_LIMIT: int = 2000

    DEBUG_MODE: bool = False

    # If you want to read from a .env file, keep this:
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
