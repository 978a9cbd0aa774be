import os
from functools import lru_cache

import firebase_admin
import google.auth
from firebase_admin import credentials
from google.cloud import firestore

from src.config.settings import settings


def initialize_firebase():
    """Initialize Firebase Admin SDK"""
    if not firebase_admin._apps:
        is_local = settings.DEPLOYMENT == "local"

        if is_local:
            # Local dev: must use service account key
            service_account_path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
            if not service_account_path:
                raise ValueError(
                    "GOOGLE_APPLICATION_CREDENTIALS environment variable not set."
                )
            cred = credentials.Certificate(service_account_path)
            firebase_admin.initialize_app(cred)
        else:
            # Cloud Run (or any Google-managed environment): use ADC
            try:
                cred, project_id = google.auth.default()
            except Exception as e:
                raise RuntimeError(f"Failed to get default credentials: {e}")

            project_id = settings.GOOGLE_CLOUD_PROJECT or project_id
            if not project_id:
                raise ValueError("Project ID could not be inferred from environment.")

            firebase_admin.initialize_app(
                credential=credentials.ApplicationDefault(),
                options={"projectId": project_id},
            )


@lru_cache(maxsize=1)
def get_firestore_client() -> firestore.AsyncClient:
    """Get a cached async Firestore client instance"""
    initialize_firebase()
    return firestore.AsyncClient(project=settings.GOOGLE_CLOUD_PROJECT)
