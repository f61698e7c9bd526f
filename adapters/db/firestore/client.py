"""Firestore client factory and configuration."""

import logging
import os
from typing import Optional

from google.auth import default
from google.cloud import firestore

logger = logging.getLogger(__name__)


class FirestoreClientFactory:
    """Firestore client factory."""

    @staticmethod
    def create_client(project_id: Optional[str] = None, emulator_host: Optional[str] = None) -> firestore.Client:
        """Create a Firestore client, preferring the emulator when one is configured."""

        try:
            host = emulator_host or os.getenv('FIRESTORE_EMULATOR_HOST')
            if host:
                os.environ['FIRESTORE_EMULATOR_HOST'] = host
                client_project_id = project_id or os.getenv('GOOGLE_CLOUD_PROJECT') or 'local-dev'
                logger.info(f"Using Firestore emulator at {host} for project: {client_project_id}")
                return firestore.Client(project=client_project_id)

            if project_id:
                logger.info(f"Creating Firestore client for project: {project_id}")
                return firestore.Client(project=project_id)

            try:
                credentials, adc_project = default()
                logger.info(f"Using ADC credentials for project: {adc_project}")
                return firestore.Client(project=adc_project, credentials=credentials)
            except Exception as e:
                logger.warning(f"Failed to get project ID from ADC: {e}")
                return firestore.Client()
        except Exception as e:
            logger.error(f"Failed to create Firestore client: {e}")
            raise


def get_firestore_client(config) -> Optional[firestore.Client]:
    """Build a client when ``config.use_firestore`` is set; ``None`` otherwise."""

    if not getattr(config, 'use_firestore', False):
        logger.debug("Firestore not enabled")
        return None

    try:
        client = FirestoreClientFactory.create_client(
            project_id=getattr(config, 'gcp_project_id', None),
            emulator_host=getattr(config, 'firestore_emulator_host', None),
        )
        logger.info("Firestore client initialized successfully")
        return client
    except Exception as e:
        logger.error(f"Failed to initialize Firestore client: {e}")
        return None
