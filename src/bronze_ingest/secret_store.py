import logging
import os
import re
from typing import Mapping, Protocol

from core import settings
from bronze_ingest.data_access import StorageCredentials
from bronze_ingest.errors import SecretNotFoundError

logger = logging.getLogger(__name__)


class SecretStore(Protocol):
    def get_secret(self, scope: str, key: str) -> str:
        ...


class EnvSecretStore:
    """
    Secrets from environment variables named <SCOPE>_<KEY>, upper-cased,
    with every non-alphanumeric character replaced by '_'.

      get_secret("bronze-storage", "access_key") -> $BRONZE_STORAGE_ACCESS_KEY
    """

    def __init__(self, environ: Mapping[str, str] | None = None):
        self._environ = os.environ if environ is None else environ

    @staticmethod
    def variable_name(scope: str, key: str) -> str:
        return re.sub(r"[^A-Za-z0-9]", "_", f"{scope}_{key}").upper()

    def get_secret(self, scope: str, key: str) -> str:
        name = self.variable_name(scope, key)
        value = self._environ.get(name)
        if not value:
            raise SecretNotFoundError(f"Secret '{key}' not found in scope '{scope}' (expected ${name})")
        return value


def load_storage_credentials(
    store: SecretStore,
    scope: str = settings.STORAGE_SECRET_SCOPE,
    *,
    required: bool = False,
) -> StorageCredentials | None:
    """
    Fetches the object storage credentials once at startup.

    Without `required`, a scope with no secrets yields None and the storage
    layer falls back to its default credential chain.
    """
    try:
        access_key = store.get_secret(scope, settings.STORAGE_ACCESS_KEY_SECRET)
        secret_key = store.get_secret(scope, settings.STORAGE_SECRET_KEY_SECRET)
    except SecretNotFoundError:
        if required:
            raise
        logger.info("No storage credentials in secret scope '%s'; using default credential chain.", scope)
        return None

    logger.info("Loaded storage credentials from secret scope '%s'.", scope)
    return StorageCredentials(access_key=access_key, secret_key=secret_key, region=settings.S3_REGION)
