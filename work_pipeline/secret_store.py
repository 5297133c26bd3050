from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from pydantic import ValidationError

from work_pipeline.contracts import Credentials, describe_validation_error
from work_pipeline.errors import CredentialParseError, SecretRetrievalError

logger = logging.getLogger(__name__)


class FileSecretStore:
    """Reads JSON credentials from secret files mounted into ``secrets_dir``."""

    def __init__(self, secrets_dir: str) -> None:
        self._secrets_dir = Path(secrets_dir)

    async def get_secret(self, secret_id: str) -> Credentials:
        path = self._secrets_dir / secret_id
        try:
            raw = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise SecretRetrievalError(f"failed to retrieve secret {secret_id}: {exc.strerror or exc}") from exc

        try:
            credentials = Credentials.model_validate_json(raw.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise CredentialParseError(f"failed to parse credentials in secret {secret_id}: not valid UTF-8") from exc
        except ValidationError as exc:
            raise CredentialParseError(
                f"failed to parse credentials in secret {secret_id}: {describe_validation_error(exc)}"
            ) from exc

        if not credentials.token.get_secret_value():
            raise CredentialParseError(f"failed to parse credentials in secret {secret_id}: token is empty")

        logger.debug("retrieved secret", extra={"secret_id": secret_id})
        return credentials
