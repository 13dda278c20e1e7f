"""Secrets Manager access for the connpass API key."""
import json
import logging
from typing import Iterable, List

import boto3
from botocore.exceptions import ClientError

from processor.errors import CredentialError

logger = logging.getLogger(__name__)

ERROR_MESSAGES = {
    'ResourceNotFoundException': 'Secret not found',
    'AccessDeniedException': 'Access denied to secret',
    'InvalidParameterException': 'Invalid parameter for secret',
    'InvalidRequestException': 'Invalid request for secret',
    'DecryptionFailureException': 'Failed to decrypt secret',
    'InternalServiceErrorException': 'Secrets Manager internal error for secret',
}

JSON_KEY_FIELDS = ('apiKey', 'api_key', 'key')


class SecretsProvider:
    """Reads the connpass API key from AWS Secrets Manager."""

    def __init__(self, secret_name: str, fallback_names: Iterable[str] = ()):
        """
        Initialize the Secrets Manager client.

        Args:
            secret_name: Primary secret name
            fallback_names: Secret names tried in order if the primary fails
        """
        self.secret_names: List[str] = [secret_name] + [
            name for name in fallback_names if name and name != secret_name
        ]
        self.client = boto3.client('secretsmanager')

    def get_credential(self) -> str:
        """
        Retrieve the connpass API key.

        Returns:
            API key string

        Raises:
            CredentialError: If no configured secret yields a key
        """
        last_error = None

        for secret_name in self.secret_names:
            try:
                api_key = self._read_api_key(secret_name)
                logger.info(f"connpass API key retrieved from: {secret_name}")
                return api_key
            except CredentialError as e:
                logger.warning(f"Failed to get API key from {secret_name}: {e}")
                last_error = e

        raise CredentialError(
            f"Failed to retrieve connpass API key from "
            f"{', '.join(self.secret_names)}. Last error: {last_error}"
        )

    def _read_api_key(self, secret_name: str) -> str:
        """
        Read and parse one secret.

        Args:
            secret_name: Secret to read

        Returns:
            API key from a JSON secret or a plain-text secret

        Raises:
            CredentialError: If the secret is missing, inaccessible or empty
        """
        try:
            response = self.client.get_secret_value(SecretId=secret_name)
        except ClientError as e:
            code = e.response.get('Error', {}).get('Code', '')
            prefix = ERROR_MESSAGES.get(code, 'Failed to retrieve secret')
            raise CredentialError(f"{prefix}: {secret_name}") from e

        secret_string = response.get('SecretString')
        if not secret_string:
            raise CredentialError(f"Secret value is empty: {secret_name}")

        try:
            secret_data = json.loads(secret_string)
        except ValueError:
            secret_data = None

        if isinstance(secret_data, dict):
            for field in JSON_KEY_FIELDS:
                value = secret_data.get(field)
                if isinstance(value, str) and value.strip():
                    return value.strip()
            raise CredentialError(f"API key not found in JSON secret: {secret_name}")

        api_key = secret_string.strip()
        if not api_key:
            raise CredentialError(f"API key is empty: {secret_name}")
        return api_key
