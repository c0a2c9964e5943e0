"""Secret reference resolution (Vault, AWS Secrets Manager, environment)."""

import json
import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

# Both backends are optional installs (see the "secrets" extra)
try:
    import hvac
    HAS_VAULT = True
except ImportError:
    HAS_VAULT = False

try:
    import boto3
    HAS_AWS = True
except ImportError:
    HAS_AWS = False

REFERENCE_PREFIXES = ("vault://", "aws://", "env://")


class SecretsManager:
    """Resolves OAuth client secrets and API keys given as references."""

    def __init__(self):
        self.vault_client = None
        self.aws_client = None
        self._init_vault()
        self._init_aws()

    def _init_vault(self):
        if not HAS_VAULT:
            return

        vault_url = os.getenv("VAULT_ADDR")
        vault_token = os.getenv("VAULT_TOKEN")
        if not (vault_url and vault_token):
            return

        try:
            client = hvac.Client(url=vault_url, token=vault_token)
            if client.is_authenticated():
                self.vault_client = client
            else:
                logger.warning("Vault token rejected, vault:// references will not resolve")
        except Exception as e:
            logger.warning(f"Vault unavailable: {e}")

    def _init_aws(self):
        if not HAS_AWS:
            return

        aws_region = os.getenv("AWS_REGION")
        if not aws_region:
            return

        try:
            self.aws_client = boto3.client("secretsmanager", region_name=aws_region)
        except Exception as e:
            logger.warning(f"AWS Secrets Manager unavailable: {e}")

    def get_secret(self, secret_ref: str) -> Optional[str]:
        """
        Resolve a secret reference.

        Supports:
        - vault://secret/path/key - HashiCorp Vault (KV v2)
        - aws://secret-name/key - AWS Secrets Manager (JSON secret)
        - env://VAR_NAME - Environment variable
        - Direct value (anything without a known prefix)
        """
        if not secret_ref:
            return None

        if not secret_ref.startswith(REFERENCE_PREFIXES):
            return secret_ref

        if secret_ref.startswith("vault://"):
            return self._get_vault_secret(secret_ref[len("vault://"):])

        if secret_ref.startswith("aws://"):
            return self._get_aws_secret(secret_ref[len("aws://"):])

        return os.getenv(secret_ref[len("env://"):])

    def _get_vault_secret(self, path: str) -> Optional[str]:
        if not self.vault_client:
            return None

        secret_path, _, key = path.rpartition("/")
        if not secret_path or not key:
            return None

        try:
            response = self.vault_client.secrets.kv.v2.read_secret_version(path=secret_path)
        except Exception as e:
            logger.warning(f"Vault read failed for {secret_path}: {e}")
            return None
        return response.get("data", {}).get("data", {}).get(key)

    def _get_aws_secret(self, path: str) -> Optional[str]:
        if not self.aws_client:
            return None

        secret_name, _, key = path.partition("/")
        if not secret_name or not key:
            return None

        try:
            response = self.aws_client.get_secret_value(SecretId=secret_name)
            secret_data = json.loads(response.get("SecretString", "{}"))
        except Exception as e:
            logger.warning(f"AWS secret read failed for {secret_name}: {e}")
            return None
        return secret_data.get(key)


secrets_manager = SecretsManager()


def get_secret(secret_ref: str, fallback: Optional[str] = None) -> Optional[str]:
    """Resolve a secret reference, returning ``fallback`` when it does not resolve."""
    value = secrets_manager.get_secret(secret_ref)
    return value if value is not None else fallback


def mask_token(token: Optional[str]) -> str:
    """Render a credential for logs without revealing it."""
    if not token:
        return "<none>"
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}...{token[-2:]}"
