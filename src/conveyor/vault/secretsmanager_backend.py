"""AWS Secrets Manager vault implementing ISecretVault."""

from __future__ import annotations

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from conveyor.core.exceptions import CredentialNotFound, VaultError
from conveyor.models.credentials import Credential, CredentialKind


class SecretsManagerVault:
    """Production ISecretVault backed by AWS Secrets Manager.

    Each ``resolve`` is a fresh ``GetSecretValue`` call; nothing is cached.
    boto3 clients are thread-safe, so independent runs may share one vault.
    """

    def __init__(self, region: str = "us-east-1", endpoint_url: str | None = None,
                 secret_prefix: str = "") -> None:
        self._region = region
        self._endpoint_url = endpoint_url
        self._prefix = secret_prefix
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._client = boto3.client("secretsmanager", **kwargs)

    def resolve(self, identifier: str, kind: CredentialKind) -> Credential:
        secret_id = f"{self._prefix}{identifier}"
        try:
            resp = self._client.get_secret_value(SecretId=secret_id)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code == "ResourceNotFoundException":
                raise CredentialNotFound(identifier) from exc
            raise VaultError(identifier, f"Secrets Manager error {code or 'unknown'}") from exc
        except BotoCoreError as exc:
            raise VaultError(identifier, f"Secrets Manager unreachable: {exc}") from exc

        if "SecretString" in resp:
            material = bytearray(resp["SecretString"].encode("utf-8"))
        else:
            material = bytearray(resp["SecretBinary"])
        return Credential(identifier=identifier, kind=kind, material=material)
