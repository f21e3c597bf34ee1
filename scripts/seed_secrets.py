"""Seed AWS Secrets Manager (or LocalStack) with pipeline credentials.

Usage:
    python scripts/seed_secrets.py --endpoint-url http://localhost:4566 --seed config/secrets_seed.json
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

import boto3

DEFAULT_SEED = Path(__file__).resolve().parent.parent / "config" / "secrets_seed.json"


def _secret_string(entry: dict[str, Any]) -> str:
    """Serialize one seed entry the way the vault expects to read it back."""
    kind = entry["kind"]
    if kind == "username-password":
        return json.dumps({"username": entry["username"], "password": entry["password"]})
    if kind == "kubeconfig" and "path" in entry:
        return Path(entry["path"]).read_text()
    return entry["value"]


def load_seed(path: Path = DEFAULT_SEED) -> list[dict[str, Any]]:
    data = json.loads(Path(path).read_text())
    return data["credentials"]


def seed_secrets(client: Any, entries: list[dict[str, Any]], prefix: str = "") -> int:
    """Create or update one secret per entry. Returns the number written."""
    existing: set[str] = set()
    paginator = client.get_paginator("list_secrets")
    for page in paginator.paginate():
        existing.update(s["Name"] for s in page.get("SecretList", []))

    for entry in entries:
        name = f"{prefix}{entry['id']}"
        secret = _secret_string(entry)
        if name in existing:
            client.put_secret_value(SecretId=name, SecretString=secret)
            print(f"  Updated secret {name}")
        else:
            client.create_secret(
                Name=name,
                SecretString=secret,
                Tags=[{"Key": "conveyor:kind", "Value": entry["kind"]}],
            )
            print(f"  Created secret {name}")
    return len(entries)


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed Secrets Manager for Conveyor")
    parser.add_argument("--endpoint-url", default=None, help="Secrets Manager endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--secret-prefix", default="", help="Secret name prefix (e.g. ci/)")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    parser.add_argument("--seed", default=str(DEFAULT_SEED), help="Seed JSON file")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    client = boto3.client("secretsmanager", **kwargs)

    print("Seeding secrets...")
    count = seed_secrets(client, load_seed(Path(args.seed)), prefix=args.secret_prefix)
    print(f"Done! ({count} secrets)")


if __name__ == "__main__":
    main()
