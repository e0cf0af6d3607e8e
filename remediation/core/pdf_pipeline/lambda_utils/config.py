"""
Configuration and secrets management utilities for Lambda.
"""

import json
import logging
import os
from typing import Dict

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

REQUIRED_VARS = (
    "REMEDIATION_BUCKET",
    "AWS_REGION",
)


def validate_environment() -> Dict[str, str]:
    """
    Validate required environment variables.

    Returns:
        Dict with required env vars

    Raises:
        ValueError: Missing required environment variable
    """
    env_config = {}
    missing = []

    for var in REQUIRED_VARS:
        value = os.getenv(var)
        if not value:
            missing.append(var)
        else:
            env_config[var] = value

    if missing:
        raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

    logger.info("validate_environment - Environment validated")
    return env_config


def configure_secrets() -> None:
    """
    Set GOOGLE_API_KEY from the Secrets Manager secret named by SECRETS_ARN.

    Missing or placeholder secrets are logged and left unset; the generative
    client then fails on first use and the affected chunks are reported.
    """
    secret_arn = os.getenv("SECRETS_ARN")
    if not secret_arn:
        return

    session = boto3.session.Session()
    client = session.client("secretsmanager")
    try:
        response = client.get_secret_value(SecretId=secret_arn)
    except (BotoCoreError, ClientError) as e:
        logger.error("configure_secrets - Failed to fetch Google API Key: %s", e)
        return

    if "SecretString" not in response:
        logger.warning("configure_secrets - Secret has no SecretString")
        return
    try:
        secret = json.loads(response["SecretString"])
    except json.JSONDecodeError as e:
        logger.error("configure_secrets - Secret is not valid JSON: %s", e)
        return

    api_key = secret.get("api_key")
    if api_key and api_key != "PLACEHOLDER_SET_VIA_CLI":
        os.environ["GOOGLE_API_KEY"] = api_key
        logger.info("configure_secrets - Set GOOGLE_API_KEY from secret")
    else:
        logger.warning("configure_secrets - Google API Key is missing or placeholder")
