"""
Pre-flight checks run before any stack is submitted.
"""

import logging

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from ecsy.errors import PreflightError

logger = logging.getLogger(__name__)


def check_credentials(session: boto3.Session) -> str:
    """Return the caller ARN, or raise PreflightError if AWS rejects the credentials."""
    try:
        identity = session.client('sts').get_caller_identity()
    except NoCredentialsError:
        raise PreflightError("No AWS credentials found") from None
    except (ClientError, BotoCoreError) as e:
        raise PreflightError(f"AWS credentials are not usable: {e}") from e
    return identity['Arn']


def check_url_reachable(url: str, timeout: float = 10) -> str | None:
    """Return a problem description if `url` cannot be fetched, else None.

    Instances fetch the authorized_keys URL hourly; an unreachable URL does
    not stop provisioning but is worth flagging before a 15 minute wait.
    """
    try:
        response = requests.head(url, timeout=timeout, allow_redirects=True)
    except requests.exceptions.RequestException as e:
        return f"{url} is unreachable: {e}"
    if response.status_code >= 400:
        return f"{url} returned HTTP {response.status_code}"
    return None


def list_key_pairs(session: boto3.Session) -> list[str]:
    try:
        return sorted(kp['KeyName'] for kp in session.client('ec2').describe_key_pairs()['KeyPairs'])
    except (ClientError, BotoCoreError) as e:
        logger.debug("Could not list key pairs: %s", e)
        return []
