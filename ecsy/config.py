"""
Runtime settings and AWS session construction.

Defaults live here as constants; ECSY_* environment variables override them,
and CLI flags override the environment.
"""

import os
from dataclasses import dataclass

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ProfileNotFound

from ecsy.errors import PreflightError


# ─────────────────────────────────────────────────────────────────────────────
# CONSTANTS
# ─────────────────────────────────────────────────────────────────────────────

DEFAULT_POLL_INTERVAL = 5.0       # seconds between polls
DEFAULT_TIMEOUT = 3600.0          # overall wait for both stacks
DEFAULT_MAX_RETRIES = 5           # transient query failures per poll streak
DEFAULT_MAX_BACKOFF = 60.0
DEFAULT_STACK_PREFIX = "ecs"

# Retry backoff for individual API calls belongs to botocore, not the poller
BOTO_CONFIG = Config(retries={'mode': 'standard', 'max_attempts': 10})


@dataclass
class Settings:
    """Knobs shared by the CLI and the workflow."""
    profile: str | None = None
    region: str | None = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    timeout: float | None = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    max_backoff: float = DEFAULT_MAX_BACKOFF
    stack_prefix: str = DEFAULT_STACK_PREFIX
    log_level: str | None = None

    @classmethod
    def from_env(cls, environ: dict | None = None) -> 'Settings':
        env = os.environ if environ is None else environ
        return cls(
            profile=env.get('AWS_PROFILE') or None,
            region=env.get('AWS_REGION') or env.get('AWS_DEFAULT_REGION') or None,
            poll_interval=_positive(env, 'ECSY_POLL_INTERVAL', DEFAULT_POLL_INTERVAL),
            timeout=_timeout(env, 'ECSY_TIMEOUT'),
            max_retries=_count(env, 'ECSY_MAX_RETRIES', DEFAULT_MAX_RETRIES),
            stack_prefix=env.get('ECSY_STACK_PREFIX') or DEFAULT_STACK_PREFIX,
            log_level=env.get('ECSY_LOG_LEVEL') or None,
        )


def _float(env, key: str, default: float) -> float:
    raw = env.get(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None


def _positive(env, key: str, default: float) -> float:
    value = _float(env, key, default)
    if value <= 0:
        raise ValueError(f"{key} must be greater than 0, got {env.get(key)!r}")
    return value


def _count(env, key: str, default: int) -> int:
    raw = env.get(key)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{key} must be a whole number, got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{key} must not be negative, got {raw!r}")
    return value


def _timeout(env, key: str) -> float | None:
    """Parse a timeout in seconds; empty means the default, 0 means no deadline."""
    value = _float(env, key, DEFAULT_TIMEOUT)
    if value < 0:
        raise ValueError(f"{key} must not be negative, got {env.get(key)!r}")
    return value if value > 0 else None


# ─────────────────────────────────────────────────────────────────────────────
# AWS HELPERS
# ─────────────────────────────────────────────────────────────────────────────

def get_aws_session(profile: str | None = None, region: str | None = None) -> boto3.Session:
    try:
        return boto3.Session(profile_name=profile, region_name=region)
    except ProfileNotFound:
        raise PreflightError(f"AWS profile '{profile}' not found") from None


def _client(session: boto3.Session, service: str):
    # NoRegionError and friends surface here, before any request is made
    try:
        return session.client(service, config=BOTO_CONFIG)
    except BotoCoreError as e:
        raise PreflightError(f"Cannot create {service} client: {e}") from e


def cloudformation_client(session: boto3.Session):
    return _client(session, 'cloudformation')


def ecs_client(session: boto3.Session):
    return _client(session, 'ecs')
