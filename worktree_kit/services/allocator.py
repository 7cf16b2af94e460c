"""Deterministic port and resource-name allocation for worktrees."""

import hashlib
import re
import socket
from typing import Dict, List, Optional, Sequence

from worktree_kit.constants import (
    DEFAULT_PORT_RANGES,
    DEFAULT_PROJECT_PREFIX,
    DEFAULT_SAFE_NAME_LENGTH,
)
from worktree_kit.exceptions import PortUnavailable
from worktree_kit.logging_config import get_logger
from worktree_kit.models.allocation import NamedRange, ResourceAllocation

logger = get_logger(__name__)

HASH_SUFFIX_LENGTH = 4


def identity_digest(identity: str) -> bytes:
    """MD5 digest of the identity; only its distribution matters, not its strength."""
    return hashlib.md5(identity.encode("utf-8")).digest()


def compute_offset(identity: str, ranges: Sequence[NamedRange] = DEFAULT_PORT_RANGES) -> int:
    """Offset shared by every named range.

    Sum of the first two digest bytes modulo the size of the smallest range.
    """
    if not ranges:
        raise ValueError("At least one port range is required")
    digest = identity_digest(identity)
    width = min(r.size for r in ranges)
    return (digest[0] + digest[1]) % width


def safe_name(identity: str, max_length: int = DEFAULT_SAFE_NAME_LENGTH) -> str:
    """Lower-case, hyphen-separated name safe for containers, networks and buckets.

    Names over ``max_length`` are cut and suffixed with a short hex hash so two
    long branches sharing a prefix still produce different names.
    """
    name = re.sub(r"[^a-z0-9-]+", "-", identity.lower())
    name = re.sub(r"-{2,}", "-", name).strip("-")

    if len(name) > max_length:
        suffix = hashlib.md5(identity.encode("utf-8")).hexdigest()[:HASH_SUFFIX_LENGTH]
        name = name[: max_length - HASH_SUFFIX_LENGTH - 1] + suffix

    return name


def allocate(
    identity: str,
    ranges: Sequence[NamedRange] = DEFAULT_PORT_RANGES,
    project_prefix: str = DEFAULT_PROJECT_PREFIX,
    max_length: int = DEFAULT_SAFE_NAME_LENGTH,
) -> ResourceAllocation:
    """Derive the full resource allocation for a worktree identity.

    Pure function of its arguments: the same identity always yields the same
    ports and names. Two identities may land on the same offset; nothing here
    retries or reassigns on collision.
    """
    digest = identity_digest(identity)
    offset = compute_offset(identity, ranges)
    ports = {r.name: r.base + offset for r in ranges}
    safe = safe_name(identity, max_length)

    docker = {
        "containerPrefix": f"{project_prefix}-{safe}",
        "networkName": f"{project_prefix}-network-{safe}",
        "volumePrefix": f"{project_prefix}-volume-{safe}",
    }
    aws = {
        "s3BucketName": f"{safe}-{project_prefix}-cache",
        "tablePrefix": safe,
        "lambdaPrefix": safe,
        "stepFunctionPrefix": safe,
    }

    environment = {
        "ENVIRONMENT": safe,
        "NODE_ENV": "test",
        "AWS_REGION": "us-east-1",
        "AWS_ACCESS_KEY_ID": "test",
        "AWS_SECRET_ACCESS_KEY": "test",
        "IS_WORKTREE": "true",
        "WORKTREE_NAME": identity,
        "WORKTREE_SAFE_NAME": safe,
    }
    for name, port in ports.items():
        environment[f"{name.upper()}_PORT"] = str(port)
    if "playwright" in ports:
        environment["PORT"] = str(ports["playwright"])
    if "localstack" in ports:
        environment["AWS_ENDPOINT_URL"] = f"http://localhost:{ports['localstack']}"

    allocation = ResourceAllocation(
        branch_name=identity,
        hash=digest.hex()[:8],
        safe_name=safe,
        offset=offset,
        ports=ports,
        docker=docker,
        aws=aws,
        environment=environment,
    )
    logger.debug(f"Allocated offset {offset} for '{identity}': {ports}")
    return allocation


def render_env_file(allocation: ResourceAllocation, generated_at: Optional[str] = None) -> str:
    """Render the ``.env.worktree`` file for an allocation."""
    lines = [
        "# Worktree-specific environment configuration",
        f"# Branch: {allocation.branch_name}",
    ]
    if generated_at:
        lines.append(f"# Generated: {generated_at}")
    lines.append("")

    env = dict(allocation.environment)
    env["WORKTREE_BRANCH"] = allocation.branch_name
    env["WORKTREE_CONTAINER_PREFIX"] = allocation.docker.get("containerPrefix", "")
    env["WORKTREE_NETWORK"] = allocation.docker.get("networkName", "")
    env["COMPOSE_PROJECT_NAME"] = allocation.docker.get("containerPrefix", "")
    env["S3_BUCKET_NAME"] = allocation.aws.get("s3BucketName", "")
    env["TABLE_PREFIX"] = allocation.aws.get("tablePrefix", "")

    for key in sorted(env):
        lines.append(f"{key}={env[key]}")
    return "\n".join(lines) + "\n"


def is_port_available(port: int, host: str = "127.0.0.1") -> bool:
    """Try a transient bind on ``port``."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError as e:
            logger.debug(f"Port {port} not available on {host}: {e}")
            return False
    return True


def probe_ports(ports: Dict[str, int], host: str = "127.0.0.1") -> List[PortUnavailable]:
    """Check every allocated port; return an advisory record for each busy one."""
    unavailable = []
    for name, port in ports.items():
        if not is_port_available(port, host):
            logger.warning(f"Port {port} ({name}) is already in use")
            unavailable.append(PortUnavailable(name, port))
    return unavailable
