import logging
import os
from dataclasses import dataclass
from typing import Optional

import requests
from aws_cdk import aws_logs as logs

logger = logging.getLogger(__name__)

MY_IP_URL = "https://ipv4.icanhazip.com"
ANY_IPV4 = "0.0.0.0/0"


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def detect_my_ip() -> str:
    """Return the caller's public IPv4 address as a /32 CIDR, or any IPv4 if it cannot be fetched"""
    try:
        response = requests.get(MY_IP_URL, timeout=10)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning("Could not fetch current IP address: %s", e)
        return ANY_IPV4
    return response.text.strip() + "/32"


@dataclass(frozen=True)
class GameServersConfig:
    """Deployment settings read from the environment (and .env)"""

    project_name: str = "GameServers"
    environment: str = "dev"
    aws_region: str = "us-west-2"
    environment_file: str = "etc/minecraft.env"
    cpu: int = 4096
    memory: int = 10240
    image_tag: Optional[str] = None
    docker_image: Optional[str] = None
    create_load_balancer: bool = False
    health_check_allowed_ip: Optional[str] = None

    @classmethod
    def from_env(cls) -> "GameServersConfig":
        allowed_ip = os.getenv("HEALTH_CHECK_ALLOWED_IP") or None
        if allowed_ip == "auto":
            allowed_ip = detect_my_ip()
            logger.info("Health check port restricted to %s", allowed_ip)

        return cls(
            project_name=os.getenv("PROJECT_NAME", cls.project_name),
            environment=os.getenv("ENVIRONMENT", cls.environment),
            aws_region=os.getenv("AWS_REGION", cls.aws_region),
            environment_file=os.getenv("MINECRAFT_ENV_FILE", cls.environment_file),
            cpu=_get_int("ECS_CPU", cls.cpu),
            memory=_get_int("ECS_MEMORY", cls.memory),
            image_tag=os.getenv("IMAGE_TAG") or None,
            docker_image=os.getenv("DOCKER_IMAGE") or None,
            create_load_balancer=_get_bool("CREATE_LOAD_BALANCER", cls.create_load_balancer),
            health_check_allowed_ip=allowed_ip,
        )

    @property
    def log_retention(self) -> logs.RetentionDays:
        if self.environment == "prod":
            return logs.RetentionDays.ONE_MONTH
        return logs.RetentionDays.ONE_WEEK

    @property
    def common_tags(self) -> dict:
        return {
            "Project": self.project_name,
            "Environment": self.environment,
            "ManagedBy": "cdk",
            "ResourceType": "game-servers",
        }
