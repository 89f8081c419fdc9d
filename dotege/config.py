"""Dotege configuration."""
from __future__ import annotations

import yaml
from pydantic import BaseModel, ValidationError
from pydantic_settings import BaseSettings

from dotege.model import split_list

LE_DIRECTORY_PRODUCTION = "https://acme-v02.api.letsencrypt.org/directory"

ENV_PREFIX = "DOTEGE_"

DEBUG_CONTAINERS = "containers"
DEBUG_HEADERS = "headers"
DEBUG_HOSTNAMES = "hostnames"

# Required settings, by field name
REQUIRED_FIELDS = ("dns_provider", "acme_email")


class ConfigError(Exception):
    """Raised when the configuration is missing or malformed."""


class User(BaseModel):
    """A single user used for ACL purposes."""

    name: str
    password: str
    groups: list[str] = []


class TemplateConfig(BaseModel):
    """A single template for the generator."""

    source: str
    destination: str


class ContainerSignal(BaseModel):
    """A container to signal when the config or certificates change."""

    name: str
    signal: str


class AcmeConfig(BaseModel):
    """Settings for obtaining certificates using ACME."""

    email: str
    dns_provider: str
    endpoint: str
    key_type: str
    cache_location: str


class Settings(BaseSettings):
    """Dotege settings loaded from environment variables."""

    # Templates
    template_source: str = "./templates/haproxy.cfg.tpl"
    template_destination: str = "/data/output/haproxy.cfg"

    # Certificates
    cert_destination: str = "/data/certs/"
    wildcard_domains: str = ""  # comma/space separated

    # ACME
    dns_provider: str = ""  # required
    acme_email: str = ""  # required
    acme_endpoint: str = LE_DIRECTORY_PRODUCTION
    acme_key_type: str = "P384"
    acme_cache_file: str = "/data/config/certs.json"

    # Container to signal after changes (empty to disable)
    signal_container: str = ""
    signal_type: str = "HUP"

    # YAML list of {name, password, groups}
    users: str = ""

    # Docker connection (empty uses DOCKER_HOST etc.)
    docker_host: str = ""

    # Debug output: comma/space separated list of containers, headers, hostnames
    debug: str = ""

    # Logging configuration
    log_format: str = "text"  # "json" or "text"
    log_level: str = "INFO"

    class Config:
        env_prefix = ENV_PREFIX

    def validate_required(self) -> None:
        """Raise ConfigError if any required variable is unset."""
        missing = [
            f"{ENV_PREFIX}{name.upper()}"
            for name in REQUIRED_FIELDS
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigError(f"required environmental variable not defined: {', '.join(missing)}")

    # Views below are read by the consumers of the hostname model (template
    # renderer, certificate manager, container signaller); main.describe_config
    # logs them at startup.

    @property
    def templates(self) -> list[TemplateConfig]:
        return [TemplateConfig(source=self.template_source, destination=self.template_destination)]

    @property
    def signals(self) -> list[ContainerSignal]:
        if not self.signal_container:
            return []
        return [ContainerSignal(name=self.signal_container, signal=self.signal_type)]

    @property
    def acme(self) -> AcmeConfig:
        return AcmeConfig(
            email=self.acme_email,
            dns_provider=self.dns_provider,
            endpoint=self.acme_endpoint,
            key_type=self.acme_key_type,
            cache_location=self.acme_cache_file,
        )

    @property
    def wildcard_domain_list(self) -> list[str]:
        return split_list(self.wildcard_domains)

    @property
    def user_list(self) -> list[User]:
        return parse_users(self.users)

    @property
    def debug_flags(self) -> set[str]:
        return set(split_list(self.debug.lower()))

    @property
    def debug_containers(self) -> bool:
        return DEBUG_CONTAINERS in self.debug_flags

    @property
    def debug_headers(self) -> bool:
        return DEBUG_HEADERS in self.debug_flags

    @property
    def debug_hostnames(self) -> bool:
        return DEBUG_HOSTNAMES in self.debug_flags


def parse_users(value: str) -> list[User]:
    """Parse a YAML list of users."""
    try:
        raw = yaml.safe_load(value) if value else None
    except yaml.YAMLError as e:
        raise ConfigError(f"unable to parse users struct: {e}") from e

    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError("unable to parse users struct: expected a list of users")

    try:
        return [User.model_validate(item) for item in raw]
    except ValidationError as e:
        raise ConfigError(f"unable to parse users struct: {e}") from e


settings = Settings()
