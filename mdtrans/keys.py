"""
Credential management for MDTrans.

Job-service identifiers and API keys are looked up in order:
1. Environment variables (preferred for CI/production)
2. OS keychain via keyring (secure local storage)
3. Local config file (~/.mdtrans/keys.json)

Credentials are read once, when a backend is constructed, and stay
read-only for the rest of the run.

Usage:
    from mdtrans.keys import KeyManager

    km = KeyManager()
    km.set_key("job_key", "...")
    key = km.get_key("job_key")
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import keyring
from keyring.errors import KeyringError

from mdtrans.config import APP_NAME, CONFIG_DIR
from mdtrans.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Supported services and their env var names
SERVICES = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "job_url": "MDTRANS_JOB_URL",
    "job_key": "MDTRANS_JOB_ACCESS_KEY",
    "job_secret": "MDTRANS_JOB_ACCESS_SECRET",
    "job_user": "MDTRANS_JOB_USER",
    "job_app": "MDTRANS_JOB_APP_ID",
    "job_output_node": "MDTRANS_JOB_OUTPUT_NODE",
}

# Identifiers rather than secrets; shown unmasked
PUBLIC_SERVICES = frozenset({"job_url", "job_user", "job_app", "job_output_node"})


@dataclass
class KeyInfo:
    """Information about a stored credential."""
    service: str
    is_set: bool
    source: str  # 'env', 'keyring', 'config', 'none'
    masked_value: str  # e.g., "sk-...abc"


def env_var_for(service: str) -> str:
    return SERVICES.get(service, f"MDTRANS_{service.upper()}")


class KeyManager:
    """Manage credentials.

    Args:
        config_dir: Directory of the fallback ``keys.json``
        use_keyring: Consult the OS keychain
    """

    SERVICE_NAME = APP_NAME

    def __init__(self, config_dir: Optional[Path] = None, use_keyring: bool = True):
        self.config_dir = Path(config_dir) if config_dir else CONFIG_DIR
        self.config_file = self.config_dir / "keys.json"
        self._keyring_available = use_keyring and self._check_keyring()

    def _check_keyring(self) -> bool:
        """Check if a usable keyring backend is installed."""
        try:
            keyring.get_keyring()
            return True
        except (KeyringError, RuntimeError) as e:
            logger.debug("keyring unavailable: %s", e)
            return False

    def _read_config(self) -> dict:
        if not self.config_file.exists():
            return {}
        try:
            return json.loads(self.config_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable %s: %s", self.config_file, e)
            return {}

    def _write_config(self, config: dict) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(json.dumps(config, indent=2), encoding="utf-8")
        self.config_file.chmod(0o600)  # Restrict permissions

    def _lookup(self, service: str) -> tuple[Optional[str], str]:
        service = service.lower()

        if env_val := os.getenv(env_var_for(service)):
            return env_val, "env"

        if self._keyring_available:
            try:
                if key := keyring.get_password(self.SERVICE_NAME, service):
                    return key, "keyring"
            except KeyringError as e:
                logger.debug("keyring lookup of %s failed: %s", service, e)

        if key := self._read_config().get(service):
            return key, "config"

        return None, "none"

    def get_key(self, service: str) -> Optional[str]:
        """Get the credential of a service, or None if not found."""
        return self._lookup(service)[0]

    def set_key(self, service: str, key: str, use_keyring: bool = True) -> str:
        """Store a credential.

        Returns:
            Storage location used ('keyring' or 'config')
        """
        service = service.lower()

        if use_keyring and self._keyring_available:
            try:
                keyring.set_password(self.SERVICE_NAME, service, key)
                return "keyring"
            except KeyringError as e:
                logger.warning("keyring refused %s, using %s: %s", service, self.config_file, e)

        config = self._read_config()
        config[service] = key
        self._write_config(config)
        return "config"

    def delete_key(self, service: str) -> bool:
        """Delete a stored credential from keyring and config file."""
        service = service.lower()
        deleted = False

        if self._keyring_available:
            try:
                keyring.delete_password(self.SERVICE_NAME, service)
                deleted = True
            except KeyringError as e:
                logger.debug("keyring delete of %s: %s", service, e)

        config = self._read_config()
        if service in config:
            del config[service]
            self._write_config(config)
            deleted = True

        return deleted

    def get_key_info(self, service: str) -> KeyInfo:
        """Get information about a stored credential."""
        service = service.lower()
        value, source = self._lookup(service)
        if value is None:
            return KeyInfo(service=service, is_set=False, source="none", masked_value="")
        shown = value if service in PUBLIC_SERVICES else self._mask_key(value)
        return KeyInfo(service=service, is_set=True, source=source, masked_value=shown)

    def list_keys(self) -> list[KeyInfo]:
        """List all known services and their status."""
        return [self.get_key_info(service) for service in SERVICES]

    def _mask_key(self, key: str) -> str:
        """Mask a key for display (show first 4 and last 4 chars)."""
        if len(key) <= 12:
            return "*" * len(key)
        return f"{key[:4]}...{key[-4:]}"

    def require_key(self, service: str) -> str:
        """Get a credential or raise ConfigurationError."""
        key = self.get_key(service)
        if not key:
            raise ConfigurationError(
                f"Credential '{service}' not found. "
                f"Set {env_var_for(service)} environment variable "
                f"or run: mdtrans keys set {service}"
            )
        return key


def get_key(service: str) -> Optional[str]:
    """Convenience function to get a credential."""
    return KeyManager().get_key(service)
