"""
Proxy config service - loads the line-oriented proxy config file.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Tuple


class ConfigError(ValueError):
    """Invalid or incomplete proxy configuration. Fatal at startup."""


@dataclass(frozen=True)
class ProxyConfig:
    """Proxy configuration, immutable once loaded."""
    upstream_base_url: str
    auth_token: str
    listen_address: str
    tls_key_path: Optional[str] = None
    tls_cert_path: Optional[str] = None


@dataclass(frozen=True)
class TlsFiles:
    """Key and certificate files used to serve HTTPS."""
    key_path: str
    cert_path: str


# Config key -> ProxyConfig field
_KEYS = {
    "ollama_server": "upstream_base_url",
    "auth_token": "auth_token",
    "listener_addr": "listen_address",
    "key_file": "tls_key_path",
    "cert_file": "tls_cert_path",
}


def parse_proxy_config(text: str) -> ProxyConfig:
    """
    Parse `key: value` lines into a ProxyConfig.

    Keys are case-insensitive and split from the value at the first colon, so
    values such as URLs may contain colons. Lines without a colon and unknown
    keys are ignored.

    Raises:
        ConfigError: If a required field is missing or only one of the TLS
                     files is configured
    """
    values = {}
    for line in text.splitlines():
        if ":" not in line:
            continue

        key, value = line.strip().split(":", 1)
        field_name = _KEYS.get(key.strip().lower())
        if field_name is None:
            continue
        values[field_name] = value.strip()

    if not values.get("listen_address"):
        raise ConfigError("Listener address not set in config")
    if not values.get("upstream_base_url"):
        raise ConfigError("Ollama server URL not set in config")
    if not values.get("auth_token"):
        raise ConfigError("Auth token not set in config")

    key_path = values.get("tls_key_path") or None
    cert_path = values.get("tls_cert_path") or None
    if bool(key_path) != bool(cert_path):
        raise ConfigError("Both key_file and cert_file must be set to serve TLS")

    return ProxyConfig(
        upstream_base_url=values["upstream_base_url"],
        auth_token=values["auth_token"],
        listen_address=values["listen_address"],
        tls_key_path=key_path,
        tls_cert_path=cert_path,
    )


def load_proxy_config(path: str) -> ProxyConfig:
    """
    Load proxy configuration from a `key: value` text file.

    Raises:
        ConfigError: If the file cannot be read or the config is invalid
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}")

    return parse_proxy_config(text)


def parse_listen_address(address: str) -> Tuple[str, int]:
    """
    Split a `host:port` listen address.

    An empty host (":8080") binds every interface. IPv6 hosts may be
    bracketed ("[::1]:8080").

    Raises:
        ConfigError: If the port is missing or not a valid port number
    """
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ConfigError(f"Listener address must be host:port, got {address!r}")

    try:
        port_number = int(port)
    except ValueError:
        raise ConfigError(f"Invalid port in listener address {address!r}")
    if not 0 <= port_number <= 65535:
        raise ConfigError(f"Invalid port in listener address {address!r}")

    host = host.strip("[]") or "0.0.0.0"
    return host, port_number


def resolve_tls_files(config: ProxyConfig) -> Optional[TlsFiles]:
    """
    Decide between HTTPS and plain HTTP.

    Returns the TLS files when both are configured and present on disk, None
    when neither is configured.

    Raises:
        ConfigError: If only one file is configured or a configured file
                     does not exist
    """
    if not config.tls_key_path and not config.tls_cert_path:
        return None

    if not config.tls_key_path or not config.tls_cert_path:
        raise ConfigError("Both key_file and cert_file must be set to serve TLS")

    for path in (config.tls_key_path, config.tls_cert_path):
        if not os.path.isfile(path):
            raise ConfigError(f"Certificate or key file not found: {path}")

    return TlsFiles(key_path=config.tls_key_path, cert_path=config.tls_cert_path)
