"""Process settings read from the environment."""
import os

CONFIG_FILE = os.getenv("CONFIG", "config.yml")
LISTEN_ADDRESS = os.getenv("LISTEN_ADDRESS", "0.0.0.0:9237")
TELEMETRY_PATH = os.getenv("TELEMETRY_PATH", "/metrics")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def listen_host_port(address: str = LISTEN_ADDRESS) -> tuple[str, int]:
    """Split a host:port listen address; an empty host listens on all interfaces."""
    host, _, port = address.rpartition(":")
    return host or "0.0.0.0", int(port)
