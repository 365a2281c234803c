import logging
import os

from pydantic import BaseModel

LOG_FORMAT = '%(asctime)s:%(name)s:%(levelname)s:%(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def configure_logging(level: int = logging.INFO, log_file: str | None = None) -> None:
    """Send corvid and httpx logs to stderr, and optionally to a file.

    The library never calls this itself; applications opt in.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class Configuration(BaseModel):
    """Connection settings for an OpenAI-compatible API.

    Args:
        token: API token sent as a bearer credential.
        organization_identifier: Optional organization sent with every request.
        host: API host. Set this when going through a proxy or a
            self-hosted server.
        port: TCP port of the API host.
        scheme: ``https`` or ``http``.
        base_path: Path prefix placed before the API version, for proxies
            that mount the API below the root.
        api_version: Version segment of every path.
        timeout_interval: Per-request timeout in seconds.
    """

    token: str
    organization_identifier: str | None = None
    host: str = "api.openai.com"
    port: int = 443
    scheme: str = "https"
    base_path: str = ""
    api_version: str = "v1"
    timeout_interval: float = 900.0

    @classmethod
    def from_env(cls, **overrides) -> "Configuration":
        """Read the token and organization from the environment."""
        token = overrides.pop("token", None) or os.getenv("OPENAI_API_KEY")
        if not token:
            raise ValueError(
                "No API token given and OPENAI_API_KEY is not set"
            )
        organization = overrides.pop(
            "organization_identifier", None
        ) or os.getenv("OPENAI_ORGANIZATION")
        return cls(
            token=token,
            organization_identifier=organization,
            **overrides,
        )
