"""Runtime configuration for storage and synthesis adapters.

Architectural role:
    Centralizes fal.ai endpoint selection, credential lookup, and local asset
    paths for `evacgen.assets` and `evacgen.synthesis`.

Lifecycle:
    `load_config()` is called once at process start (HTTP app factory or CLI)
    and the resulting `ServiceConfig` is injected into the uploader and the
    synthesis client. Nothing is read from the environment at import time.

Failure behavior:
    Missing key material is represented as `None`; adapters raise their own
    domain errors when a remote call needs credentials.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


DEFAULT_MODEL_ID = "fal-ai/alpha-image-232/edit-image"
DEFAULT_QUEUE_URL = "https://queue.fal.run"
DEFAULT_STORAGE_URL = "https://rest.alpha.fal.ai"
DEFAULT_KEY_FILE = "config/fal.key"


@dataclass(frozen=True)
class ServiceConfig:
    """Resolved settings shared by storage and synthesis clients.

    Attributes:
        fal_key: fal.ai API key or `None` when not configured.
        model_id: Queue application id used for scenario synthesis.
        queue_url: Base URL of the fal queue API.
        storage_url: Base URL of the fal storage REST API.
        images_root: Directory holding the `facility/` and `crowd/` collections.
        timeout_seconds: Per-request HTTP timeout.
        poll_interval_seconds: Delay between queue status polls.
        debug: Enables verbose request logging.
    """

    fal_key: str | None = None
    model_id: str = DEFAULT_MODEL_ID
    queue_url: str = DEFAULT_QUEUE_URL
    storage_url: str = DEFAULT_STORAGE_URL
    images_root: str = "images"
    timeout_seconds: float = 120.0
    poll_interval_seconds: float = 1.0
    debug: bool = False

    def auth_headers(self) -> dict[str, str]:
        """Return the fal authorization header, or an empty dict without a key."""
        if not self.fal_key:
            return {}
        return {"Authorization": f"Key {self.fal_key}"}


def load_key(path):
    """Load API key from environment override or key file.

    Resolution order:
        1. `FAL_KEY` environment variable.
        2. Environment variable inferred from file stem (for example
           `config/fal.key` -> `FAL_API_KEY`).
        3. Raw file contents at `path`.

    Edge cases:
        - `None` path with no environment value returns `None`.
        - Missing file returns `None`.
    """
    env_value = os.getenv("FAL_KEY")
    if env_value:
        return env_value.strip()
    if not path:
        return None
    key_name = os.path.splitext(os.path.basename(path))[0].upper() + "_API_KEY"
    env_value = os.getenv(key_name)
    if env_value:
        return env_value.strip()
    if not os.path.exists(path):
        return None
    with open(path, "r") as f:
        return f.read().strip() or None


def load_config() -> ServiceConfig:
    """Build a `ServiceConfig` from `.env` and the process environment."""
    load_dotenv()

    return ServiceConfig(
        fal_key=load_key(os.getenv("FAL_KEY_FILE", DEFAULT_KEY_FILE)),
        model_id=os.getenv("FAL_MODEL_ID", DEFAULT_MODEL_ID).strip(),
        queue_url=os.getenv("FAL_QUEUE_URL", DEFAULT_QUEUE_URL).rstrip("/"),
        storage_url=os.getenv("FAL_STORAGE_URL", DEFAULT_STORAGE_URL).rstrip("/"),
        images_root=os.getenv("IMAGES_ROOT", os.path.join(os.getcwd(), "images")),
        timeout_seconds=float(os.getenv("FAL_TIMEOUT_SECONDS", "120")),
        poll_interval_seconds=float(os.getenv("FAL_POLL_SECONDS", "1.0")),
        debug=os.getenv("DEBUG") == "true",
    )
