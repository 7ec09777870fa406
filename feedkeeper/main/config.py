"""Configuration for the GitHub-backed feed store.

The store needs five coordinates: an access token, the repository owner and
name, the path of the JSON file inside the repository and the branch to read
and commit on.  ``StoreConfig.from_env`` reads them from the environment (a
``.env`` file is loaded first) and validation happens once, at construction.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

DEFAULT_API_URL = "https://api.github.com"

# Environment variable -> StoreConfig attribute.
_REQUIRED_ENV = {
    "GITHUB_TOKEN": "token",
    "GITHUB_REPO_OWNER": "owner",
    "GITHUB_REPO_NAME": "repo",
    "GITHUB_FILE_PATH": "file_path",
    "GITHUB_BRANCH": "branch",
}


class ConfigurationError(ValueError):
    """Raised when required store coordinates are missing."""


@dataclass(frozen=True)
class StoreConfig:
    token: str
    owner: str
    repo: str
    file_path: str
    branch: str
    api_url: str = DEFAULT_API_URL
    timeout: float = field(default=10.0)

    def __post_init__(self) -> None:
        missing = [
            env_name
            for env_name, attr in _REQUIRED_ENV.items()
            if not (getattr(self, attr) or "").strip()
        ]
        if missing:
            raise ConfigurationError(
                "Missing GitHub configuration. Please set "
                + ", ".join(missing)
                + "."
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StoreConfig":
        """Build a config from *environ* (defaults to ``os.environ`` after ``load_dotenv``)."""
        if environ is None:
            load_dotenv()
            environ = os.environ
        values = {attr: environ.get(env_name, "") for env_name, attr in _REQUIRED_ENV.items()}
        return cls(
            api_url=(environ.get("GITHUB_API_URL") or DEFAULT_API_URL).rstrip("/"),
            **values,
        )

    @property
    def contents_url(self) -> str:
        path = self.file_path.strip("/")
        return f"{self.api_url}/repos/{self.owner}/{self.repo}/contents/{path}"
