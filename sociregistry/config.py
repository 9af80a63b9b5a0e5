import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict

# Sent on every request to ECR registries
USER_AGENT = "SOCI Index Builder (sociregistry)"


class Settings(BaseModel):
    """Runtime settings of the registry client."""

    model_config = ConfigDict(frozen=True)

    # Custom, i.e. non default, ECR API endpoint used to request tokens
    ecr_endpoint: str | None = None
    user_agent: str = USER_AGENT
    timeout: float = 30.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> "Settings":
        return cls(ecr_endpoint=environ.get("ECR_ENDPOINT") or None)
