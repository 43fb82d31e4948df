"""
Configuration module — all settings from env vars with sensible defaults.
Follows 12-factor app methodology.
"""
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    # Kubernetes
    KUBECONFIG: str = os.environ.get("KUBECONFIG", "")
    IN_CLUSTER: bool = os.environ.get("IN_CLUSTER", "false").lower() == "true"

    # CRD
    CRD_GROUP: str = os.environ.get("CRD_GROUP", "engula.io")
    CRD_VERSION: str = os.environ.get("CRD_VERSION", "v1alpha1")

    # Server-side apply identity and reporter shown on the status surface
    FIELD_MANAGER: str = os.environ.get("FIELD_MANAGER", "cntrlr")
    REPORTER: str = os.environ.get("REPORTER", "engula-operator")

    # Workloads
    JOURNAL_IMAGE: str = os.environ.get("JOURNAL_IMAGE", "engula/journal:latest")
    STORAGE_IMAGE: str = os.environ.get("STORAGE_IMAGE", "engula/storage:latest")
    IMAGE_PULL_POLICY: str = os.environ.get("IMAGE_PULL_POLICY", "IfNotPresent")

    # Requeue intervals (seconds)
    REQUEUE_AFTER_SECONDS: float = float(os.environ.get("REQUEUE_AFTER_SECONDS", "1800"))
    AMBIGUOUS_REQUEUE_SECONDS: float = float(os.environ.get("AMBIGUOUS_REQUEUE_SECONDS", "5"))
    ERROR_REQUEUE_SECONDS: float = float(os.environ.get("ERROR_REQUEUE_SECONDS", "360"))

    # Operator
    # Reconciliation passes allowed to run at once, across all resources
    MAX_WORKERS: int = int(os.environ.get("MAX_WORKERS", "4"))
    REDIS_URL: str = os.environ.get("REDIS_URL", "")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # Status API
    API_HOST: str = os.environ.get("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.environ.get("API_PORT", "8080"))
    RATE_LIMIT: str = os.environ.get("RATE_LIMIT", "60/minute")

    @property
    def api_version(self) -> str:
        return f"{self.CRD_GROUP}/{self.CRD_VERSION}"


settings = Settings()
