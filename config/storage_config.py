"""
Object Store Configuration.

Job metadata records, batch progress markers, submitted requests and
output artifacts live in Azure Blob Storage (or the Azurite emulator locally).

Authentication:
    - connection_string set: used directly (Azurite, local dev)
    - otherwise: account_name + DefaultAzureCredential (managed identity)

Exports:
    StorageConfig: Pydantic storage configuration model
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from .defaults import StorageDefaults


class StorageConfig(BaseModel):
    """
    Blob storage configuration.

    Containers:
    - jobs_container: metadata/<job_id>.json records and batch markers
    - outputs_container: <output_id>.json result artifacts
    - inputs_container: <job_id>.json submitted requests
    """

    connection_string: Optional[str] = Field(
        default=None,
        repr=False,
        description="Storage connection string (takes precedence over account_name)"
    )

    account_name: str = Field(
        default=StorageDefaults.DEFAULT_ACCOUNT_NAME,
        description="Storage account name for DefaultAzureCredential auth"
    )

    jobs_container: str = Field(
        default=StorageDefaults.JOBS_CONTAINER,
        min_length=3,
        max_length=63,
    )

    outputs_container: str = Field(
        default=StorageDefaults.OUTPUTS_CONTAINER,
        min_length=3,
        max_length=63,
    )

    inputs_container: str = Field(
        default=StorageDefaults.INPUTS_CONTAINER,
        min_length=3,
        max_length=63,
    )

    @model_validator(mode="after")
    def check_containers_distinct(self) -> "StorageConfig":
        containers = [self.jobs_container, self.outputs_container, self.inputs_container]
        if len(set(containers)) != len(containers):
            raise ValueError("jobs_container, outputs_container and inputs_container must differ")
        return self

    @property
    def account_url(self) -> str:
        return f"https://{self.account_name}.blob.core.windows.net"

    @property
    def uses_connection_string(self) -> bool:
        return bool(self.connection_string)

    def validate_auth(self) -> None:
        """Fail fast when neither auth mode is configured."""
        if not self.connection_string and self.account_name == StorageDefaults.DEFAULT_ACCOUNT_NAME:
            raise ValueError(
                "Set STORAGE_CONNECTION_STRING or STORAGE_ACCOUNT_NAME "
                "(account name is still the placeholder default)"
            )

    @classmethod
    def from_environment(cls):
        """Load storage configuration from environment variables."""
        return cls(
            connection_string=os.environ.get("STORAGE_CONNECTION_STRING"),
            account_name=os.environ.get("STORAGE_ACCOUNT_NAME", StorageDefaults.DEFAULT_ACCOUNT_NAME),
            jobs_container=os.environ.get("JOBS_CONTAINER", StorageDefaults.JOBS_CONTAINER),
            outputs_container=os.environ.get("OUTPUTS_CONTAINER", StorageDefaults.OUTPUTS_CONTAINER),
            inputs_container=os.environ.get("INPUTS_CONTAINER", StorageDefaults.INPUTS_CONTAINER),
        )

    def debug_dict(self) -> dict:
        """Return debug-friendly configuration showing resolved values."""
        return {
            "auth": "connection_string" if self.uses_connection_string else "default_credential",
            "connection_string": "***MASKED***" if self.connection_string else None,
            "account_name": self.account_name,
            "jobs_container": self.jobs_container,
            "outputs_container": self.outputs_container,
            "inputs_container": self.inputs_container,
        }
