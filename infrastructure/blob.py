# ============================================================================
# BLOB REPOSITORY
# ============================================================================
# STATUS: Infrastructure - Azure Blob Storage repository
# PURPOSE: Raw blob access for job records, batch markers and outputs
# EXPORTS: IBlobRepository, BlobRepository
# DEPENDENCIES: azure-storage-blob, azure-identity, azure-core
# ============================================================================

"""
Blob Storage Repository

Thin synchronous wrapper over azure-storage-blob. The job metadata store
builds on this; nothing above the store talks to blob storage directly.

Authentication:
1. Connection string (Azurite / local development)
2. DefaultAzureCredential (environment, managed identity, Azure CLI)

Instances are created by the process entry point and passed down
explicitly; there is no module-level instance.

Usage:
    repo = BlobRepository.from_config(config.storage)
    repo.write_blob("quant-jobs", "metadata/abc.json", b"{}")
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union, BinaryIO

from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.identity import DefaultAzureCredential
from azure.storage.blob import BlobServiceClient, ContainerClient, ContentSettings

from config.storage_config import StorageConfig
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "BlobRepository")


# ============================================================================
# INTERFACE
# ============================================================================

class IBlobRepository(ABC):
    """
    Blob storage contract.

    Errors from the underlying SDK propagate; read_blob raises
    ResourceNotFoundError for missing blobs.
    """

    @abstractmethod
    def read_blob(self, container: str, blob_path: str) -> bytes:
        pass

    @abstractmethod
    def write_blob(self, container: str, blob_path: str, data: Union[bytes, BinaryIO],
                   overwrite: bool = True, content_type: str = "application/octet-stream",
                   metadata: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        pass

    @abstractmethod
    def list_blobs(self, container: str, prefix: str = "", limit: Optional[int] = None) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def delete_blob(self, container: str, blob_path: str) -> bool:
        pass


# ============================================================================
# AZURE IMPLEMENTATION
# ============================================================================

class BlobRepository(IBlobRepository):
    """
    Azure Blob Storage repository.

    Caches one ContainerClient per container name.
    """

    def __init__(self, blob_service: BlobServiceClient):
        self.blob_service = blob_service
        self.storage_account = blob_service.account_name
        self._container_clients: Dict[str, ContainerClient] = {}

    @classmethod
    def from_config(cls, config: StorageConfig) -> "BlobRepository":
        """
        Build from storage configuration.

        Connection string wins when set; otherwise DefaultAzureCredential
        against the configured account.
        """
        if config.connection_string:
            logger.info("Initializing BlobRepository with connection string")
            blob_service = BlobServiceClient.from_connection_string(config.connection_string)
        else:
            logger.info(
                f"Initializing BlobRepository with DefaultAzureCredential for account: {config.account_name}"
            )
            blob_service = BlobServiceClient(
                account_url=config.account_url,
                credential=DefaultAzureCredential()
            )
        return cls(blob_service)

    def _get_container_client(self, container: str) -> ContainerClient:
        if container not in self._container_clients:
            self._container_clients[container] = self.blob_service.get_container_client(container)
            logger.debug(f"Created new container client for: {container}")
        return self._container_clients[container]

    def ensure_container(self, container: str) -> bool:
        """
        Create the container if it does not exist.

        Returns:
            True if created, False if it already existed
        """
        try:
            self._get_container_client(container).create_container()
            logger.info(f"Created container: {container}")
            return True
        except ResourceExistsError:
            return False

    # ========================================================================
    # CORE BLOB OPERATIONS
    # ========================================================================

    def read_blob(self, container: str, blob_path: str) -> bytes:
        """
        Read entire blob to memory.

        Raises:
            ResourceNotFoundError: If blob doesn't exist
        """
        try:
            blob_client = self._get_container_client(container).get_blob_client(blob_path)
            data = blob_client.download_blob().readall()
            logger.debug(f"Read {len(data)} bytes from {container}/{blob_path}")
            return data
        except ResourceNotFoundError:
            logger.debug(f"Blob not found: {container}/{blob_path}")
            raise
        except Exception as e:
            logger.error(f"Failed to read blob {container}/{blob_path}: {e}")
            raise

    def write_blob(self, container: str, blob_path: str, data: Union[bytes, BinaryIO],
                   overwrite: bool = True, content_type: str = "application/octet-stream",
                   metadata: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """
        Write blob from bytes or stream.

        Raises:
            ResourceExistsError: If overwrite is False and the blob exists
        """
        try:
            blob_client = self._get_container_client(container).get_blob_client(blob_path)
            result = blob_client.upload_blob(
                data,
                overwrite=overwrite,
                content_settings=ContentSettings(content_type=content_type),
                metadata=metadata or {}
            )
            logger.debug(f"Wrote blob: {container}/{blob_path} (overwrite={overwrite})")
            return {
                'container': container,
                'blob_path': blob_path,
                'etag': result.get('etag'),
                'last_modified': result['last_modified'].isoformat() if result.get('last_modified') else None,
            }
        except ResourceExistsError:
            raise
        except Exception as e:
            logger.error(f"Failed to write blob {container}/{blob_path}: {e}")
            raise

    def list_blobs(self, container: str, prefix: str = "", limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        List blobs under a prefix, with user metadata.

        Returns:
            List of dicts with name, size, last_modified, metadata
        """
        try:
            container_client = self._get_container_client(container)
            blobs = []
            for blob in container_client.list_blobs(name_starts_with=prefix or None, include=["metadata"]):
                blobs.append({
                    'name': blob.name,
                    'size': blob.size,
                    'last_modified': blob.last_modified.isoformat() if blob.last_modified else None,
                    'metadata': blob.metadata or {},
                })
                if limit and len(blobs) >= limit:
                    break
            logger.debug(f"Found {len(blobs)} blobs in {container} with prefix '{prefix}'")
            return blobs
        except Exception as e:
            logger.error(f"Failed to list blobs in {container}: {e}")
            raise

    def delete_blob(self, container: str, blob_path: str) -> bool:
        """
        Delete a blob.

        Returns:
            True if deleted, False if not found
        """
        try:
            blob_client = self._get_container_client(container).get_blob_client(blob_path)
            blob_client.delete_blob()
            logger.info(f"Deleted blob: {container}/{blob_path}")
            return True
        except ResourceNotFoundError:
            logger.warning(f"Blob not found for deletion: {container}/{blob_path}")
            return False

    def close(self) -> None:
        self.blob_service.close()
