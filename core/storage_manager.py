"""
Supabase Storage Manager

Hosts extracted frames long enough for the vision service to fetch them,
and stores generated thumbnails.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from supabase import create_client, Client

from core.config import Config
from core.errors import StorageError

logger = logging.getLogger(__name__)


class StorageManager:
    """Manage Supabase storage uploads and deletions"""

    def __init__(self, client: Optional[Client] = None, frame_bucket: Optional[str] = None,
                 thumbnail_bucket: Optional[str] = None):
        """Initialize storage manager with a Supabase client

        Args:
            client: Pre-built Supabase client (built from environment when omitted)
            frame_bucket: Bucket for transient frame uploads
            thumbnail_bucket: Bucket for persisted thumbnails
        """
        settings = Config.get_storage_settings()

        if client is None:
            if not settings['url'] or not settings['key']:
                raise ValueError("Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY environment variables")
            client = create_client(settings['url'], settings['key'])

        self.supabase: Client = client
        self.frame_bucket = frame_bucket or settings['frame_bucket']
        self.thumbnail_bucket = thumbnail_bucket or settings['thumbnail_bucket']

    def upload_file(self, file_path: str, storage_path: str, bucket: str,
                    content_type: str = "image/jpeg") -> Tuple[str, str]:
        """
        Upload a local file

        Args:
            file_path: Local file to upload
            storage_path: Destination path inside the bucket
            bucket: Bucket name
            content_type: MIME type stored with the object

        Returns:
            Tuple of (storage_path, public_url)

        Raises:
            StorageError: If the upload fails
        """
        try:
            with open(file_path, 'rb') as f:
                file_content = f.read()

            logger.info(f"📤 Uploading to storage: {bucket}/{storage_path}")

            self.supabase.storage.from_(bucket).upload(
                path=storage_path,
                file=file_content,
                file_options={"content-type": content_type, "upsert": "true"}
            )
            public_url = self.supabase.storage.from_(bucket).get_public_url(storage_path)

        except Exception as e:
            logger.error(f"❌ Failed to upload {file_path}: {e}")
            raise StorageError(f"Upload failed for {storage_path}: {e}",
                               details={'bucket': bucket, 'path': storage_path}) from e

        logger.info(f"✅ Uploaded: {public_url}")
        return storage_path, public_url

    @staticmethod
    def frame_storage_path(run_id: str, timestamp_seconds: float) -> str:
        return f"run_{run_id}/frame_{int(timestamp_seconds * 1000)}.jpg"

    def upload_frame(self, file_path: str, run_id: str, timestamp_seconds: float) -> Tuple[str, str]:
        """Upload a frame to the transient frame bucket as run_<id>/frame_<ms>.jpg"""
        storage_path = self.frame_storage_path(run_id, timestamp_seconds)
        return self.upload_file(file_path, storage_path, self.frame_bucket)

    def upload_thumbnail(self, file_path: str, run_id: str) -> Tuple[str, str]:
        storage_path = f"thumbnails/{run_id}.jpg"
        return self.upload_file(file_path, storage_path, self.thumbnail_bucket)

    def delete_files(self, storage_paths: Iterable[str], bucket: Optional[str] = None) -> List[str]:
        """
        Delete objects from a bucket

        Returns:
            The paths that were submitted for deletion

        Raises:
            StorageError: If the removal request fails
        """
        paths = [path for path in storage_paths if path]
        if not paths:
            return []

        bucket = bucket or self.frame_bucket
        try:
            self.supabase.storage.from_(bucket).remove(paths)
        except Exception as e:
            raise StorageError(f"Failed to delete {len(paths)} objects from {bucket}: {e}",
                               details={'bucket': bucket, 'paths': paths}) from e

        logger.info(f"🗑️ Deleted {len(paths)} objects from {bucket}")
        return paths
