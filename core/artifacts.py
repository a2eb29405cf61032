"""
Run-scoped tracking of temporary artifacts

Every file or transient upload a pipeline run creates is registered here as
it is created. Cleanup runs on every exit path of the run and deletes all of
them; a failure on one artifact is logged and cleanup continues with the rest.
"""

import asyncio
import gc
import logging
import os
import shutil
import tempfile
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional

from core.config import Config
from core.models import TemporaryArtifact

logger = logging.getLogger(__name__)


class ArtifactTracker:
    """
    Collects TemporaryArtifacts for one run and deletes them on exit

    Usage:
        async with ArtifactTracker(run_id, storage) as tracker:
            video = tracker.local(path, producer="download")
            ...
    """

    def __init__(self, run_id: str, storage=None, base_dir: Optional[Path] = None):
        """
        Args:
            run_id: Identifier used to name the run's temp directory
            storage: StorageManager used to delete remote artifacts
            base_dir: Parent of the run directory (defaults to Config.get_temp_dir())
        """
        self.run_id = run_id
        self.storage = storage
        self.base_dir = Path(base_dir) if base_dir else Config.get_temp_dir()
        self.run_dir: Optional[Path] = None
        self._artifacts: List[TemporaryArtifact] = []
        self.failed_deletions: List[TemporaryArtifact] = []

    async def __aenter__(self) -> 'ArtifactTracker':
        self.create_run_dir()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.cleanup()
        return False

    def create_run_dir(self) -> Path:
        """Create the uniquely named directory holding this run's local files"""
        if self.run_dir is None:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            self.run_dir = Path(tempfile.mkdtemp(prefix=f"reel_{self.run_id}_", dir=self.base_dir))
            logger.info(f"📁 Created run directory: {self.run_dir}")
        return self.run_dir

    def path_for(self, filename: str) -> Path:
        return self.create_run_dir() / filename

    def register(self, artifact: TemporaryArtifact) -> TemporaryArtifact:
        self._artifacts.append(artifact)
        return artifact

    def local(self, path, producer: str) -> TemporaryArtifact:
        size = None
        if os.path.exists(path):
            size = os.path.getsize(path)
        return self.register(TemporaryArtifact(identifier=str(path), producer=producer, size_bytes=size))

    def remote(self, storage_path: str, bucket: str, producer: str) -> TemporaryArtifact:
        return self.register(TemporaryArtifact(identifier=storage_path, producer=producer,
                                               remote=True, bucket=bucket))

    @property
    def artifacts(self) -> List[TemporaryArtifact]:
        return list(self._artifacts)

    def remaining(self) -> List[TemporaryArtifact]:
        """Artifacts still registered (empty after a completed cleanup)"""
        return list(self._artifacts)

    async def cleanup(self) -> Dict[str, int]:
        """
        Delete every registered artifact and the run directory

        Never raises. Returns counts of deleted and failed items.
        """
        artifacts, self._artifacts = self._artifacts, []
        deleted = 0
        failed = 0

        remote_by_bucket: Dict[str, List[TemporaryArtifact]] = defaultdict(list)
        for artifact in artifacts:
            if artifact.remote:
                remote_by_bucket[artifact.bucket].append(artifact)
                continue
            try:
                if os.path.isdir(artifact.identifier):
                    shutil.rmtree(artifact.identifier)
                elif os.path.exists(artifact.identifier):
                    os.unlink(artifact.identifier)
                deleted += 1
            except OSError as e:
                failed += 1
                self.failed_deletions.append(artifact)
                logger.warning(f"⚠️ [CLEANUP] Could not delete {artifact.identifier}: {e}")

        for bucket, items in remote_by_bucket.items():
            if self.storage is None:
                failed += len(items)
                self.failed_deletions.extend(items)
                logger.warning(f"⚠️ [CLEANUP] No storage client to delete {len(items)} objects from {bucket}")
                continue
            try:
                await asyncio.to_thread(self.storage.delete_files, [a.identifier for a in items], bucket)
                deleted += len(items)
            except Exception as e:
                failed += len(items)
                self.failed_deletions.extend(items)
                logger.warning(f"⚠️ [CLEANUP] Could not delete remote objects from {bucket}: {e}")

        if self.run_dir is not None and self.run_dir.exists():
            try:
                shutil.rmtree(self.run_dir)
                logger.info(f"🧹 Cleaned up run directory: {self.run_dir}")
            except OSError as e:
                failed += 1
                logger.warning(f"⚠️ [CLEANUP] Could not remove run directory {self.run_dir}: {e}")

        # Media buffers from the run are unreachable at this point
        gc.collect()

        logger.info(f"🧹 [CLEANUP] Run {self.run_id}: deleted {deleted}, failed {failed}")
        return {'deleted': deleted, 'failed': failed}
