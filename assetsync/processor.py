"""
AssetProcessor - Turns source files into uploaded variants and a manifest.
"""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional

from .asset_config import ProcessingConfig, ProcessingRule
from .asset_record import Placeholder
from .exceptions import EncodingError, StoreTransientError, UploadError
from .hashing import UNCHANGED, detect_change, hash_bytes
from .manifest import Manifest
from .scanner import Scanner, SourceAsset
from .stored_object import IMMUTABLE_CACHE_CONTROL
from .sync_progress import SyncProgress
from .sync_stats import SyncStats
from .variant_generator import VariantGenerator, get_content_type, output_key

PROCESSED = 'processed'
SKIPPED = 'skipped'
DRY_RUN = 'dry-run'


@dataclass
class FileResult:
    """Outcome of processing one source file."""
    asset: SourceAsset
    status: str
    reason: str = ''
    hash: str = ''
    size: int = 0
    outputs: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)
    placeholder: Optional[Placeholder] = None
    bytes_uploaded: int = 0
    planned: int = 0


class AssetProcessor:
    """
    Runs the batch pipeline: rule -> hash -> variants -> upload -> manifest.

    Files are processed concurrently; the manifest is only updated from the
    calling thread, after a file's variants are done. A failed encode or
    upload is counted and logged but never aborts the run.
    """

    def __init__(
        self,
        store,
        config: Optional[ProcessingConfig] = None,
        variant_generator: Optional[VariantGenerator] = None,
        base_dir: Optional[str] = None,
        dry_run: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize processor.

        Args:
            store: Object store (S3Client or LocalClient)
            config: Processing configuration
            variant_generator: Variant generator (built from config if omitted)
            base_dir: Directory relative source and manifest paths resolve against
            dry_run: If True, report what would be done without encoding or uploading
            logger: Optional logger instance
        """
        self.store = store
        self.config = config or ProcessingConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.generator = variant_generator or VariantGenerator(
            quality_for=self.config.quality_for, logger=self.logger
        )
        self.base_dir = base_dir or os.getcwd()
        self.dry_run = dry_run
        self.scanner = Scanner(self.config.sources, base_dir=self.base_dir, logger=self.logger)
        self.stats = SyncStats()
        self._manifest_lock = threading.Lock()
        self._stop_requested = False

    @property
    def manifest_path(self) -> str:
        return os.path.join(self.base_dir, self.config.manifest_path)

    def stop(self) -> None:
        """Request the processor to stop submitting new files."""
        self._stop_requested = True

    def load_manifest(self) -> Manifest:
        manifest = Manifest.load(self.manifest_path)
        manifest.storage.limit = self.config.storage_limit
        return manifest

    def process_all(
        self,
        manifest: Optional[Manifest] = None,
        progress: Optional[SyncProgress] = None,
        prune: bool = False,
        limit: Optional[int] = None,
        resume_after: Optional[str] = None
    ) -> SyncStats:
        """
        Process every source file and persist the manifest.

        Args:
            manifest: Manifest to update (loaded from manifest_path if omitted)
            progress: Optional progress tracker
            prune: Drop manifest entries whose source file is gone
            limit: Optional limit on number of files to look at (for testing)
            resume_after: Relative path of the last file handled by an interrupted run

        Returns:
            SyncStats with results
        """
        manifest = manifest if manifest is not None else self.load_manifest()
        progress = progress or SyncProgress(
            on_progress=self.config.on_progress,
            on_error=self.config.on_error,
            logger=self.logger,
        )
        self.stats = SyncStats()
        seen = set()

        mode_str = " [DRY RUN]" if self.dry_run else ""
        self.logger.info(f"Starting asset sync{mode_str}")

        with ThreadPoolExecutor(max_workers=max(1, self.config.workers)) as executor:
            futures = {}
            for asset in self.scanner.scan(resume_after=resume_after):
                if self._stop_requested:
                    self.logger.info("Stop requested, not submitting further files")
                    break
                if limit and len(futures) >= limit:
                    self.logger.info(f"Stopping at limit ({limit})")
                    break
                seen.add(asset.relative_path)
                futures[executor.submit(self.process_file, asset, manifest)] = asset

            self.stats.total_files = len(futures)

            for future in as_completed(futures):
                asset = futures[future]
                try:
                    result = future.result()
                except Exception as e:
                    # Unexpected failure outside the per-variant handling
                    self.logger.exception(f"Error processing {asset.relative_path}: {e}")
                    self.stats.record_error(f"{asset.relative_path}: {e}")
                    progress.on_file_error(asset.relative_path, e)
                    continue
                self._apply_result(result, manifest, progress)
                progress.on_progress_update(self.stats)

        if prune and not self._stop_requested and not limit and not resume_after:
            removed = manifest.prune_missing(lambda path: path in seen)
            for path in removed:
                self.logger.info(f"Pruned stale manifest entry: {path}")

        if not self.dry_run:
            manifest.refresh_storage(self.store, self.config.storage_limit)
            manifest.save(self.manifest_path)

        self.logger.info(f"Sync complete: {self.stats.summary()}")
        return self.stats

    def _apply_result(self, result: FileResult, manifest: Manifest, progress: SyncProgress) -> None:
        path = result.asset.relative_path

        for error in result.errors:
            self.stats.record_error(f"{path}: {error}")
            progress.on_file_error(path, error)

        if result.status == SKIPPED:
            self.stats.skipped += 1
            progress.on_file_skipped(path, result.reason)
            return

        self.stats.processed += 1
        if result.status == DRY_RUN:
            progress.on_dry_run(path, result.planned)
            return

        self.stats.uploads += len(result.outputs)
        self.stats.bytes_uploaded += result.bytes_uploaded
        with self._manifest_lock:
            manifest.record_entry(
                path,
                hash=result.hash,
                outputs=result.outputs,
                source_size=result.size,
                placeholder=result.placeholder,
                failed=result.failed,
            )
        progress.on_file_processed(path, len(result.outputs), failed=len(result.failed))
        self.logger.info(
            f"Processed: {path} ({len(result.outputs)}/{result.planned} outputs"
            f"{', with placeholder' if result.placeholder else ''})"
        )

    def process_file(self, asset: SourceAsset, manifest: Manifest) -> FileResult:
        """
        Process one source file. Does not modify the manifest.

        Returns:
            FileResult describing what was uploaded and what failed
        """
        rule = self.config.resolve_rule(asset.extension)
        if rule is None:
            return FileResult(asset, SKIPPED, reason='unsupported')
        if rule.skip:
            return FileResult(asset, SKIPPED, reason='skip rule')

        data = asset.read_bytes()
        fingerprint = hash_bytes(data)

        if self.config.skip_unchanged:
            with self._manifest_lock:
                state = detect_change(asset.relative_path, fingerprint, manifest)
            if state == UNCHANGED:
                return FileResult(asset, SKIPPED, reason='unchanged', hash=fingerprint)

        result = FileResult(asset, PROCESSED, hash=fingerprint, size=len(data), planned=rule.variant_count)

        if self.dry_run:
            result.status = DRY_RUN
            return result

        self.logger.debug(f"Processing: {asset.relative_path}")

        if self.config.enable_placeholders and rule.placeholder:
            try:
                result.placeholder = self.generator.generate_placeholder(data)
            except EncodingError as e:
                self.logger.warning(f"Placeholder failed for {asset.relative_path}: {e}")

        if rule.passthrough:
            self._publish(result, asset.relative_path, data, get_content_type(asset.relative_path))
        else:
            self._render_variants(result, rule, data)

        return result

    def _render_variants(self, result: FileResult, rule: ProcessingRule, data: bytes) -> None:
        path = result.asset.relative_path
        for fmt in rule.formats:
            for width in rule.sizes:
                key = output_key(path, width, fmt)
                try:
                    variant = self.generator.generate(data, width, fmt)
                except EncodingError as e:
                    self.logger.error(f"Encoding failed for {key}: {e}")
                    result.failed.append(key)
                    result.errors.append(e)
                    continue
                self._publish(result, key, variant.data, variant.content_type)

    def _publish(self, result: FileResult, key: str, data: bytes, content_type: str) -> None:
        try:
            self.upload(key, data, content_type)
        except UploadError as e:
            self.logger.error(f"Upload failed: {e}")
            result.failed.append(key)
            result.errors.append(e)
            return
        result.outputs.append(key)
        result.bytes_uploaded += len(data)

    def upload(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        """
        Write one object with immutable cache headers.

        Raises:
            UploadError: The store rejected the write after its retries
        """
        content_type = content_type or get_content_type(key)
        try:
            self.store.put(key, data, content_type=content_type, cache_control=IMMUTABLE_CACHE_CONTROL)
        except StoreTransientError as e:
            raise UploadError(key, str(e)) from e
        self.logger.debug(f"Uploaded: {key} ({len(data)} bytes)")
