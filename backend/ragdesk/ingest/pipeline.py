"""PDF ingest pipeline orchestration."""

from __future__ import annotations

import time
from contextlib import contextmanager
from pathlib import PurePath
from typing import Iterator

from ragdesk.core.config import Settings
from ragdesk.core.errors import (
    DependencyError,
    EmptyContentError,
    InvalidFileError,
    NotFoundError,
    RagdeskError,
)
from ragdesk.core.logging import bind, get_logger
from ragdesk.core.metrics import INDEX_SIZE, INGEST_DURATION, INGEST_OUTCOMES
from ragdesk.db.resources import DuplicateContentError, ResourceStore
from ragdesk.db.sqlite import SQLiteDatabase
from ragdesk.ingest.chunker import ChunkConfig, TextChunker
from ragdesk.ingest.dedupe import content_hash, find_existing
from ragdesk.ingest.embeddings import EmbeddingModel, build_embedding_model
from ragdesk.ingest.loaders import PDFLoader
from ragdesk.ingest.types import PDFUploadResult, ResourceStatusReport
from ragdesk.models.entities import Resource, ResourceStatus
from ragdesk.storage.objects import ObjectStore
from ragdesk.utils.ids import upload_key

logger = get_logger(__name__)

INITIAL_VERSION = 1


@contextmanager
def _stage(name: str) -> Iterator[None]:
    """Wrap unexpected failures with the name of the pipeline step."""
    try:
        yield
    except (RagdeskError, DuplicateContentError):
        raise
    except Exception as exc:
        raise DependencyError(f"PDF processing failed at {name}: {exc}", stage=name) from exc


class IngestPipeline:
    """Coordinate storage, extraction, chunking, embeddings, and persistence."""

    def __init__(
        self,
        database: SQLiteDatabase,
        settings: Settings,
        object_store: ObjectStore,
        embedding_model: EmbeddingModel | None = None,
        loader: PDFLoader | None = None,
        chunker: TextChunker | None = None,
    ) -> None:
        self.db = database
        self.settings = settings
        self.store = ResourceStore(database)
        self.objects = object_store
        self.embedding_model = embedding_model or build_embedding_model(settings)
        self.loader = loader or PDFLoader()
        self.chunker = chunker or TextChunker(
            ChunkConfig(
                max_tokens=settings.chunk_max_tokens,
                overlap_tokens=settings.chunk_overlap_tokens,
                min_chunk_tokens=settings.chunk_min_tokens,
            )
        )

    def process_pdf(
        self,
        data: bytes,
        file_name: str,
        title: str | None = None,
        lang: str | None = "en",
        created_by: str | None = None,
    ) -> PDFUploadResult:
        start_time = time.perf_counter()
        try:
            result = self._process(data, file_name, title, lang or "en", created_by)
        except Exception:
            INGEST_OUTCOMES.labels(outcome="failed").inc()
            raise
        INGEST_OUTCOMES.labels(outcome="duplicate" if result.duplicate else "processed").inc()
        INGEST_DURATION.observe(time.perf_counter() - start_time)
        return result

    def get_resource_status(self, resource_id: str) -> ResourceStatusReport:
        resource = self._require(resource_id)
        return ResourceStatusReport(
            resource=resource,
            chunk_count=self.store.count_chunks(resource_id),
            embedding_count=self.store.count_embeddings(resource_id),
        )

    def delete_resource(self, resource_id: str) -> dict[str, bool]:
        resource = self._require(resource_id)
        if resource.source:
            self._discard_object(resource.source)
        # Versions, chunks, and embeddings go with the row via ON DELETE CASCADE.
        with self.db.transaction():
            self.store.delete(resource_id)
        logger.info("Deleted resource %s", resource_id)
        self._update_index_metric()
        return {"success": True}

    def set_status(self, resource_id: str, status: ResourceStatus) -> Resource:
        with self.db.transaction():
            updated = self.store.set_status(resource_id, status)
        if updated is None:
            raise NotFoundError(f"Resource {resource_id} not found")
        return updated

    def load_source(self, resource_id: str) -> tuple[bytes, str]:
        """Return the stored PDF bytes and a download file name."""
        resource = self._require(resource_id)
        if not resource.source:
            raise NotFoundError(f"Resource {resource_id} has no stored file")
        key = self.objects.key_from_locator(resource.source)
        data = self.objects.get(key)
        name = PurePath(key).name.split("-", 1)[-1]
        return data, name

    # Internal helpers -------------------------------------------------

    def _process(
        self,
        data: bytes,
        file_name: str,
        title: str | None,
        lang: str,
        created_by: str | None,
    ) -> PDFUploadResult:
        if not self.loader.is_valid_pdf(data):
            raise InvalidFileError("Invalid PDF file", stage="validate")

        key = upload_key(file_name)
        logger.info("Uploading %s to object storage", file_name, extra={"ctx_key": key})
        with _stage("store"):
            locator = self.objects.put(data, key)

        try:
            logger.info("Extracting text from %s", file_name)
            with _stage("extract"):
                extracted = self.loader.extract(data)
                cleaned = self.loader.clean_text(extracted.text)
            if not cleaned:
                raise EmptyContentError("No text content could be extracted from the PDF", stage="clean")

            digest = content_hash(cleaned)
            with _stage("dedupe"):
                existing = find_existing(self.store, digest)
                if existing is not None and existing.status is ResourceStatus.ERROR:
                    logger.info("Replacing failed resource %s with fresh ingest", existing.id)
                    self.delete_resource(existing.id)
                    existing = None
            if existing is not None:
                self._discard_object(locator)
                return self._duplicate_result(existing, file_name)

            resolved_title = title or extracted.title or file_name
            logger.info("Creating resource record for %s", resolved_title)
            with _stage("create_resource"), self.db.transaction():
                resource = self.store.create_resource(
                    type="pdf",
                    title=resolved_title,
                    source=locator,
                    lang=lang,
                    content_hash=digest,
                    created_by=created_by,
                )
                version = self.store.create_version(resource.id, INITIAL_VERSION, digest)
        except DuplicateContentError as exc:
            # Lost a race with a concurrent upload of the same content.
            self._discard_object(locator)
            winner = self.store.find_by_hash(exc.content_hash)
            if winner is None:
                raise DependencyError("Duplicate content detected but no resource found", stage="create_resource") from exc
            return self._duplicate_result(winner, file_name)
        except Exception:
            self._discard_object(locator)
            raise

        try:
            return self._index(resource, version.version, cleaned, lang)
        except Exception as exc:
            logger.exception("Ingest of resource %s failed: %s", resource.id, exc)
            self._mark_failed(resource.id)
            raise

    def _index(self, resource: Resource, version: int, cleaned: str, lang: str) -> PDFUploadResult:
        log = bind(logger, resource_id=resource.id, version=version)
        log.info("Chunking text for resource %s", resource.id)
        with _stage("chunk"):
            chunks = self.chunker.chunk(cleaned)
        if not chunks:
            raise EmptyContentError("Failed to create chunks from PDF content", stage="chunk")

        with self.db.transaction():
            log.info("Creating %s chunks", len(chunks))
            with _stage("persist_chunks"):
                stored = self.store.insert_chunks(resource.id, version, lang, chunks)
            log.info("Generating embeddings for %s chunks", len(stored), extra={"ctx_model": self.embedding_model.model_name})
            with _stage("embed"):
                batch = self.embedding_model.encode([chunk.text for chunk in stored])
            with _stage("persist_embeddings"):
                embeddings_created = self.store.insert_embeddings(stored, batch.vectors, batch.model, batch.dim)
            with _stage("mark_ready"):
                self.store.set_status(resource.id, ResourceStatus.READY)

        log.info("PDF processing completed for resource %s", resource.id)
        self._update_index_metric()
        return PDFUploadResult(
            resource_id=resource.id,
            title=resource.title or "",
            chunks_created=len(stored),
            embeddings_created=embeddings_created,
        )

    def _duplicate_result(self, resource: Resource, file_name: str) -> PDFUploadResult:
        chunk_count = self.store.count_chunks(resource.id)
        logger.info("Content already ingested as resource %s", resource.id)
        return PDFUploadResult(
            resource_id=resource.id,
            title=resource.title or file_name,
            chunks_created=chunk_count,
            embeddings_created=self.store.count_embeddings(resource.id),
            duplicate=True,
        )

    def _mark_failed(self, resource_id: str) -> None:
        try:
            with self.db.transaction():
                self.store.set_status(resource_id, ResourceStatus.ERROR)
        except Exception:
            logger.exception("Could not mark resource %s as failed", resource_id)

    def _discard_object(self, locator: str) -> None:
        try:
            self.objects.delete(self.objects.key_from_locator(locator))
        except Exception as exc:
            logger.warning("Failed to delete stored object %s: %s", locator, exc)

    def _require(self, resource_id: str) -> Resource:
        resource = self.store.get(resource_id)
        if resource is None:
            raise NotFoundError(f"Resource {resource_id} not found")
        return resource

    def _update_index_metric(self) -> None:
        try:
            INDEX_SIZE.set(self.store.total_embeddings())
        except Exception:  # pragma: no cover
            logger.debug("Index size metric update failed", exc_info=True)


__all__ = ["IngestPipeline"]
