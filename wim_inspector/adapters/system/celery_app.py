# /wim_inspector/adapters/system/celery_app.py
from __future__ import annotations
import logging

from celery import Celery

from wim_inspector.config import settings
from wim_inspector.adapters.system.logging_cfg import configure_logger
from wim_inspector.adapters.system.redis_result_store import RedisResultStore
from wim_inspector.adapters.wimlib.wimlib_reader import WimlibCliOpener
from wim_inspector.domain.errors import WimInspectorError
from wim_inspector.domain.image_service import ImageMetadataService, record_to_dict
from wim_inspector.ports.result_store import ResultStorePort

LOG = logging.getLogger("adapter.celery")
configure_logger()

celery_app = Celery("wim_inspector", broker=settings.REDIS_URL, backend=settings.REDIS_URL)
celery_app.conf.update(
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.CELERY_WORKER_CONCURRENCY,
    task_acks_late=True,
    task_time_limit=600,
)

_store: ResultStorePort = RedisResultStore(settings.REDIS_URL, ttl_seconds=settings.RESULT_TTL_SECONDS)

def _make_service() -> ImageMetadataService:
    return ImageMetadataService(
        WimlibCliOpener(),
        approximate_size=settings.APPROXIMATE_SIZE_FALLBACK,
    )

@celery_app.task(name="analyze_container", bind=True)
def analyze_container(self, job_id: str, wim_file_path: str) -> str:
    """Resolve every image of one container and persist the records or the error."""
    LOG.info("analyze.job.accepted", extra={"extra": {"job_id": job_id, "path": wim_file_path}})
    try:
        records = _make_service().inspect_all_images(wim_file_path)
    except WimInspectorError as e:
        # container problems are permanent for this input, no retry
        _store.set_error(job_id, str(e))
        LOG.warning("analyze.job.failed", extra={"extra": {"job_id": job_id, "error": str(e)}})
        return "error"
    except Exception as e:
        _store.set_error(job_id, str(e))
        LOG.exception("analyze.job.error", extra={"extra": {"job_id": job_id}})
        raise

    _store.set_result(
        job_id,
        {
            "filePath": wim_file_path,
            "imageCount": len(records),
            "images": [record_to_dict(r) for r in records],
        },
    )
    LOG.info("analyze.job.done", extra={"extra": {"job_id": job_id, "images": len(records)}})
    return "ok"
