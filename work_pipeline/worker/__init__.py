from work_pipeline.worker.batch_processor import BatchProcessor
from work_pipeline.worker.handler_registry import HandlerContext, HandlerRegistry
from work_pipeline.worker.handlers import build_default_registry
from work_pipeline.worker.service import WorkerService

__all__ = ["BatchProcessor", "HandlerContext", "HandlerRegistry", "WorkerService", "build_default_registry"]
