"""
Document Processor API
Main FastAPI application
"""

import asyncio
import logging
from datetime import datetime
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from document_processor import (
    Document,
    DocumentProcessingError,
    DocumentProcessorService,
    DocumentValidationError,
    Settings,
    StrategyNotFoundError,
    UnsupportedDocumentTypeError,
    get_settings,
)

settings = get_settings()

# Setup logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Document Processor",
    description="Upload CSV, Excel, PDF or Word documents and get extracted text, structured data, metadata and statistics.",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache
def get_service() -> DocumentProcessorService:
    return DocumentProcessorService(settings=get_settings())


def api_response(success: bool, message: str, data: Any = None, error_code: Optional[str] = None,
                 metadata: Optional[Dict[str, Any]] = None, status_code: int = 200) -> JSONResponse:
    """Consistent response envelope for every endpoint."""
    body = {
        "success": success,
        "message": message,
        "data": data,
        "error_code": error_code,
        "metadata": metadata,
        "timestamp": datetime.now(),
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


# Error handlers

@app.exception_handler(DocumentValidationError)
async def validation_error_handler(request: Request, exc: DocumentValidationError):
    logger.warning(f"Document validation failed: {exc.validation_errors}")
    return api_response(False, str(exc), error_code=exc.error_code,
                        metadata={"validation_errors": exc.validation_errors}, status_code=400)


@app.exception_handler(UnsupportedDocumentTypeError)
async def unsupported_type_handler(request: Request, exc: UnsupportedDocumentTypeError):
    logger.warning(f"Unsupported document type: {exc.extension}")
    return api_response(False, str(exc), error_code=exc.error_code,
                        metadata={"supported_extensions": sorted(exc.supported_extensions)},
                        status_code=400)


@app.exception_handler(StrategyNotFoundError)
async def strategy_not_found_handler(request: Request, exc: StrategyNotFoundError):
    logger.warning(f"Strategy not found: {exc.requested}")
    return api_response(False, str(exc), error_code=exc.error_code,
                        metadata={"available_strategies": exc.available}, status_code=400)


@app.exception_handler(DocumentProcessingError)
async def processing_error_handler(request: Request, exc: DocumentProcessingError):
    logger.error(f"Document processing failed: {exc}")
    return api_response(False, str(exc), error_code=exc.error_code, status_code=500)


@app.exception_handler(asyncio.TimeoutError)
async def timeout_handler(request: Request, exc: asyncio.TimeoutError):
    logger.error(f"Document processing timed out after {settings.max_processing_time_ms} ms")
    return api_response(
        False,
        f"Processing exceeded the maximum allowed time of {settings.max_processing_time_ms} ms",
        error_code="PROCESSING_TIMEOUT",
        status_code=504,
    )


# Helpers

async def read_upload(file: UploadFile, config: Settings) -> Document:
    """Validate an uploaded file and wrap it as a Document."""
    content = await file.read()
    if not content:
        raise DocumentValidationError("File cannot be empty")
    if not file.filename or not file.filename.strip():
        raise DocumentValidationError("File must have a valid file name")
    if len(content) > config.max_file_size_bytes:
        raise DocumentValidationError(
            f"File size ({len(content)} bytes) exceeds the maximum allowed size "
            f"({config.max_file_size_bytes} bytes)"
        )
    if '.' not in file.filename:
        raise DocumentValidationError("File must have a valid extension")
    return Document(name=file.filename, content=content, size=len(content))


async def run_with_deadline(func, *args, config: Settings):
    """Run blocking processing in the threadpool under the configured deadline."""
    return await asyncio.wait_for(
        run_in_threadpool(func, *args),
        timeout=config.max_processing_time_ms / 1000,
    )


# Endpoints

@app.post("/api/documents/process")
async def process_document(
    file: UploadFile = File(...),
    service: DocumentProcessorService = Depends(get_service),
    config: Settings = Depends(get_settings),
):
    """Process a document with the strategy matching its extension."""
    logger.info(f"Received document: {file.filename}")
    document = await read_upload(file, config)
    result = await run_with_deadline(service.process, document, config=config)
    return api_response(True, "Document processed successfully", data=result.to_dict())


@app.post("/api/documents/process/{strategy_name}")
async def process_document_with_strategy(
    strategy_name: str,
    file: UploadFile = File(...),
    service: DocumentProcessorService = Depends(get_service),
    config: Settings = Depends(get_settings),
):
    """Process a document with a strategy chosen by name."""
    logger.info(f"Received document: {file.filename} for strategy {strategy_name}")
    document = await read_upload(file, config)
    result = await run_with_deadline(service.process_with_strategy, document, strategy_name, config=config)
    return api_response(True, f"Document processed successfully with strategy: {strategy_name}",
                        data=result.to_dict())


@app.get("/api/documents/strategies")
async def get_strategies(service: DocumentProcessorService = Depends(get_service)):
    return api_response(True, "Strategy information retrieved", data=service.strategies_info())


@app.get("/api/documents/supported-extensions")
async def get_supported_extensions(service: DocumentProcessorService = Depends(get_service)):
    return api_response(True, "Supported extensions retrieved",
                        data=sorted(service.supported_extensions()))


@app.get("/api/documents/supported-extensions/{extension}")
async def is_extension_supported(extension: str, service: DocumentProcessorService = Depends(get_service)):
    supported = service.is_extension_supported(extension)
    metadata: Dict[str, Any] = {"extension": extension}
    if not supported:
        metadata["supported_extensions"] = sorted(service.supported_extensions())
    message = "Extension is supported" if supported else "Extension is not supported"
    return api_response(True, message, data=supported, metadata=metadata)


@app.get("/api/documents/statistics")
async def get_processing_statistics(service: DocumentProcessorService = Depends(get_service)):
    return api_response(True, "Processing statistics retrieved", data=service.processing_statistics())


@app.get("/api/documents/health")
async def health_check(service: DocumentProcessorService = Depends(get_service)):
    health = {
        "status": "UP",
        "timestamp": datetime.now(),
        "available_strategies": len(service.list_strategies()),
        "supported_extensions": len(service.supported_extensions()),
    }
    return api_response(True, "Service is running", data=health)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
