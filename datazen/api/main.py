# datazen/api/main.py
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional
import logging

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from datazen.config import get_config
from datazen.pipeline import DataQualityPipeline
from datazen.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# Compiled workflow shared by all requests
pipeline: Optional[DataQualityPipeline] = None


def get_pipeline() -> DataQualityPipeline:
    global pipeline
    if pipeline is None:
        pipeline = DataQualityPipeline(get_config())
    return pipeline


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_pipeline()
    logger.info("Pipeline initialized successfully")
    yield
    logger.info("Shutting down DataZen API")


config = get_config()

app = FastAPI(
    title="DataZen API",
    description="Data cleaning and quality analysis for tabular datasets",
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if config.api.ENABLE_DOCS else None
)

if config.api.ENABLE_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


class AnalyzeRequest(BaseModel):
    data_path: str
    clean: bool = True
    export_format: Optional[Literal["csv", "xlsx", "json"]] = None
    output_dir: Optional[str] = None


class AnalyzeResponse(BaseModel):
    status: str
    source_name: str
    total_rows: int
    total_columns: int
    analysis: Dict[str, Any]
    cleaning_report: Optional[Dict[str, Any]] = None
    export_paths: List[str] = []
    execution_log: List[str] = []


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@app.post("/analyze", response_model=AnalyzeResponse)
def analyze(request: AnalyzeRequest):
    """Run ingestion, optional cleaning, analysis and optional export for one file"""
    if not Path(request.data_path).exists():
        raise HTTPException(status_code=400, detail=f"Data file not found: {request.data_path}")

    result = get_pipeline().run_pipeline(
        data_path=request.data_path,
        clean=request.clean,
        export_format=request.export_format,
        output_dir=request.output_dir
    )

    if result.get("status") == "failed":
        detail = result.get("errors") or [result.get("error", "Pipeline failed")]
        logger.error(f"Analysis failed for {request.data_path}: {detail}")
        raise HTTPException(status_code=422, detail=detail)

    table = result.get("cleaned_table") or result["raw_table"]
    report = result.get("cleaning_report")

    return AnalyzeResponse(
        status=result["status"],
        source_name=table.source_name,
        total_rows=table.total_rows,
        total_columns=table.total_columns,
        analysis=result["analysis"].to_dict(),
        cleaning_report=report.to_dict() if report is not None else None,
        export_paths=result.get("export_paths", []),
        execution_log=result.get("execution_log", [])
    )


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "DataZen API",
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    setup_logging(log_level=config.logging_level, log_dir=config.paths.LOGS_DIR)
    uvicorn.run(
        "datazen.api.main:app",
        host=config.api.HOST,
        port=config.api.PORT,
        reload=config.debug_mode,
        log_level="info"
    )
