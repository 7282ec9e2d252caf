"""
FastAPI backend service for bank statement parsing.
"""
from fastapi import FastAPI, File, UploadFile, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import tempfile
import shutil
from pathlib import Path
import logging
from typing import Any, Dict, List, Optional

from statement_parser import ParseOutcome, detect_bank, parse_statement_async
from statement_parser.core.errors import EmptyInput
from statement_parser.core.loader import load_page_text
from statement_parser.core.registry import get_registry

app = FastAPI(title="Bank Statement Parser", version="1.0.0")

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],  # Vite and other dev servers
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ALLOWED_SUFFIXES = (".pdf", ".txt")


class ParseTextRequest(BaseModel):
    """Pre-extracted statement text, one string per page."""
    pages: List[str] = Field(..., min_length=1)
    filename: str = "statement.txt"
    bank: Optional[str] = None


def _read_upload(file: UploadFile) -> List[str]:
    """Store an upload in a temporary file and load its page text."""
    suffix = Path(file.filename or "").suffix.lower()
    if suffix not in ALLOWED_SUFFIXES:
        raise HTTPException(status_code=400, detail="File must be a PDF or text file")

    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp_file:
        shutil.copyfileobj(file.file, tmp_file)
        tmp_path = Path(tmp_file.name)

    try:
        return load_page_text(tmp_path)
    except Exception as e:
        logger.error(f"Error reading {file.filename}: {e}")
        raise HTTPException(status_code=400, detail=f"Could not read statement: {str(e)}")
    finally:
        tmp_path.unlink(missing_ok=True)


def _outcome_response(outcome: ParseOutcome) -> JSONResponse:
    content: Dict[str, Any] = {
        "success": outcome.success,
        "data": outcome.statement.model_dump(mode="json") if outcome.statement else None,
        "stats": outcome.stats.model_dump(mode="json") if outcome.stats else None,
        "validation": outcome.validation.model_dump(mode="json"),
        "detection": outcome.detection.model_dump(mode="json") if outcome.detection else None,
        "progress": outcome.progress.model_dump(mode="json"),
    }
    return JSONResponse(content=content, status_code=200 if outcome.success else 422)


async def _parse_pages(pages: List[str], filename: str, bank: Optional[str]) -> JSONResponse:
    logger.info(f"Processing statement: {filename}")
    try:
        outcome = await parse_statement_async(pages, filename=filename, hint=bank)
    except EmptyInput as e:
        raise HTTPException(status_code=400, detail=e.message)

    if outcome.success:
        logger.info(f"Successfully parsed {filename}: {outcome.stats.transaction_count} transactions found")
    else:
        logger.warning(f"Could not parse {filename}: {outcome.validation.error_kind}")
    return _outcome_response(outcome)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": "Bank Statement Parser API", "status": "healthy"}


@app.post("/parse")
async def parse_upload(file: UploadFile = File(...), bank: Optional[str] = None):
    """
    Parse an uploaded statement and return structured data.

    Args:
        file: Uploaded PDF, or text file with form-feed page breaks
        bank: Bank id to use instead of detection

    Returns:
        Parsed statement, stats, validation and final progress as JSON
    """
    pages = _read_upload(file)
    return await _parse_pages(pages, file.filename, bank)


@app.post("/parse-text")
async def parse_text(request: ParseTextRequest):
    """Parse statement text that was extracted elsewhere."""
    return await _parse_pages(request.pages, request.filename, request.bank)


@app.post("/detect")
async def detect_statement_bank(file: UploadFile = File(...), bank: Optional[str] = None):
    """
    Detect which bank format matches an uploaded statement.

    Args:
        file: Uploaded PDF or text file
        bank: Optional bank hint

    Returns:
        Detection result
    """
    pages = _read_upload(file)
    result = detect_bank(pages, hint=bank)

    if not result.bank_id:
        raise HTTPException(status_code=400, detail="No matching bank format found")

    return JSONResponse(content={
        "success": True,
        "bank": result.bank_id,
        "detection": result.model_dump(mode="json")
    })


@app.get("/banks")
async def list_banks():
    """List all registered bank formats."""
    return JSONResponse(content={
        "success": True,
        "banks": [
            {
                "id": config.bank_id,
                "name": config.display_name,
                "currency": config.currency,
                "detectable": config.detectable
            }
            for config in get_registry()
        ]
    })


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
