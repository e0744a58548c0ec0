"""
FastAPI backend service for bank statement analysis.
"""
from fastapi import FastAPI, File, Form, UploadFile, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from typing import List, Optional

from pydantic import BaseModel

from cartola import (
    AccountMapper,
    Settings,
    StatementLoadError,
    StatementParser,
    analyze_statement,
    build_journal_drafts,
    load_statement_text,
)
from cartola.models.schema import CatalogAccount, ExternalAccount, Transaction

app = FastAPI(title="Cartola Bank Statement API", version="1.0.0")

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

ALLOWED_SUFFIXES = ('.csv', '.txt', '.tsv', '.pdf')

# Lookup tables are loaded once at startup and shared by every request
settings = Settings.from_env()
parser = StatementParser(settings)
mapper = AccountMapper(settings.templates_dir)


class JournalRequest(BaseModel):
    company_id: str
    transactions: List[Transaction]


class MappingRequest(BaseModel):
    external_accounts: List[ExternalAccount]
    catalog: Optional[List[CatalogAccount]] = None


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": "Cartola Bank Statement API", "status": "healthy"}


@app.post("/bank-analysis")
async def bank_analysis(file: UploadFile = File(...), company_id: Optional[str] = Form(None)):
    """
    Parse an uploaded statement and return transactions with insights.

    Args:
        file: Uploaded CSV, TXT or PDF statement
        company_id: Company used for counterparty lookups

    Returns:
        Bank analysis as JSON
    """
    filename = file.filename or ""
    if not filename.lower().endswith(ALLOWED_SUFFIXES):
        raise HTTPException(status_code=400, detail="File must be CSV, TXT or PDF")

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="File is empty")

    try:
        content = load_statement_text(data, filename)
    except StatementLoadError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        logger.info(f"Processing statement: {filename}")
        result = await parser.parse_async(content, company_id)
        analysis = analyze_statement(result)
    except Exception as e:
        logger.error(f"Error analyzing statement: {e}")
        raise HTTPException(status_code=500, detail=f"Error analyzing statement: {str(e)}")

    logger.info(f"Successfully parsed statement: {analysis.transaction_count} transactions found")
    return JSONResponse(content={
        "success": True,
        "data": analysis.model_dump(mode='json'),
    })


@app.post("/bank-to-journal")
async def bank_to_journal(request: JournalRequest):
    """Build draft journal entries for enriched transactions."""
    if not request.company_id:
        raise HTTPException(status_code=400, detail="Company ID is required")

    batch = build_journal_drafts(request.transactions, request.company_id)
    return JSONResponse(content={
        "success": True,
        "data": batch.model_dump(mode='json'),
        "summary": {
            "created": len(batch.drafts),
            "skipped": len(batch.skipped),
        }
    })


@app.post("/account-mapping")
async def account_mapping(request: MappingRequest):
    """Map external accounts onto the internal chart of accounts."""
    try:
        report = mapper.map_accounts(request.external_accounts, request.catalog)
    except Exception as e:
        logger.error(f"Error mapping accounts: {e}")
        raise HTTPException(status_code=500, detail=f"Error mapping accounts: {str(e)}")

    return JSONResponse(content={
        "success": True,
        "data": report.model_dump(mode='json'),
    })


@app.get("/banks")
async def list_banks():
    """List the banks the detector recognises."""
    return JSONResponse(content={
        "success": True,
        "banks": parser.bank_detector.list_banks(),
    })


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
