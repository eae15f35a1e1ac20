import hashlib
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, UploadFile, File, HTTPException, Query
from .config import ConverterSettings
from .converter import Document, TabularConverter
from .errors import ConversionError
from .models import ConvertResponse, HealthResponse
from .normalize import decode_bytes, text_to_lines

TEXT_EXTENSIONS = (".csv", ".txt", ".tsv")
WORKBOOK_EXTENSIONS = (".xlsx", ".xlsm")

app = FastAPI(
    title="tabular-json",
    description="Delimited text, spreadsheets and tables to JSON rows",
    version="0.1.0",
)

converter = TabularConverter(ConverterSettings().to_config())


def _summaries(documents: List[Document]) -> List[Dict[str, Any]]:
    return [
        {"rows": len(doc), "columns": list(doc[0].keys()) if doc else []}
        for doc in documents
    ]


def _client_error(e: ConversionError) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"error": type(e).__name__, "message": str(e)},
    )


@app.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True}


@app.post("/convert", response_model=ConvertResponse)
async def convert_text(
    file: UploadFile = File(...),
    delimiter: Optional[str] = Query(default=None, min_length=1, max_length=2),
    has_header_line: bool = Query(default=True),
):
    if not (file.filename or "").lower().endswith(TEXT_EXTENSIONS):
        raise HTTPException(status_code=422, detail="Only CSV, TSV and TXT files are supported")

    raw = await file.read()
    text, encoding = decode_bytes(raw)
    try:
        document = converter.convert_delimited(
            text_to_lines(text), delimiter=delimiter, has_header_line=has_header_line
        )
    except ConversionError as e:
        raise _client_error(e)

    return {
        "documents": [document],
        "report": {
            "source": "delimited",
            "sha256": encoding.pop("sha256"),
            "encoding": encoding,
            "documents": _summaries([document]),
        },
    }


@app.post("/convert/workbook", response_model=ConvertResponse)
async def convert_workbook(file: UploadFile = File(...)):
    if not (file.filename or "").lower().endswith(WORKBOOK_EXTENSIONS):
        raise HTTPException(status_code=422, detail="Only XLSX and XLSM files are supported")

    raw = await file.read()
    try:
        documents = converter.convert_workbook(raw)
    except ConversionError as e:
        raise _client_error(e)

    return {
        "documents": documents,
        "report": {
            "source": "workbook",
            "sha256": hashlib.sha256(raw).hexdigest(),
            "documents": _summaries(documents),
        },
    }
