"""
Document parsing endpoint.

POST /v1/documents/parse — extract a summary and mortgage fields from an upload.
Nothing is stored; the client attaches the result to its next chat turn.
"""

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel

from ..advisor.fields import to_aliases
from ..core.dependencies import get_user_id
from ..services.document_parser import DocumentType, parse_document

logger = logging.getLogger(__name__)

documents_router = APIRouter(tags=["documents"])


class ParsedDocumentResponse(BaseModel):
    filename: str
    document_type: str
    summary: str
    fields: dict = {}
    char_count: int = 0


@documents_router.post("/documents/parse", response_model=ParsedDocumentResponse)
async def parse_upload(
    file: UploadFile = File(...),
    document_type: str = Form(DocumentType.OTHER.value),
    user_id: int = Depends(get_user_id),
):
    file_bytes = await file.read()
    filename = file.filename or "document"

    parsed = await parse_document(file_bytes, filename, document_type, user_id=user_id)
    logger.info("Parsed %s: %d fields", filename, len(parsed.fields))

    return ParsedDocumentResponse(
        filename=parsed.filename,
        document_type=parsed.document_type,
        summary=parsed.summary,
        fields=to_aliases(parsed.fields),
        char_count=parsed.char_count,
    )
