"""
Document parsing for uploaded mortgage paperwork.

- pdfplumber for PDFs (text + tables, local)
- UTF-8 for plain-text formats
- LLM extraction at low temperature into a partial FieldSet

The advisor only ever sees the cleaned FieldSet and a short summary,
never the raw document.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO
from pathlib import Path

import pdfplumber

from ..advisor.fields import FIELDS
from ..core.config import get_settings
from ..core.errors import ValidationError
from . import llm

logger = logging.getLogger(__name__)

EXTRACTION_TEMPERATURE = 0.1
EXTRACTION_MAX_TOKENS = 2000
MAX_PROMPT_CHARS = 20000

TEXT_EXTENSIONS = (".txt", ".md", ".csv", ".json")
SUPPORTED_EXTENSIONS = (".pdf",) + TEXT_EXTENSIONS


class DocumentType(str, Enum):
    MORTGAGE_STATEMENT = "mortgage_statement"
    MORTGAGE_OFFER = "mortgage_offer"
    BANK_STATEMENT = "bank_statement"
    PROPERTY_VALUATION = "property_valuation"
    PAY_SLIP = "pay_slip"
    OTHER = "other"


# Fields each document type is most likely to state
DOCUMENT_FIELDS = {
    DocumentType.MORTGAGE_STATEMENT: (
        "current_lender", "current_balance", "monthly_payment", "current_rate",
        "mortgage_type", "term_remaining", "product_end_date", "early_repayment_charges",
        "property_value",
    ),
    DocumentType.MORTGAGE_OFFER: (
        "current_lender", "current_rate", "mortgage_type", "monthly_payment",
        "property_value", "property_location", "exit_fees", "early_repayment_charges",
    ),
    DocumentType.BANK_STATEMENT: (
        "annual_income", "monthly_payment", "existing_debts", "disposable_income",
    ),
    DocumentType.PROPERTY_VALUATION: (
        "property_value", "property_location", "property_type",
    ),
    DocumentType.PAY_SLIP: (
        "annual_income", "employment_status",
    ),
}

EXTRACTION_PROMPT = """You are a financial document parser for a UK mortgage advisor.
Read the document below and extract the values it states.

Document type: {document_type}
Fields to look for (camelCase keys): {field_list}

Reply with ONLY a JSON object:
{{
  "response": "<two sentence summary of the document>",
  "extractedData": {{ "<camelCase key>": <value> }}
}}
Use plain numbers for money, rates and years. Omit anything the document does not state.

--- DOCUMENT ---
{text}
--- END DOCUMENT ---"""


@dataclass
class ParsedDocument:
    summary: str
    fields: dict = field(default_factory=dict)
    document_type: str = DocumentType.OTHER.value
    filename: str = ""
    char_count: int = 0


def extract_text(file_bytes: bytes, filename: str) -> str:
    """Extract text from an upload. Unsupported formats raise ValidationError."""
    ext = Path(filename).suffix.lower()

    if ext == ".pdf":
        return _extract_pdf(file_bytes)
    if ext in TEXT_EXTENSIONS:
        return file_bytes.decode("utf-8", errors="replace")
    raise ValidationError(
        f"Unsupported file type '{ext or filename}'. Supported: {', '.join(SUPPORTED_EXTENSIONS)}"
    )


def _extract_pdf(file_bytes: bytes) -> str:
    """Extract text from PDF using pdfplumber, tables flattened to pipe rows."""
    pages_text = []
    try:
        with pdfplumber.open(BytesIO(file_bytes)) as pdf:
            for page in pdf.pages:
                text = page.extract_text() or ""
                for table in page.extract_tables() or []:
                    for row in table:
                        if row:
                            text += "\n" + " | ".join(str(cell) if cell else "" for cell in row)
                pages_text.append(text)
    except Exception as e:
        logger.error("pdfplumber extraction failed: %s", e)
        raise ValidationError("Could not read PDF") from e
    return "\n\n".join(pages_text)


def _field_list(document_type: DocumentType) -> str:
    names = DOCUMENT_FIELDS.get(document_type) or tuple(FIELDS)
    return ", ".join(FIELDS[name].alias for name in names)


async def parse_document(
    file_bytes: bytes,
    filename: str,
    document_type: str = DocumentType.OTHER.value,
    user_id: int | None = None,
) -> ParsedDocument:
    """
    Turn an uploaded document into a summary and a cleaned partial FieldSet.
    Bad input raises ValidationError; LLM failures raise CollaboratorError.
    """
    settings = get_settings()

    try:
        doc_type = DocumentType(document_type)
    except ValueError:
        raise ValidationError(f"Unknown document type '{document_type}'")

    if not file_bytes:
        raise ValidationError("Uploaded file is empty")
    if len(file_bytes) > settings.max_document_bytes:
        raise ValidationError(
            f"File too large ({len(file_bytes)} bytes). Maximum is {settings.max_document_bytes}."
        )

    text = extract_text(file_bytes, filename).strip()
    if not text:
        raise ValidationError(f"No text could be extracted from {filename}")

    logger.info("Parsing %s as %s (%d chars)", filename, doc_type.value, len(text))

    completion = await llm.complete(
        EXTRACTION_PROMPT.format(
            document_type=doc_type.value,
            field_list=_field_list(doc_type),
            text=text[:MAX_PROMPT_CHARS],
        ),
        max_tokens=EXTRACTION_MAX_TOKENS,
        temperature=EXTRACTION_TEMPERATURE,
        structured=True,
        purpose="document_extraction",
        user_id=user_id,
    )

    return ParsedDocument(
        summary=f"{filename} ({doc_type.value}): {completion.text}",
        fields=completion.fields,
        document_type=doc_type.value,
        filename=filename,
        char_count=len(text),
    )
