"""Turn uploaded files (``data:`` URIs) into text or media for the prompts."""

from __future__ import annotations

import base64
import binascii
import email
import io
from email import policy
from typing import Optional, Tuple

import pandas as pd
import pdfplumber

from .llm import FlowError

SPREADSHEET_EXTENSIONS = (".xlsx", ".xls", ".csv")
EMAIL_EXTENSIONS = (".eml", ".msg")
IMAGE_TYPES = {".jpg": "image/jpeg", ".jpeg": "image/jpeg", ".png": "image/png"}


def decode_data_uri(data_uri: str) -> bytes:
    _, _, encoded = data_uri.partition(",")
    if not encoded:
        raise FlowError("Invalid Data URI format.")
    try:
        return base64.b64decode(encoded, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise FlowError("Invalid Data URI format.") from exc


def spreadsheet_text(content: bytes, file_name: str) -> str:
    """First sheet as tab separated rows, blank rows dropped."""

    try:
        if file_name.lower().endswith(".csv"):
            frame = pd.read_csv(io.BytesIO(content), header=None, dtype=str)
        else:
            frame = pd.read_excel(io.BytesIO(content), header=None, dtype=str, sheet_name=0)
    except (ValueError, ImportError, pd.errors.ParserError) as exc:
        raise FlowError(
            "Error reading the spreadsheet content. Check if the file is in a valid .xlsx format."
        ) from exc
    frame = frame.dropna(how="all")
    if frame.empty:
        raise FlowError("The spreadsheet is empty.")
    return "\n".join(
        "\t".join("" if pd.isna(cell) else str(cell) for cell in row)
        for row in frame.itertuples(index=False)
    )


def email_text(content: bytes) -> str:
    message = email.message_from_bytes(content, policy=policy.default)
    body = message.get_body(preferencelist=("plain", "html"))
    if body is None:
        return "Could not extract text from EML."
    return body.get_content()


def pdf_text(content: bytes) -> str:
    with pdfplumber.open(io.BytesIO(content)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n".join(pages).strip()


def _extension(file_name: str) -> str:
    lowered = file_name.lower()
    return lowered[lowered.rfind(".") :] if "." in lowered else ""


def prompt_input_from_file(
    file_data_uri: str, file_name: str
) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(text, media_url)`` for an uploaded rate or invoice file.

    Text formats are converted locally; images are passed to the model as a
    ``data:`` URI with the right MIME type.

    Raises:
        FlowError: For malformed URIs and unsupported extensions.
    """

    extension = _extension(file_name)
    if extension in IMAGE_TYPES:
        encoded = file_data_uri.partition(",")[2]
        if not encoded:
            raise FlowError("Invalid Data URI format.")
        return None, f"data:{IMAGE_TYPES[extension]};base64,{encoded}"

    content = decode_data_uri(file_data_uri)
    if extension in EMAIL_EXTENSIONS:
        return email_text(content), None
    if extension in SPREADSHEET_EXTENSIONS:
        return spreadsheet_text(content, file_name), None
    if extension == ".pdf":
        return pdf_text(content), None
    if extension == ".xml":
        return content.decode("utf-8", errors="replace"), None
    raise FlowError(f"Unsupported file type: {file_name}. Please use a supported format.")


__all__ = [
    "decode_data_uri",
    "email_text",
    "pdf_text",
    "prompt_input_from_file",
    "spreadsheet_text",
]
