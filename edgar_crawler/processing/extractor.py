"""Conversion of fetched HTML and PDF payloads to plain text."""

from __future__ import annotations

import asyncio
import re
from io import BytesIO
from typing import Protocol

import pdfminer.high_level
from bs4 import BeautifulSoup
from pdfminer.psparser import PSException

from ..errors import ExtractionError


class ContentExtractor(Protocol):
    async def extract_html(self, html: str) -> str:
        """Return the visible text of an HTML document."""

    async def extract_pdf(self, data: bytes) -> str:
        """Return the text layer of a PDF document."""


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = soup.get_text(separator="\n")
    return normalize_whitespace(text)


def normalize_whitespace(text: str) -> str:
    text = re.sub(r"\r\n?", "\n", text)
    text = re.sub(r"[ \t\f\v]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def pdf_to_text(data: bytes) -> str:
    buffer = BytesIO(data)
    try:
        text = pdfminer.high_level.extract_text(buffer)
    finally:
        buffer.close()
    return normalize_whitespace(text)


class DefaultContentExtractor:
    """BeautifulSoup for markup, pdfminer for PDFs; parsing runs off the event loop."""

    async def extract_html(self, html: str) -> str:
        try:
            return await asyncio.to_thread(html_to_text, html)
        except (ValueError, TypeError) as exc:
            raise ExtractionError(f"Unable to extract HTML text: {exc}") from exc

    async def extract_pdf(self, data: bytes) -> str:
        try:
            return await asyncio.to_thread(pdf_to_text, data)
        except (PSException, ValueError, TypeError) as exc:
            raise ExtractionError(f"Unable to extract PDF text: {exc}") from exc
