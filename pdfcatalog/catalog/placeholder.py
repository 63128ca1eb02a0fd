"""Minimal single-page PDF used when a record's real payload is unavailable."""

import re

PLACEHOLDER_LINES = [
    "PDF PLACE - Educational Resource",
    "File: {filename}",
    "The original file is no longer available in storage.",
    "Ask an administrator to upload it again.",
]


def _escape_pdf_text(text: str) -> str:
    return re.sub(r"([()\\])", r"\\\1", text)


def build_placeholder_pdf(filename: str) -> bytes:
    """Build a valid PDF naming ``filename``, with a correct xref table."""
    text_ops = ["BT", "/F1 14 Tf", "50 750 Td"]
    for index, line in enumerate(PLACEHOLDER_LINES):
        if index:
            text_ops.append("0 -30 Td")
        rendered = _escape_pdf_text(line.format(filename=filename))
        text_ops.append(f"({rendered}) Tj")
    text_ops.append("ET")
    stream = "\n".join(text_ops).encode("latin-1", errors="replace")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        (
            b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>"
        ),
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_offset = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\n" % (len(objects) + 1)
    out += b"startxref\n%d\n%%%%EOF\n" % xref_offset
    return bytes(out)
