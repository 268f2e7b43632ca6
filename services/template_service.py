"""
Downloadable article import template.

Header row = target field labels, body = fixed sample articles.
Static: nothing here depends on an import session.
"""

from io import BytesIO

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
import structlog

from models.article_import import TARGET_FIELDS

logger = structlog.get_logger(__name__)


TEMPLATE_CSV_FILENAME = "article-import-template.csv"
TEMPLATE_EXCEL_FILENAME = "article-import-template.xlsx"

# Keyed by template label; labels missing here render empty
SAMPLE_ARTICLES: tuple[dict[str, str], ...] = (
    {
        "Article Name": "Premium Cotton Fabric",
        "Description": "High-quality cotton fabric for textile manufacturing",
        "Base Rate": "450.00",
        "HSN Code": "5208",
        "Tax Rate (%)": "12",
        "Unit": "meter",
        "Min Quantity": "50",
        "Fragile": "No",
        "Special Handling": "No",
        "Notes": "Store in dry place",
    },
    {
        "Article Name": "Silk Saree Bundle",
        "Description": "Traditional silk sarees in assorted colors",
        "Base Rate": "2500.00",
        "HSN Code": "5007",
        "Tax Rate (%)": "5",
        "Unit": "bundle",
        "Min Quantity": "10",
        "Fragile": "Yes",
        "Special Handling": "Yes",
        "Notes": "Handle with care, avoid moisture",
    },
)

_HEADER_FILL = PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid")


def template_headers() -> list[str]:
    return [f.label for f in TARGET_FIELDS]


def _template_frame() -> pd.DataFrame:
    headers = template_headers()
    return pd.DataFrame(
        [[sample.get(h, "") for h in headers] for sample in SAMPLE_ARTICLES],
        columns=headers,
    )


def build_template_csv() -> bytes:
    """Template as UTF-8 CSV bytes."""
    logger.debug("building_import_template", format="csv")
    return _template_frame().to_csv(index=False).encode("utf-8")


def sample_data_csv() -> str:
    """Sample rows as CSV text (for pasting)."""
    return pd.DataFrame(list(SAMPLE_ARTICLES)).to_csv(index=False)


def build_template_excel() -> bytes:
    """Template as an .xlsx workbook with a bold header row."""
    logger.debug("building_import_template", format="xlsx")

    wb = Workbook()
    ws = wb.active
    ws.title = "Articles"

    headers = template_headers()
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.fill = _HEADER_FILL

    for sample in SAMPLE_ARTICLES:
        ws.append([sample.get(h, "") for h in headers])

    for column_cells in ws.columns:
        width = max(len(str(c.value or "")) for c in column_cells)
        ws.column_dimensions[column_cells[0].column_letter].width = min(width + 2, 50)

    output = BytesIO()
    wb.save(output)
    return output.getvalue()
