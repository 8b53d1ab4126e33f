"""ExcelWriter — the FIFO report workbook, one sheet per ReportData list."""

from io import BytesIO
from typing import NamedTuple

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from stellartax.report.data_collector import ReportData

DATE_FMT = "yyyy-mm-dd hh:mm:ss"
UNITS_FMT = "#,##0.0000000"  # stroop precision
PRICE_FMT = "0.000000"  # micro-EUR precision
EUR_FMT = "#,##0.00"


class SheetDef(NamedTuple):
    name: str
    headers: list[str]
    rows_attr: str
    formats: dict[int, str]  # 0-based column -> number format


SHEET_DEFS: list[SheetDef] = [
    SheetDef("summary", ["Metric", "Value"], "summary", {}),
    SheetDef(
        "fills",
        [
            "Disposed At (UTC)", "Disposal Kind", "Tx Hash", "Currency", "Qty", "Batch ID",
            "Acquired At (UTC)", "Acq Price (EUR)", "Disp Price (EUR)", "Proceeds (EUR)", "Cost (EUR)", "P/L (EUR)",
        ],
        "fills",
        {0: DATE_FMT, 4: UNITS_FMT, 6: DATE_FMT, 7: PRICE_FMT, 8: PRICE_FMT, 9: EUR_FMT, 10: EUR_FMT, 11: EUR_FMT},
    ),
    SheetDef(
        "inventory",
        ["Currency", "Batch ID", "Acquired At (UTC)", "Acq Price (EUR)", "Qty Initial", "Qty Remaining",
         "Remaining Cost (EUR)"],
        "inventory",
        {2: DATE_FMT, 3: PRICE_FMT, 4: UNITS_FMT, 5: UNITS_FMT, 6: EUR_FMT},
    ),
    SheetDef(
        "transactions",
        ["Date (UTC)", "Tx Hash", "Operations", "Fee (XLM)", "XLM Balance", "USDC Balance", "EURC Balance",
         "Total Balance (EUR)"],
        "transactions",
        {0: DATE_FMT, 3: UNITS_FMT, 4: UNITS_FMT, 5: UNITS_FMT, 6: UNITS_FMT, 7: EUR_FMT},
    ),
]

HEADER_FONT = Font(bold=True)
MAX_COLUMN_WIDTH = 50


class ExcelWriter:
    def write_to_buffer(self, data: ReportData) -> BytesIO:
        wb = Workbook()
        wb.remove(wb.active)

        for sheet in SHEET_DEFS:
            ws = wb.create_sheet(title=sheet.name)
            ws.append(sheet.headers)
            for cell in ws[1]:
                cell.font = HEADER_FONT

            for row in getattr(data, sheet.rows_attr):
                ws.append(list(row))
                for col, fmt in sheet.formats.items():
                    ws.cell(row=ws.max_row, column=col + 1).number_format = fmt

            if sheet.formats:
                # Tabular sheets: keep the header visible and filterable
                ws.freeze_panes = "A2"
                ws.auto_filter.ref = ws.dimensions
            _fit_columns(ws)

        buf = BytesIO()
        wb.save(buf)
        buf.seek(0)
        return buf


def _fit_columns(ws: Worksheet) -> None:
    for col_cells in ws.columns:
        width = max((len(str(c.value)) for c in col_cells if c.value is not None), default=0)
        ws.column_dimensions[get_column_letter(col_cells[0].column)].width = min(width + 3, MAX_COLUMN_WIDTH)
