"""ReportService — writes every CSV report plus the xlsx workbook for one run."""

import logging
from pathlib import Path

from stellartax.domain.models.fifo import FifoResult
from stellartax.domain.models.ledger import TxRow
from stellartax.domain.models.price import PriceBook
from stellartax.report.csv_writer import (
    write_events_csv_file,
    write_fills_csv_file,
    write_inventory_csv_file,
    write_transactions_csv_file,
)
from stellartax.report.data_collector import collect_report_data
from stellartax.report.excel_writer import ExcelWriter

logger = logging.getLogger(__name__)


class ReportService:
    """Orchestrates CSV rendering → data collection → Excel generation into one directory."""

    def __init__(self, output_dir: str | Path) -> None:
        self._output_dir = Path(output_dir)

    def generate(
        self,
        wallet: str,
        tx_rows: list[TxRow],
        price_book: PriceBook,
        fifo: FifoResult,
    ) -> list[Path]:
        self._output_dir.mkdir(parents=True, exist_ok=True)
        out = self._output_dir

        paths = [
            write_transactions_csv_file(tx_rows, price_book, fifo.fills, out / "transactions.csv"),
            write_fills_csv_file(fifo.fills, out / "fifo_fills.csv"),
            write_inventory_csv_file(fifo.ending_batches, out / "fifo_inventory.csv"),
            write_events_csv_file(fifo.ending_batches, fifo.fills, tx_rows, out / "fifo_events.csv"),
        ]

        buf = ExcelWriter().write_to_buffer(collect_report_data(wallet, tx_rows, price_book, fifo))
        xlsx_path = out / f"fifo_report_{wallet[:8]}.xlsx"
        xlsx_path.write_bytes(buf.getvalue())
        paths.append(xlsx_path)

        logger.info("Report generated: %s", xlsx_path)
        return paths
