"""Per-tick car log in CSV form."""

import csv
from pathlib import Path
from typing import IO, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..model.state import SimulationState


class CSVWriter:
    """
    Appends one row per live car for every tick it is given.

    Output format:
        tick,car_id,row,col,state
        1,0,5,1,moving
        ...

    Cars that finished during a tick are no longer live and have no row.
    """

    FIELDNAMES = ['tick', 'car_id', 'row', 'col', 'state']

    def __init__(self, output_path: Path):
        self.output_path = Path(output_path)
        self._stream: Optional[IO[str]] = None
        self._writer: Optional[csv.DictWriter] = None
        self.rows_written = 0
        self.ticks_written = 0

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def open(self) -> None:
        """Create the output file (and its directory) and write the header."""
        if self.is_open:
            return
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self._stream = self.output_path.open('w', newline='')
        self._writer = csv.DictWriter(self._stream, fieldnames=self.FIELDNAMES)
        self._writer.writeheader()
        self.rows_written = 0
        self.ticks_written = 0

    def append(self, state: "SimulationState") -> None:
        if not self.is_open:
            raise RuntimeError(f"CSV log {self.output_path} is not open")
        rows = state.to_csv_rows()
        self._writer.writerows(rows)
        self._stream.flush()
        self.rows_written += len(rows)
        self.ticks_written += 1

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
        self._stream = None
        self._writer = None

    def __enter__(self) -> "CSVWriter":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
