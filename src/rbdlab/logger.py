"""
CSV logging of mechanism state time series.

Buffers data in memory and writes in batches to minimize I/O overhead.
Implements context manager protocol for safe resource handling. The output
is the (time, configuration, velocity) series consumed by plotting and
visualization tools.
"""
from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, TextIO

from rbdlab.core.state import MechanismState
from rbdlab.utils.validation import validate_positive

VALID_FIELDS = ("q", "v")


class CSVLogger:
    """
    Buffered CSV logger for mechanism states.

    Features:
    - Buffered writing (reduces syscalls)
    - Context manager support (safe file handling)
    - Automatic header generation from the joint layout

    Parameters
    ----------
    filepath : str | Path
        Output CSV file path
    buffer_size : int
        Number of rows to buffer before writing. Higher = fewer writes but more memory.
    fields : list[str] | None
        Per-joint blocks to log. Default: ["q", "v"].
        Options: "q" (configuration), "v" (velocity)

    Notes
    -----
    Columns are ``t`` followed by ``<joint>.q_<i>`` and/or ``<joint>.v_<i>``
    for every tree joint, in tree order.

    >>> with CSVLogger("pendulum.csv") as logger:
    ...     for t in times:
    ...         state.set_configuration(q_of(t))
    ...         logger.log(t, state)
    """

    def __init__(
        self,
        filepath: str | Path,
        buffer_size: int = 1000,
        fields: list[str] | None = None,
    ) -> None:
        validate_positive(buffer_size, "buffer_size")
        self.filepath = Path(filepath)
        self.buffer_size = buffer_size
        self.fields = list(fields) if fields is not None else list(VALID_FIELDS)

        invalid = set(self.fields) - set(VALID_FIELDS)
        if invalid:
            raise ValueError(
                f"Invalid fields: {invalid}. Valid options: {set(VALID_FIELDS)}"
            )

        self._buffer: list[list[str]] = []
        self._file: TextIO | None = None
        self._writer: Any = None  # csv.writer is a function, not a type
        self._header_written = False

        self.filepath.parent.mkdir(parents=True, exist_ok=True)

    def __enter__(self) -> CSVLogger:
        """
        Open file for writing.

        A logger that already wrote its header appends, so logging after
        ``close()`` continues the same file.
        """
        mode = "a" if self._header_written else "w"
        self._file = open(self.filepath, mode, newline="", encoding="utf-8")
        self._writer = csv.writer(self._file)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close file, flushing any remaining data."""
        self.close()

    def _blocks(self, state: MechanismState):
        for joint, qr, vr in zip(state.tree_joints, state.position_ranges, state.velocity_ranges):
            for field in self.fields:
                yield joint, field, (qr if field == "q" else vr)

    def _write_header(self, state: MechanismState) -> None:
        hdr = ["t"]
        for joint, field, rng in self._blocks(state):
            hdr.extend(f"{joint.name}.{field}_{i}" for i in range(rng.stop - rng.start))

        self._writer.writerow(hdr)
        self._file.flush()  # Ensure header written immediately
        self._header_written = True

    def log(self, t: float, state: MechanismState) -> None:
        """
        Log the configuration and velocity of ``state`` at time ``t``.

        Notes
        -----
        Automatically opens file on first call if not using context manager.
        Writes to disk when buffer is full. Symbolic states cannot be logged.
        """
        if state.is_symbolic:
            raise TypeError("Cannot log a symbolic MechanismState")
        if self._file is None:
            self.__enter__()

        if not self._header_written:
            self._write_header(state)

        q, v = state.configuration, state.velocity
        row = [f"{t:.10f}"]
        for _, field, rng in self._blocks(state):
            values = q[rng] if field == "q" else v[rng]
            row.extend(f"{x:.10e}" for x in values)

        self._buffer.append(row)

        if len(self._buffer) >= self.buffer_size:
            self.flush()

    def flush(self) -> None:
        """Write buffered data to disk and clear buffer."""
        if self._writer and self._buffer:
            self._writer.writerows(self._buffer)
            if self._file:
                self._file.flush()
            self._buffer.clear()

    def close(self) -> None:
        """Flush remaining data and close file."""
        self.flush()
        if self._file:
            self._file.close()
            self._file = None
            self._writer = None
