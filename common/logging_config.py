"""
Loggers and the Solver Audit Trail.

This module provides structured logging for the referencing engine, plus an
audit trail of iterative solver behaviour. Iterative algorithms (ellipsoidal
geodesics, inverse projections, geocentric to geographic conversions) may stop
on their iteration cap; recording how many iterations were used and which
inputs failed to converge makes such cases diagnosable after the fact.

Audit Records
-------------
Each run may record:
- Configuration hash of the calculator that produced the records
- Convergence records (solver, iterations, final residual, tolerance)
- Non-convergence events with the offending points
"""

import hashlib
import json
import logging
import sys
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from contextlib import contextmanager
import threading


# Every module calls get_logger(__name__) once at import time.
def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Get a logger configured for the referencing engine.

    Parameters
    ----------
    name : str
        Logger name (typically __name__).
    level : int
        Logging level.

    Returns
    -------
    logging.Logger
        Configured logger instance.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            '%(asctime)s | %(name)s | %(levelname)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger


@dataclass
class ConvergenceRecord:
    """Record of one execution of an iterative solver.

    Attributes
    ----------
    timestamp : datetime
        When the solver finished.
    solver : str
        Identifier of the solver (e.g. 'vincenty_inverse').
    iterations : int
        Number of iterations executed.
    residual : float
        Magnitude of the last correction.
    tolerance : float
        Convergence threshold.
    converged : bool
        Whether the residual fell below the tolerance.
    context : dict
        Additional context (input points, azimuth, ...).
    """
    timestamp: datetime
    solver: str
    iterations: int
    residual: float
    tolerance: float
    converged: bool
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        record = asdict(self)
        record["timestamp"] = self.timestamp.isoformat()
        return record


@dataclass
class RunMetadata:
    """Metadata for a calculation run."""
    run_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    config_hash: str = ""
    convergence_records: List[ConvergenceRecord] = field(default_factory=list)

    def compute_config_hash(self, config: Dict[str, Any]) -> str:
        """Compute a deterministic hash of the configuration.

        Parameters
        ----------
        config : dict
            The configuration dictionary.

        Returns
        -------
        str
            Truncated SHA-256 hash of the configuration.
        """
        config_str = json.dumps(config, sort_keys=True, default=str)
        self.config_hash = hashlib.sha256(config_str.encode()).hexdigest()[:16]
        return self.config_hash

    def header(self) -> Dict[str, Any]:
        """Identifier, configuration hash and time span of the run."""
        return {
            "run_id": self.run_id,
            "config_hash": self.config_hash,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }


class AuditLogger:
    """Collects convergence records of iterative solvers.

    Instances are passed explicitly to the objects that should report to them
    (for example `GeodeticCalculator.create(..., audit=audit)`). Records logged
    outside of a `run_context` go to the logger only.

    Thread Safety
    -------------
    All methods are thread-safe, so one audit logger may be shared by
    calculators running in different threads.

    Examples
    --------
    >>> audit = AuditLogger()
    >>> with audit.run_context("survey_001") as run:
    ...     audit.log_convergence("vincenty_inverse", iterations=4,
    ...                           residual=1e-14, tolerance=1e-12)
    >>> summary = audit.get_run_summary("survey_001")
    """

    def __init__(self, name: str = "audit"):
        """Initialize the audit logger."""
        self._lock = threading.Lock()
        self._runs: Dict[str, RunMetadata] = {}
        self._current_run_id: Optional[str] = None
        self._logger = get_logger(name)

    @contextmanager
    def run_context(self, run_id: str, config: Optional[Dict[str, Any]] = None):
        """Context manager for a calculation run.

        Parameters
        ----------
        run_id : str
            Unique identifier for this run.
        config : dict, optional
            Configuration to compute hash from.

        Yields
        ------
        RunMetadata
            The metadata object for this run.
        """
        metadata = RunMetadata(
            run_id=run_id,
            start_time=datetime.now()
        )

        if config:
            metadata.compute_config_hash(config)

        with self._lock:
            self._runs[run_id] = metadata
            self._current_run_id = run_id

        self._logger.info(f"Starting run {run_id} with config hash {metadata.config_hash}")

        try:
            yield metadata
        finally:
            metadata.end_time = datetime.now()
            with self._lock:
                self._current_run_id = None
            failures = sum(1 for r in metadata.convergence_records if not r.converged)
            self._logger.info(
                f"Completed run {run_id}. "
                f"Solver executions: {len(metadata.convergence_records)}, "
                f"non-converged: {failures}"
            )

    def log_convergence(
        self,
        solver: str,
        iterations: int,
        residual: float,
        tolerance: float,
        context: Optional[Dict[str, Any]] = None
    ) -> ConvergenceRecord:
        """Log the outcome of an iterative solver.

        Parameters
        ----------
        solver : str
            Which solver was executed.
        iterations : int
            Number of iterations used.
        residual : float
            The last correction applied by the solver.
        tolerance : float
            The convergence threshold.
        context : dict, optional
            Additional context.

        Returns
        -------
        ConvergenceRecord
            The stored record.
        """
        converged = abs(residual) <= tolerance

        record = ConvergenceRecord(
            timestamp=datetime.now(),
            solver=solver,
            iterations=iterations,
            residual=residual,
            tolerance=tolerance,
            converged=converged,
            context=context or {}
        )

        with self._lock:
            if self._current_run_id and self._current_run_id in self._runs:
                self._runs[self._current_run_id].convergence_records.append(record)

        status = "CONVERGED" if converged else "NO CONVERGENCE"
        log_msg = (
            f"SOLVER | {solver} | {status} | iterations={iterations} "
            f"residual={residual:.6e} (tolerance={tolerance:.6e})"
        )

        if converged:
            self._logger.debug(log_msg)
        else:
            self._logger.warning(log_msg)
        return record

    def _snapshot(self, run_id: str) -> Tuple[RunMetadata, List[ConvergenceRecord]]:
        with self._lock:
            if run_id not in self._runs:
                raise KeyError(f"No run found with ID {run_id}")
            metadata = self._runs[run_id]
            return metadata, list(metadata.convergence_records)

    def get_run_summary(self, run_id: str) -> Dict[str, Any]:
        """Iteration statistics of a run, overall and per solver.

        Raises
        ------
        KeyError
            If no run has the given identifier.
        """
        metadata, records = self._snapshot(run_id)
        solvers: Dict[str, Dict[str, Any]] = {}
        for r in records:
            stats = solvers.setdefault(r.solver, {"executions": 0, "max_iterations": 0, "failures": 0})
            stats["executions"] += 1
            stats["max_iterations"] = max(stats["max_iterations"], r.iterations)
            if not r.converged:
                stats["failures"] += 1

        summary = metadata.header()
        summary.update(
            total_executions=len(records),
            total_failures=sum(1 for r in records if not r.converged),
            solvers=solvers,
        )
        return summary

    def export_run_artifacts(self, run_id: str, output_path: Path) -> None:
        """Write the run header and all its convergence records to a JSON file.

        Parent directories of `output_path` are created as needed.
        """
        metadata, records = self._snapshot(run_id)
        artifacts = metadata.header()
        artifacts["convergence_records"] = [r.to_dict() for r in records]

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w') as f:
            json.dump(artifacts, f, indent=2, default=str)

        self._logger.info(f"Wrote {len(records)} convergence records of run {run_id} to {output_path}")
