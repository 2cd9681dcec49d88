"""
Asynchrone, serialisierte Solves.

Höchstens ein Solve pro Scheduler läuft gleichzeitig. Anfragen während eines
laufenden Solves werden auf den zuletzt angefragten Sketch zusammengefasst
(coalescing). Ergebnisse, die nicht mehr zur neuesten Anfrage passen
(Sketch-ID oder Revision), werden verworfen statt den Solve abzubrechen.
"""

from threading import Condition, Lock, Thread
from typing import Callable, Optional, Tuple

from loguru import logger

from .solver import SolveResult, solve


class SolveScheduler:
    """Single-Flight Solve-Worker mit Coalescing auf die neueste Revision."""

    def __init__(self, on_result: Optional[Callable[[SolveResult], None]] = None,
                 solve_fn: Callable = solve, options=None):
        self._on_result = on_result
        self._solve_fn = solve_fn
        self._options = options
        self._lock = Lock()
        self._idle = Condition(self._lock)
        self._pending = None
        self._in_flight = False
        self._latest: Optional[Tuple[str, int]] = None
        self.last_result: Optional[SolveResult] = None
        self.solved_count = 0
        self.discarded_count = 0
        self.coalesced_count = 0

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._in_flight

    def request(self, sketch) -> bool:
        """
        Solve anfordern. Gibt True zurück wenn sofort gestartet, False wenn
        die Anfrage hinter dem laufenden Solve eingereiht (und ggf. eine ältere
        wartende Anfrage ersetzt) wurde.
        """
        with self._lock:
            self._latest = (sketch.id, sketch.revision)
            if self._in_flight:
                if self._pending is not None:
                    self.coalesced_count += 1
                self._pending = sketch
                return False
            self._in_flight = True

        # Daemon-Thread: stirbt mit dem Prozess
        Thread(target=self._run, args=(sketch,), daemon=True).start()
        return True

    def invalidate(self, sketch) -> None:
        """Neuer Stand ohne Solve (z.B. Abbruch): laufende Ergebnisse gelten als veraltet."""
        with self._lock:
            self._latest = (sketch.id, sketch.revision)
            self._pending = None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Blockiert bis kein Solve mehr läuft. False bei Timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._in_flight, timeout)

    def _solve(self, sketch) -> Optional[SolveResult]:
        try:
            if self._options is None:
                return self._solve_fn(sketch)
            return self._solve_fn(sketch, options=self._options)
        except Exception as e:
            logger.error(f"[Solver] Solver Crash in Worker: {e}")
            return None

    def _run(self, sketch) -> None:
        while True:
            result = self._solve(sketch)

            with self._lock:
                stale = self._latest != (sketch.id, sketch.revision)
                if result is None or stale:
                    self.discarded_count += 1
                    deliver = False
                else:
                    self.solved_count += 1
                    self.last_result = result
                    deliver = True

            if stale:
                logger.debug(f"[Solver] Verwerfe veraltetes Ergebnis für {sketch.id} r{sketch.revision}")
            if deliver and self._on_result is not None:
                try:
                    self._on_result(result)
                except Exception as e:
                    logger.error(f"[Solver] Ergebnis-Callback fehlgeschlagen: {e}")

            with self._lock:
                sketch = self._pending
                self._pending = None
                if sketch is None:
                    self._in_flight = False
                    self._idle.notify_all()
                    return
