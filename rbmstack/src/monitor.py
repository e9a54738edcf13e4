"""Rate-limited progress reporting for long training loops."""
from typing import Optional, TextIO

from tqdm import tqdm

from ..constants import MONITOR_INTERVAL_SECONDS


class StepMonitor:
    """Progress callable for ``StackedRBM.fit`` backed by a tqdm bar.

    The bar is created on the first ``tick`` and redrawn at most once every
    ``interval`` seconds. ``tick`` returns True when it was redrawn, so the
    caller only logs when there is something new to show.
    """

    def __init__(self, interval: float = MONITOR_INTERVAL_SECONDS,
                 file: Optional[TextIO] = None, desc: str = "Training",
                 disable: bool = False):
        self.interval = interval
        self.file = file
        self.desc = desc
        self.disable = disable
        self.bar: Optional[tqdm] = None

    def tick(self, step: int, total: int) -> bool:
        if self.bar is None:
            self.bar = tqdm(total=total, desc=self.desc, mininterval=self.interval,
                            miniters=1, leave=False, file=self.file,
                            disable=self.disable)
        self.bar.total = total
        return bool(self.bar.update(step - self.bar.n))

    __call__ = tick

    @property
    def step(self) -> int:
        return self.bar.n if self.bar is not None else 0

    @property
    def total(self) -> int:
        return self.bar.total if self.bar is not None else 0

    def close(self) -> None:
        if self.bar is not None:
            self.bar.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def __str__(self) -> str:
        if self.bar is None:
            return f"{self.desc}: not started"
        return str(self.bar)
