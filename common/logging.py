import logging


class CountingHandler(logging.Handler):
    """Count warnings and errors emitted while attached to a logger."""

    def __init__(self, level=logging.NOTSET):
        super().__init__(level)
        self.warnings = 0
        self.errors = 0

    def emit(self, record):
        if record.levelno >= logging.ERROR:
            self.errors += 1
        elif record.levelno >= logging.WARNING:
            self.warnings += 1

    @property
    def total(self) -> int:
        return self.warnings + self.errors
