import logging

LOG_FORMAT = "%(asctime)s [%(service)s] %(levelname)s %(name)s: %(message)s"


class _ServiceFilter(logging.Filter):
    def __init__(self, service: str):
        super().__init__()
        self.service = service

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service
        return True


def setup_logging(service: str, level: str = "INFO") -> logging.Logger:
    """
    Configure the root logger once per process.

    Every record is tagged with the service name so interleaved container
    output stays attributable.
    """
    root = logging.getLogger()

    # avoid duplicate handlers on reload
    if any(getattr(h, "_service_handler", False) for h in root.handlers):
        return root

    handler = logging.StreamHandler()
    handler._service_handler = True
    handler.addFilter(_ServiceFilter(service))
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root.addHandler(handler)
    root.setLevel(level.upper())

    for noisy in ("httpx", "httpcore", "aio_pika", "aiormq"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return root
