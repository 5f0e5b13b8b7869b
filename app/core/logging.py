import logging


class RowDataFilter(logging.Filter):
    """Keep uploaded record contents out of the logs."""

    BLOCKED_KEYS = {"raw_data", "record", "payload"}

    def filter(self, record: logging.LogRecord) -> bool:
        for key in self.BLOCKED_KEYS:
            if hasattr(record, key):
                setattr(record, key, "[REDACTED]")
        return True


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    root = logging.getLogger()
    if not any(isinstance(f, RowDataFilter) for f in root.filters):
        root.addFilter(RowDataFilter())
    # aiokafka is chatty about reconnects at INFO
    logging.getLogger("aiokafka").setLevel(logging.WARNING)
