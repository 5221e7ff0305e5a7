import logging
import os
import sys

from outlay.cli import OutlayCLI
from outlay.storage import JsonStore, DEFAULT_SAVE


def configure_logging():
    level = os.getenv("OUTLAY_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    configure_logging()
    save_name = argv[0] if argv else DEFAULT_SAVE
    OutlayCLI(JsonStore(save_name)).cmdloop()


if __name__ == "__main__":
    main()
