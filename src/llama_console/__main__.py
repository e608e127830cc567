import logging
import sys

from .app import run


def main() -> None:
    try:
        exit_code = run()
    except Exception as e:
        logging.error(f"Failed to run the console application: {e}", exc_info=True)
        raise
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
