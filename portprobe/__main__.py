"""
Main entry point for portprobe.
"""
import logging
import sys
from typing import List, Optional


def wait_for_exit():
    """Keeps the console open until the user presses Enter."""
    print("Press Enter to exit...")
    try:
        input()
    except EOFError:
        pass


def main_entry(argv: Optional[List[str]] = None) -> int:
    """
    Runs the application behind a top-level guard.

    Unexpected failures are logged and reported instead of ending in a bare
    traceback; the process still exits with a failure code.
    """
    argv = sys.argv[1:] if argv is None else argv
    exit_code = 1
    try:
        from portprobe.app import main as app_main
        exit_code = app_main(argv)
    except KeyboardInterrupt:
        print("\nScan interrupted.")
        exit_code = 130
    except Exception as e:
        logging.exception("Unhandled error")
        print(f"Program crashed: {e}")
        exit_code = 1
    finally:
        if '--pause' in argv:
            wait_for_exit()
    return exit_code


def run():
    sys.exit(main_entry())


if __name__ == "__main__":
    run()
