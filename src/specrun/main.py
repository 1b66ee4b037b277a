"""
Home of the main function, which runs test files from the command line.

Usage:
    specrun FILE [FILE ...]
    SPECRUN_UPDATE_SNAPSHOTS=1 specrun FILE [FILE ...]

Exit codes:
    0 -- every spec passed
    1 -- some spec failed
    2 -- some suite raised an unexpected error
    3 -- some test file could not be loaded or declared no tests
"""

import argparse
import sys
from typing import Never


def main() -> Never:
    """
    Main function. Runs the test files named on the command line,
    each with fresh run state, and exits with the worst exit code of any of them.
    """
    exit_code = _main(sys.argv[1:])
    sys.exit(exit_code)


def _main(args: list[str]) -> int:
    # 1. Enable terminal colors on Windows, by wrapping stdout and stderr
    # 2. Strip colorizing ANSI escape sequences when printing to a log file
    import colorama
    colorama.init()
    
    from specrun import __version__, APP_NAME
    from specrun.runner import ExitCode, run
    from specrun.util import cli
    from specrun.util.env import colors_requested
    
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description='Runs describe/it test files.',
    )
    parser.add_argument(
        'filepaths',
        help='Path to a test file to run.',
        metavar='FILE',
        nargs='+',
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}',
    )
    parsed_args = parser.parse_args(args)  # may raise SystemExit
    
    cli.set_use_colors(colors_requested())
    
    exit_code = ExitCode.OK
    for filepath in parsed_args.filepaths:
        report = run(filepath)
        exit_code = max(exit_code, report.exit_code)
    return int(exit_code)


# ------------------------------------------------------------------------------

if __name__ == '__main__':
    main()
