import argparse
import asyncio
import logging
import sys
import textwrap

from . import CancellationFlag, DupeScoutError, SearchConfig, ScoutSettings, KEY_GENERATORS
from .config import find_settings_file
from .scout import collect_results, iter_duplicates
from .utils.processor import ExecutorKind
from .utils.profiling import profile_main

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='dupescout',
        description='Find duplicate files under one or more directories by comparing a key derived from their '
                    'content.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent('''
            Examples:
              dupescout ~/Pictures
              dupescout --key sha256 --exclude-dir node_modules ~/src ~/backup
              dupescout --stream --ext jpg --ext png ~/Pictures

            Duplicate paths are printed one per line. Paths of the same group are printed
            next to each other, except with --stream where paths are printed as soon as
            they are found.
            ''').strip())
    parser.add_argument(
        'paths',
        nargs='*',
        metavar='PATH',
        help='Directories to search (default: "paths" from the settings file, or the current directory)')
    parser.add_argument(
        '--config',
        metavar='FILE',
        help='Path to a TOML settings file. If not provided, uses the DUPESCOUT_CONFIG environment variable, if set.')
    parser.add_argument(
        '--workers',
        type=int,
        metavar='N',
        help='Maximum number of files processed concurrently (default: number of CPUs)')
    parser.add_argument(
        '--key',
        dest='key_generator',
        choices=sorted(KEY_GENERATORS),
        help='Key generator: crc32 (size and first 16 KiB, default), sha256 or murmur3 (whole file)')
    parser.add_argument(
        '--executor',
        choices=[kind.value for kind in ExecutorKind],
        help='Run key generators in threads (default) or in worker processes')
    parser.add_argument(
        '--include-hidden',
        action='store_true',
        default=None,
        help='Also search hidden files and directories')
    parser.add_argument(
        '--exclude-dir',
        dest='exclude_dirs',
        action='append',
        metavar='DIR',
        help='Do not descend into directories with this name, or into this directory if DIR contains a path '
             'separator. Can be given multiple times.')
    parser.add_argument(
        '--ext',
        dest='include_extensions',
        action='append',
        metavar='EXT',
        help='Only search files with this extension. Can be given multiple times.')
    parser.add_argument(
        '--stream',
        action='store_true',
        help='Print duplicates as soon as they are found')
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Log progress to standard error')
    parser.add_argument(
        '--log-file',
        metavar='PATH',
        help='Path to log file. If not provided, uses logging.path from the settings file or no log file.')
    parser.add_argument(
        '--log-level',
        metavar='LEVEL',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Defaults to INFO when logging is enabled.')
    return parser


def configure_logging(args: argparse.Namespace, settings: ScoutSettings):
    log_file = args.log_file or settings.get('logging.path')
    log_level = args.log_level or settings.get('logging.level')

    if log_file:
        logging.basicConfig(
            filename=str(log_file),
            level=getattr(logging, log_level or 'INFO'),
            format=LOG_FORMAT)
    elif args.verbose or log_level:
        logging.basicConfig(
            stream=sys.stderr,
            level=getattr(logging, log_level or 'INFO'),
            format=LOG_FORMAT)


@profile_main
def dupescout_main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = ScoutSettings(find_settings_file(args.config))
    except DupeScoutError as e:
        print(f"dupescout: error: {e}", file=sys.stderr)
        return EXIT_ERROR

    configure_logging(args, settings)

    config = SearchConfig.from_settings(
        settings,
        paths=args.paths or None,
        workers=args.workers,
        key_generator=args.key_generator,
        executor=args.executor,
        include_hidden=args.include_hidden,
        exclude_dirs=args.exclude_dirs,
        include_extensions=args.include_extensions)
    if not config.paths:
        config = config._replace(paths=('.',))

    cancellation = CancellationFlag()

    try:
        if args.stream:
            asyncio.run(_print_stream(config, cancellation))
        else:
            for path in asyncio.run(collect_results(config, cancellation)):
                print(path)
    except DupeScoutError as e:
        sys.stdout.flush()
        print(f"dupescout: error: {e}", file=sys.stderr)
        return EXIT_ERROR

    return EXIT_INTERRUPTED if cancellation.is_set() else 0


async def _print_stream(config: SearchConfig, cancellation: CancellationFlag):
    async for path in iter_duplicates(config, cancellation):
        print(path, flush=True)


def main():
    sys.exit(dupescout_main())


if __name__ == '__main__':
    main()
