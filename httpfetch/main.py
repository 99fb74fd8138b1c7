"""
Command-line entrypoint.

    httpfetch [options] <URL>

Options:
  -O <file>                 Redirect output to file (use "-" for stdout)
  -q                        Suppress diagnostics
  --ca-certificate=<cert>   Load CA certificates from file <cert>
  --no-check-certificate    Don't validate the server's certificate

The process exit code reports the outcome: 0 success, 1 usage or
unknown error, 3 output file error, 4 connection failure, 5 certificate
error, 8 rejected HTTP status.
"""

import argparse
import sys
from typing import Optional, Sequence

from httpfetch.core.config import Settings, settings
from httpfetch.core.exceptions import (
    ConfigurationError,
    UrlValidationError,
    UsageError,
)
from httpfetch.core.logging import get_logger, setup_logging
from httpfetch.infrastructure.tls.provider import load_tls_provider
from httpfetch.worker.runner import run_fetch

logger = get_logger(__name__)

EXIT_USAGE = 1


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of exiting with status 2."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="httpfetch",
        description="Fetch a URL over HTTP or HTTPS and write the body to a file.",
    )
    parser.add_argument("url", help="URL to fetch")
    parser.add_argument(
        "-O",
        dest="output_file",
        metavar="FILE",
        help='Redirect output to file (use "-" for stdout)',
    )
    parser.add_argument(
        "-q", dest="quiet", action="store_true", help="Suppress diagnostics"
    )

    https = parser.add_argument_group("HTTPS options")
    https.add_argument(
        "--ca-certificate",
        dest="ca_certificates",
        metavar="CERT",
        action="append",
        default=[],
        help="Load CA certificates from file CERT",
    )
    https.add_argument(
        "--no-check-certificate",
        dest="verify_certificate",
        action="store_false",
        help="Don't validate the server's certificate",
    )
    return parser


def configure(args: argparse.Namespace, base: Optional[Settings] = None) -> Settings:
    """Overlay command-line flags on the environment settings."""
    base = base or settings
    update = {
        "quiet": args.quiet or base.quiet,
        "verify_certificate": args.verify_certificate and base.verify_certificate,
        "ca_certificates": [*base.ca_certificates, *args.ca_certificates],
    }
    if args.output_file is not None:
        update["output_file"] = args.output_file
    return base.model_copy(update=update)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the fetch client and return the process exit code."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except UsageError as exc:
        print(f"{parser.prog}: error: {exc.message}", file=sys.stderr)
        return EXIT_USAGE

    config = configure(args)
    setup_logging(config.log_level, config.log_format)

    try:
        tls = load_tls_provider(config.ca_certificates)
        if args.url.lower().startswith("https") and tls is None:
            raise ConfigurationError(
                "SSL support not available, please install an ssl-enabled Python"
            )
        outcome = run_fetch(args.url, config=config, tls=tls)
    except (ConfigurationError, UrlValidationError) as exc:
        logger.error("%s: %s", parser.prog, exc.message)
        return EXIT_USAGE
    except KeyboardInterrupt:
        logger.error("%s: interrupted", parser.prog)
        return EXIT_USAGE

    return outcome.exit_code


if __name__ == "__main__":
    sys.exit(main())
