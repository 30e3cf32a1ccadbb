"""
Command line entry point: evaluate a PEM certificate chain against the
configured trust policy.
"""
import argparse
import sys
from typing import List, Optional

from .services.config_service import ConfigService
from .services.logging_service import LoggingService
from .security.security_service import SecurityService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Certificate chain trust-policy evaluator')
    parser.add_argument('chain', nargs='?', help='PEM file holding the client chain, end-entity first')
    parser.add_argument('--config', '-c', help='Configuration file path')
    parser.add_argument('--check-config', action='store_true', help='Check configuration and exit')
    parser.add_argument('--create-config', metavar='PATH', help='Write an example configuration file and exit')
    parser.add_argument('--debug', action='store_true', help='Log every certificate decision')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command line tool."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config_service = ConfigService()

    if args.create_config:
        config_service.create_default_config_file(args.create_config)
        print(f"Created example configuration at: {args.create_config}")
        return 0

    if not args.config:
        parser.error("--config is required")

    try:
        config = config_service.load_config(args.config)
        if args.debug:
            config.log_level = "DEBUG"
        logging_service = LoggingService(config)
        security_service = SecurityService(config, audit_trail=logging_service.audit_trail)
    except (OSError, ValueError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.check_config:
        policy = security_service.policy
        print("Configuration check passed")
        print(f"Trusted issuer pattern: {policy.trusted_issuer_pattern.pattern}")
        print(f"Subject pattern: {policy.subject_pattern.pattern}")
        print(f"Max path length: {policy.max_path_length}")
        print(f"Revocation checker: {config.revocation_checker}")
        return 0

    if not args.chain:
        parser.error("a certificate chain file is required")

    try:
        with open(args.chain, 'r') as f:
            chain_pem = f.read()
    except OSError as e:
        print(f"Cannot read {args.chain}: {e}", file=sys.stderr)
        return 2

    result = security_service.validate_client_chain(chain_pem, source=args.chain)

    if result.is_authenticated:
        print(f"AUTHENTICATED {result.certificate.subject_dn}")
        return 0

    print("REJECTED")
    if result.outcome is not None:
        for failure in result.outcome.failures:
            print(f"  [{failure.index}] {failure.reason.value}: {failure.message}")
        for reason in result.outcome.reasons:
            if reason not in {failure.reason for failure in result.outcome.failures}:
                print(f"  {reason.value}")
    elif result.error_message:
        print(f"  {result.error_message}")
    return 1


if __name__ == '__main__':
    sys.exit(main())
