"""
cspolicy CLI
"""
import argparse
import sys

import structlog

from cspolicy.config.loader import CSPSettings, get_settings
from cspolicy.config.presets import build_policy, load_presets
from cspolicy.errors import PolicyError, PresetError
from cspolicy.logging_config import setup_logging
from cspolicy.policy import CompiledPolicy


def _compile(args) -> int:
    settings = get_settings()
    path = args.file or settings.policies_file
    try:
        presets = load_presets(path)
    except PresetError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    names = args.names or list(presets)
    if not names:
        print(f"error: no presets found in {path}", file=sys.stderr)
        return 1

    header = CompiledPolicy.header_name(args.report_only)
    status = 0
    for name in names:
        try:
            compiled = build_policy(name, presets, deterministic_order=args.sorted).compile()
        except (PresetError, PolicyError) as exc:
            print(f"{name}: error: {exc}", file=sys.stderr)
            status = 1
            continue
        prefix = f"{name}: " if len(names) > 1 else ""
        print(f"{prefix}{header}: {compiled}")
    return status


def _serve(args) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "cspolicy.main:app",
        host=args.host or settings.listen_host,
        port=args.port or settings.listen_port,
        log_config=None,
    )
    return 0


def main(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Build, validate and serve Content-Security-Policy headers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print the header for every preset
  python -m cspolicy compile

  # Compile selected presets from another file, directives sorted by name
  python -m cspolicy compile base images --file policies.yaml --sorted

  # Run the demo server
  python -m cspolicy serve --port 8000
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    compile_parser = subparsers.add_parser('compile', help='Compile policy presets into header values')
    compile_parser.add_argument('names', nargs='*', help='Preset names (default: all)')
    compile_parser.add_argument('--file', help='Preset YAML file (default: CSP_POLICIES_FILE)')
    compile_parser.add_argument('--report-only', action='store_true', help='Print the report-only header name')
    compile_parser.add_argument('--sorted', action='store_true', help='Sort directives by name')

    serve_parser = subparsers.add_parser('serve', help='Run the demo server')
    serve_parser.add_argument('--host', help='Bind address (default: CSP_LISTEN_HOST)')
    serve_parser.add_argument('--port', type=int, help='Bind port (default: CSP_LISTEN_PORT)')

    args = parser.parse_args(argv)

    # Configure logging before get_settings() logs the loaded config
    settings = CSPSettings()
    setup_logging(
        log_level=settings.log_level,
        json_format=settings.log_json,
        stream=sys.stderr,
        component="cli",
    )
    structlog.contextvars.bind_contextvars(command=args.command)

    if args.command == 'compile':
        return _compile(args)
    if args.command == 'serve':
        return _serve(args)
    parser.print_help()
    return 1


if __name__ == '__main__':
    sys.exit(main())
