"""crate-api CLI: dump, render and diff the public API of a Rust package."""

import argparse
import sys
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path


def _emit(content: str, output_format: str) -> None:
    if output_format != "silent" and content:
        print(content)


def _load_side(rustdoc_path, manifest_path, api_path):
    """Build one side of a diff from a rustdoc dump or a saved API."""
    from .api import build_api, load_api

    if api_path is not None:
        return load_api(api_path.resolve())
    manifest = manifest_path.resolve() if manifest_path is not None else None
    return build_api(rustdoc_path.resolve(), manifest)


def main():
    """Main CLI entry point for crate-api commands."""
    # Get version for --version argument (handle PackageNotFoundError)
    try:
        crate_api_version = get_version("crate-api")
    except PackageNotFoundError:
        crate_api_version = "dev"

    parser = argparse.ArgumentParser(
        prog="crate-api",
        description="crate-api: public API listing and compatibility diffing for Rust packages"
    )
    parser.add_argument("--version", action="version", version=f"crate-api {crate_api_version}")
    # Common arguments
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only log errors."
    )
    parent_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log debug details to stderr."
    )
    parent_parser.add_argument(
        "--log-json",
        action="store_true",
        help="Write log lines as JSON."
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # dump-raw command
    dump_raw_parser = subparsers.add_parser(
        "dump-raw",
        help="Run cargo doc and print the raw rustdoc JSON",
        parents=[parent_parser]
    )
    dump_raw_parser.add_argument(
        "--manifest-path",
        type=Path,
        default=Path("Cargo.toml"),
        help="Path to Cargo.toml (defaults to ./Cargo.toml)"
    )
    dump_raw_parser.add_argument(
        "--deps",
        action="store_true",
        help="Document dependencies too"
    )
    dump_raw_parser.add_argument(
        "--toolchain",
        default="nightly",
        help="Toolchain able to emit rustdoc JSON (defaults to nightly)"
    )

    format_choices = ["md", "json", "silent"]

    # api command
    api_parser = subparsers.add_parser(
        "api",
        help="Render the public API of a rustdoc dump",
        parents=[parent_parser]
    )
    api_parser.add_argument(
        "--rustdoc",
        type=Path,
        required=True,
        help="Path to rustdoc JSON"
    )
    api_parser.add_argument(
        "--manifest",
        type=Path,
        default=None,
        help="Path to Cargo.toml or cargo-metadata package JSON"
    )
    api_parser.add_argument(
        "--format",
        choices=format_choices,
        default="md",
        help="Output format: md (markdown), json, silent"
    )

    # diff command
    diff_parser = subparsers.add_parser(
        "diff",
        help="Compare the public APIs of two package versions",
        parents=[parent_parser]
    )
    from_group = diff_parser.add_mutually_exclusive_group(required=True)
    from_group.add_argument(
        "--from-rustdoc",
        dest="from_rustdoc",
        type=Path,
        help="Path to rustdoc JSON of the old version"
    )
    from_group.add_argument(
        "--from-api",
        dest="from_api",
        type=Path,
        help="Path to API JSON (from `crate-api api --format json`) of the old version"
    )
    diff_parser.add_argument(
        "--from-manifest",
        dest="from_manifest",
        type=Path,
        default=None,
        help="Path to the old version's Cargo.toml or package JSON"
    )
    to_group = diff_parser.add_mutually_exclusive_group(required=True)
    to_group.add_argument(
        "--to-rustdoc",
        dest="to_rustdoc",
        type=Path,
        help="Path to rustdoc JSON of the new version"
    )
    to_group.add_argument(
        "--to-api",
        dest="to_api",
        type=Path,
        help="Path to API JSON of the new version"
    )
    diff_parser.add_argument(
        "--to-manifest",
        dest="to_manifest",
        type=Path,
        default=None,
        help="Path to the new version's Cargo.toml or package JSON"
    )
    diff_parser.add_argument(
        "--format",
        choices=format_choices,
        default="md",
        help="Output format: md (markdown), json, silent"
    )
    diff_parser.add_argument(
        "--fail-on-breaking",
        action="store_true",
        help="Exit with status 2 when a breaking change is found"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    from ._internal.logging import configure_logging
    from .kernel.errors import CrateApiError

    if args.verbose:
        level = "DEBUG"
    elif args.quiet:
        level = "ERROR"
    else:
        level = "WARNING"
    configure_logging(level=level, json_format=args.log_json)

    if args.command == "dump-raw":
        try:
            from ._internal.cargo_doc import CargoDocOptions, RustDocCommand

            options = CargoDocOptions(deps=args.deps, toolchain=args.toolchain)
            print(RustDocCommand(options).dump_raw(args.manifest_path))
        except CrateApiError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    elif args.command == "api":
        try:
            from .api import build_api
            from .report import render_api_markdown, render_json

            manifest = args.manifest.resolve() if args.manifest is not None else None
            api = build_api(args.rustdoc.resolve(), manifest)

            if args.format == "json":
                _emit(render_json(api), args.format)
            else:
                _emit(render_api_markdown(api), args.format)
        except CrateApiError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    elif args.command == "diff":
        try:
            from .api import diff
            from .report import render_diff_markdown, render_json

            before = _load_side(args.from_rustdoc, args.from_manifest, args.from_api)
            after = _load_side(args.to_rustdoc, args.to_manifest, args.to_api)
            result = diff(before, after)

            if args.format == "json":
                _emit(render_json(result), args.format)
            else:
                _emit(render_diff_markdown(before, after, result.diffs), args.format)
        except CrateApiError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

        if args.fail_on_breaking and result.breaking:
            sys.exit(2)


if __name__ == "__main__":
    main()
