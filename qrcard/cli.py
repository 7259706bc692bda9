"""qrcard CLI: command-line front-end for the generation pipeline and card codec."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from qrcard.logging import audit, get_logger, setup_logging

log = get_logger("cli")


def _parse_record(s: str) -> tuple[str, str]:
    """Parse a ``KEY=VALUE`` argument."""
    key, sep, value = s.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {s!r}")
    return key, value


def _load_records(args):
    from qrcard.records import Record, RecordModel

    if args.records_file:
        model = RecordModel.from_text(Path(args.records_file).read_text(encoding="utf-8"))
    elif args.record:
        model = RecordModel.from_pairs(args.record)
    else:
        model = RecordModel([Record("", args.text or "")])
    return model.records


def _add_input_args(p):
    p.add_argument("text", nargs="?", default=None, help="Plain text to encode")
    p.add_argument("-r", "--record", action="append", type=_parse_record, default=[],
                   metavar="KEY=VALUE", help="Structured record (repeatable, order kept)")
    p.add_argument("--records-file", default=None, help="File with one 'key: value' per line")
    p.add_argument("--base-url", default=None, help="Card landing page URL")


def cmd_generate(args):
    """Generate a QR code or barcode through the generation pipeline."""
    from qrcard.modes import CARD_BASE_URL
    from qrcard.orchestrator import GenerationOrchestrator, InputSnapshot, State
    from qrcard.share import download, file_name_for

    snapshot = InputSnapshot.of(
        _load_records(args),
        mode=args.mode,
        size=args.size,
        card_mode=args.card,
        show_label=args.show_label or bool(args.label),
        label=args.label or "",
        base_url=args.base_url or CARD_BASE_URL,
    )

    async def run():
        orchestrator = GenerationOrchestrator()
        orchestrator.on_inputs_changed(snapshot)
        return orchestrator, await orchestrator.settle()

    orchestrator, view = asyncio.run(run())

    if view.state is State.IDLE:
        print("Nothing to encode: input is empty.")
        sys.exit(1)
    if view.state is State.FAILED:
        print(view.error, file=sys.stderr)
        sys.exit(2)

    output = Path(args.output) if args.output else Path("output") / file_name_for(args.mode)
    if download(view.image, output) is None:
        print(f"Could not write {output}", file=sys.stderr)
        sys.exit(1)
    print(f"Generated: {output} ({view.image.size[0]}x{view.image.size[1]}, size={orchestrator.size})")
    if args.card:
        print(f"Payload:   {view.payload}")


def cmd_token(args):
    """Print the card token and card URL for a record list."""
    from qrcard.modes import CARD_BASE_URL
    from qrcard.projector import filter_non_empty
    from qrcard.token import card_url, encode_token

    records = filter_non_empty(_load_records(args))
    token = encode_token(records)
    print(f"Records: {len(records)}")
    print(f"Token:   {token} ({len(token)} chars)")
    print(f"URL:     {card_url(args.base_url or CARD_BASE_URL, token)}")


def cmd_decode(args):
    """Decode a card token (or a URL carrying one) and print the card."""
    from urllib.parse import parse_qs, urlsplit

    from qrcard.card_view import render_card
    from qrcard.errors import TokenDecodeError
    from qrcard.token import TOKEN_PARAM, decode_token_strict

    token = args.token
    if "://" in token or "?" in token:
        values = parse_qs(urlsplit(token).query, keep_blank_values=True).get(TOKEN_PARAM)
        if not values:
            print("No card token in URL.")
            sys.exit(1)
        token = values[0]

    try:
        records = decode_token_strict(token)
    except TokenDecodeError as e:
        print(f"Malformed token: {e}", file=sys.stderr)
        sys.exit(2)

    layout = render_card(records)
    if args.json:
        print(json.dumps(layout.to_dict(), ensure_ascii=False, indent=2))
        return
    print(layout.title)
    print("-" * max(len(layout.title), 8))
    for row in layout.rows:
        print("  |  ".join(f"{f.label}: {f.value}" if f.label else f.value for f in row))
    if layout.contact:
        print(f"{layout.contact.label}: {layout.contact.value} <{layout.contact.href}>")


def cmd_verify(args):
    """Scan a generated image and check its payload."""
    from PIL import Image

    from qrcard.verify import verify

    img = Image.open(args.image)
    results = verify(img, expected_data=args.expected, mode=args.mode)

    all_pass = True
    for r in results:
        status = "PASS" if r.success else "FAIL"
        if not r.success:
            all_pass = False
        print(f"  [{r.decoder:12s}] {status} | {r.decode_time_ms:6.1f}ms | {r.decoded_data or r.error}")

    sys.exit(0 if all_pass else 1)


def cmd_serve(args):
    """Start the card landing page server."""
    from qrcard.web import create_card_app

    app = create_card_app()
    print(f"Starting card server on http://{args.host}:{args.port}")
    app.run(host=args.host, port=args.port, debug=args.debug)


def main(argv=None):
    parser = argparse.ArgumentParser(prog="qrcard", description="QR codes, barcodes and self-contained info cards")

    # Global logging flags
    parser.add_argument("-V", "--verbose", action="store_true", help="Enable DEBUG-level logging")
    parser.add_argument("--log-file", default=None, help="Write JSON logs to file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- generate ---
    p_gen = subparsers.add_parser("generate", help="Generate a QR code or barcode")
    _add_input_args(p_gen)
    p_gen.add_argument("-o", "--output", default=None, help="Output PNG path")
    p_gen.add_argument("-m", "--mode", default="qr", choices=["qr", "barcode"], help="Code type")
    p_gen.add_argument("-s", "--size", default="260", help="Size in px (clamped to 140-800)")
    p_gen.add_argument("--card", action="store_true", help="Embed records as a card token URL (QR only)")
    p_gen.add_argument("--show-label", action="store_true", help="Print text under the barcode")
    p_gen.add_argument("--label", default=None, help="Custom barcode label (max 12 chars)")

    # --- token ---
    p_tok = subparsers.add_parser("token", help="Print the card token and URL for records")
    _add_input_args(p_tok)

    # --- decode ---
    p_dec = subparsers.add_parser("decode", help="Decode a card token or card URL")
    p_dec.add_argument("token", help="Token or URL with ?d=<token>")
    p_dec.add_argument("--json", action="store_true", help="Print the card layout as JSON")

    # --- verify ---
    p_ver = subparsers.add_parser("verify", help="Scan a generated image")
    p_ver.add_argument("image", help="Path to QR code or barcode image")
    p_ver.add_argument("--expected", default=None, help="Expected decoded data (fails if mismatch)")
    p_ver.add_argument("-m", "--mode", default="qr", choices=["qr", "barcode"])

    # --- serve ---
    p_serve = subparsers.add_parser("serve", help="Start the card landing page server")
    p_serve.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    p_serve.add_argument("--port", type=int, default=8080, help="Port to listen on")
    p_serve.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args(argv)

    # Setup logging before any command runs
    level = "DEBUG" if args.verbose else "INFO"
    setup_logging(level=level, log_file=args.log_file)
    audit("cli.start", logger=log, command=args.command, verbose=args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    commands = {
        "generate": cmd_generate,
        "token": cmd_token,
        "decode": cmd_decode,
        "verify": cmd_verify,
        "serve": cmd_serve,
    }
    commands[args.command](args)
    audit("cli.done", logger=log, command=args.command)


if __name__ == "__main__":
    main()
