"""
Command-line interface for ObbyScript (obby).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from dataclasses import asdict
from pathlib import Path

from .config import config_test, load_config
from .errors import ObbyScriptError
from .events import EventKind, parse_event_kind
from .host.memory import InMemoryHost
from .parser import parse_source
from .runtime.interpreter import Interpreter, load_script_file, read_script
from .serialization import render_script, script_to_dict
from .version import __version__


def build_cli_parser() -> argparse.ArgumentParser:
    cli = argparse.ArgumentParser(prog="obby", description="ObbyScript CLI")
    cli.add_argument(
        "--version",
        action="version",
        version=f"ObbyScript {__version__} (Python {sys.version.split()[0]})",
    )
    cli.add_argument("-v", "--verbose", action="store_true", help="Log interpreter diagnostics to stderr")
    sub = cli.add_subparsers(dest="command", required=True)
    commands: list[str] = []

    def register(name: str, **kwargs):
        commands.append(name)
        return sub.add_parser(name, **kwargs)

    parse_cmd = register("parse", help="Parse a script and print its rule tree as JSON")
    parse_cmd.add_argument("file", type=Path)

    fmt_cmd = register("fmt", help="Re-render a script in canonical layout")
    fmt_cmd.add_argument("file", type=Path)
    fmt_cmd.add_argument("--check", action="store_true", help="Exit 1 if the file is not already formatted")

    check_cmd = register("check", help="Check that scripts are readable and parse")
    check_cmd.add_argument("files", nargs="+", type=Path)

    run_cmd = register("run", help="Load scripts into an in-memory host and dispatch one event")
    run_cmd.add_argument("files", nargs="+", type=Path)
    run_cmd.add_argument("--event", required=True, help="Event kind, e.g. JOIN, or COMMAND for command rules")
    run_cmd.add_argument("--client", help="Client nick to create and use as event context")
    run_cmd.add_argument("--channel", help="Channel name to create and use as event context")
    run_cmd.add_argument("--extra", help="Event payload text (message, reason, mode string)")
    run_cmd.add_argument("--command-name", dest="command_name", help="Command to run when --event is COMMAND")
    run_cmd.add_argument("--param", dest="params", action="append", default=[], help="Command parameter (repeatable)")

    serve_cmd = register("serve", help="Start the FastAPI inspection server")
    serve_cmd.add_argument("--host", default="127.0.0.1")
    serve_cmd.add_argument("--port", type=int, default=8000)
    serve_cmd.add_argument("--dry-run", action="store_true", help="Build app but do not start server")

    watch_cmd = register("watch", help="Load scripts and reload them whenever they change")
    watch_cmd.add_argument("files", nargs="+", type=Path)
    watch_cmd.add_argument("--debounce", type=float, default=0.5)

    cli._obby_commands = commands  # type: ignore[attr-defined]
    return cli


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2))


def _parse_file(path: Path, source: str | None = None):
    if source is None:
        source = read_script(path)
    return parse_source(source, filename=str(path), max_depth=load_config().max_depth)


def _run_event(args) -> dict:
    host = InMemoryHost()
    client = host.add_client(args.client) if args.client else None
    channel = host.add_channel(args.channel) if args.channel else None
    if client is not None and channel is not None:
        host.join(client.name, channel.name)
    interpreter = Interpreter(host, config=load_config())
    try:
        result = interpreter.load_scripts([str(p) for p in args.files])
        kind = parse_event_kind(args.event)
        if kind is None:
            raise SystemExit(f"Unknown event '{args.event}'")
        payload: dict = {"loaded": result.loaded, "errors": result.errors}
        if kind == EventKind.COMMAND:
            if not args.command_name:
                raise SystemExit("--command-name is required with --event COMMAND")
            payload["handled"] = interpreter.run_command(args.command_name, client, args.params)
        elif kind == EventKind.CAN_JOIN:
            if client is None or channel is None:
                raise SystemExit("CAN_JOIN needs --client and --channel")
            payload["decision"] = asdict(interpreter.can_join(client, channel))
        else:
            payload["rules_run"] = interpreter.dispatch_event(kind, client=client, channel=channel, extra=args.extra)
        payload["replayed"] = interpreter.tick()
        payload["commands"] = [asdict(cmd) for cmd in host.sent]
        return payload
    finally:
        interpreter.close()


def main(argv: list[str] | None = None) -> None:
    cli = build_cli_parser()
    args = cli.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "parse":
        try:
            script = _parse_file(args.file)
        except ObbyScriptError as err:
            raise SystemExit(str(err)) from err
        _print_json(script_to_dict(script))
        return

    if args.command == "fmt":
        try:
            source = read_script(args.file)
            formatted = render_script(_parse_file(args.file, source))
        except ObbyScriptError as err:
            raise SystemExit(str(err)) from err
        if args.check:
            if formatted != source:
                print(f"{args.file}: would reformat")
                raise SystemExit(1)
            return
        sys.stdout.write(formatted)
        return

    if args.command == "check":
        config = load_config()
        failed = False
        for path in args.files:
            problems = config_test([str(path)])
            if problems:
                print(problems[0])
                failed = True
                continue
            try:
                script = load_script_file(path, max_depth=config.max_depth)
            except ObbyScriptError as err:
                print(str(err))
                failed = True
                continue
            print(f"{path}: ok ({len(script.rules)} rules, {len(script.functions)} functions)")
        if failed:
            raise SystemExit(1)
        return

    if args.command == "run":
        _print_json(_run_event(args))
        return

    if args.command == "serve":
        from .server import create_app

        app = create_app()
        if args.dry_run:
            _print_json({"status": "ready", "host": args.host, "port": args.port})
            return
        import uvicorn

        uvicorn.run(app, host=args.host, port=args.port)
        return

    if args.command == "watch":
        from .watcher import ScriptWatcher

        interpreter = Interpreter(InMemoryHost(), config=load_config())
        paths = [str(p) for p in args.files]
        result = interpreter.load_scripts(paths)
        for error in result.errors.values():
            print(error)
        watcher = ScriptWatcher(interpreter, paths, debounce_seconds=args.debounce)
        watcher.start()
        print(f"Watching {len(paths)} file(s); press Ctrl+C to stop.")
        try:
            while True:
                time.sleep(interpreter.config.tick_ms / 1000.0)
                interpreter.tick()
        except KeyboardInterrupt:
            pass
        finally:
            watcher.stop()
            interpreter.close()
        return


if __name__ == "__main__":  # pragma: no cover
    main()
