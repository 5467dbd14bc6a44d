"""CLI entry point for the provisioning-script test harness."""

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from script_test_action.aggregator import EXIT_FAILURES, EXIT_FATAL
from script_test_action.config import ConfigError, HarnessConfig, load_config
from script_test_action.discovery import DiscoveryError, discover_scripts
from script_test_action.interpreters.base import ScriptInterpreter
from script_test_action.interpreters.loading import (
    InterpreterNotFoundError,
    InterpreterUnavailableError,
    load_interpreter_manifest,
    registered_interpreter_keys,
)
from script_test_action.orchestrator import HarnessOrchestrator
from script_test_action.privilege import (
    FixedPrivilegeProbe,
    PrivilegeProbe,
    select_privilege_probe,
)
from script_test_action.prober import ExecutionProber
from script_test_action.report import (
    LOG_STEM,
    log_results_summary,
    timestamped_path,
    write_report,
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def find_repository_root(start: Path) -> Path:
    """Return the nearest ancestor holding a ``.git`` entry, else ``start``."""
    for candidate in (start, *start.parents):
        if (candidate / ".git").exists():
            return candidate
    return start


def resolve_output_dir(root: Path, config: HarnessConfig) -> Path:
    """Place a relative output directory under the search root."""
    if config.output_dir.is_absolute():
        return config.output_dir
    return root / config.output_dir


def load_interpreters(config: HarnessConfig) -> Mapping[str, ScriptInterpreter]:
    """Build the enabled interpreter backends.

    Explicitly requested backends must be available; otherwise backends whose
    executable cannot be found are skipped with a warning.

    Raises:
        InterpreterNotFoundError: If a requested backend is not registered
        InterpreterUnavailableError: If a requested backend's executable is missing
        ConfigError: If backend settings are invalid

    """
    log = logging.getLogger("script_test_action")
    explicit = config.interpreters is not None
    keys = config.interpreters if explicit else registered_interpreter_keys()

    interpreters: dict[str, ScriptInterpreter] = {}
    for key in keys or ():
        manifest = load_interpreter_manifest(key)
        try:
            interpreter = manifest.create(config.interpreter_settings.get(key))
        except ValidationError as exc:
            raise ConfigError(f"Invalid settings for interpreter '{key}': {exc}") from exc

        if not interpreter.is_available():
            if explicit:
                raise InterpreterUnavailableError(
                    f"Interpreter '{key}' requires '{interpreter.executable}', which was not found"
                )
            log.warning(
                "Skipping %s scripts: '%s' not found", key, interpreter.executable
            )
            continue
        interpreters[key] = interpreter

    return interpreters


def extension_map(interpreters: Mapping[str, ScriptInterpreter]) -> dict[str, str]:
    """Map each file suffix to the backend handling it."""
    extensions: dict[str, str] = {}
    for key, interpreter in interpreters.items():
        for extension in interpreter.extensions:
            suffix = extension.lower()
            if (owner := extensions.get(suffix)) is not None:
                raise ConfigError(
                    f"Extension '{suffix}' claimed by both '{owner}' and '{key}'"
                )
            extensions[suffix] = key
    return extensions


@contextmanager
def stop_on_signals(stop: asyncio.Event) -> Iterator[None]:
    """Set ``stop`` on SIGINT/SIGTERM while the block runs."""
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop, stop, sig)
        except (NotImplementedError, RuntimeError):
            # Windows event loops and non-main threads have no signal handlers
            continue
        installed.append(sig)
    try:
        yield
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def _request_stop(stop: asyncio.Event, sig: signal.Signals) -> None:
    logging.getLogger("script_test_action").warning(
        "Received %s, finishing running scripts and stopping", sig.name
    )
    stop.set()


async def run(
    config: HarnessConfig,
    root: Path,
    *,
    started_at: datetime | None = None,
    stop: asyncio.Event | None = None,
    privilege_probe: PrivilegeProbe | None = None,
) -> int:
    """Run the harness over ``root`` and return the process exit code."""
    log = logging.getLogger("script_test_action")
    trace = logging.getLogger("script_test_action.trace")
    started_at = started_at or datetime.now(UTC)
    stop = stop or asyncio.Event()

    try:
        interpreters = load_interpreters(config)
        units = discover_scripts(root, extension_map(interpreters), config.exclude)
    except (
        ConfigError,
        DiscoveryError,
        InterpreterNotFoundError,
        InterpreterUnavailableError,
    ) as exc:
        log.error("%s", exc)
        return EXIT_FATAL

    if privilege_probe is None:
        privilege_probe = (
            FixedPrivilegeProbe(config.privileged)
            if config.privileged is not None
            else select_privilege_probe()
        )

    orchestrator = HarnessOrchestrator(
        interpreters=interpreters,
        prober=ExecutionProber(timeout=config.timeout, extra_env=config.env),
        privilege_probe=privilege_probe,
        timeout=config.timeout,
        concurrency=config.concurrency,
        skip_execution=config.skip_execution,
        trace=trace,
    )

    with stop_on_signals(stop):
        report = await orchestrator.run(
            units, root=root.resolve(), started_at=started_at, stop=stop
        )

    log_results_summary(trace, report)

    try:
        write_report(report, resolve_output_dir(root, config))
    except OSError as exc:
        log.error("Cannot write report: %s", exc)
        return max(report.exit_code, EXIT_FAILURES)

    return report.exit_code


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="script-test",
        description="Syntax-check and dry-run provisioning scripts",
    )
    parser.add_argument(
        "root",
        nargs="?",
        type=Path,
        help="Directory to search (default: repository root)",
    )
    parser.add_argument(
        "--skip-execution",
        action="store_true",
        default=None,
        help="Syntax-only mode: never run any script",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Glob of paths to ignore (repeatable)",
    )
    parser.add_argument(
        "--interpreter",
        action="append",
        dest="interpreters",
        metavar="KEY",
        help="Only use this interpreter backend (repeatable)",
    )
    parser.add_argument("--timeout", type=float, help="Seconds allowed per script")
    parser.add_argument("--concurrency", type=int, help="Scripts processed at once")
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory for the report and log (default: test-results)",
    )
    parser.add_argument("--config", type=Path, help="YAML configuration file")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    return parser


def resolve_config(args: argparse.Namespace) -> HarnessConfig:
    """Combine the optional config file with command-line overrides."""
    config = load_config(args.config) if args.config else HarnessConfig()
    return config.with_overrides(
        skip_execution=args.skip_execution,
        exclude=[*config.exclude, *args.exclude] if args.exclude else None,
        interpreters=args.interpreters,
        timeout=args.timeout,
        concurrency=args.concurrency,
        output_dir=args.output_dir,
    )


def attach_log_file(output_dir: Path, started_at: datetime) -> Path | None:
    """Mirror all log output into a per-run file in the output directory."""
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        log_file = timestamped_path(output_dir, LOG_STEM, ".log", started_at)
        handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as exc:
        logging.getLogger("script_test_action").warning(
            "Cannot create log file in %s: %s", output_dir, exc
        )
        return None
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    return log_file


def main() -> None:
    """CLI entry point."""
    args = build_parser().parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    log = logging.getLogger("script_test_action")

    try:
        config = resolve_config(args)
    except ConfigError as exc:
        log.error("%s", exc)
        sys.exit(EXIT_FATAL)

    root = args.root or find_repository_root(Path.cwd())
    started_at = datetime.now(UTC)
    if root.is_dir() and (log_file := attach_log_file(resolve_output_dir(root, config), started_at)):
        log.info("Logging to %s", log_file)

    exit_code = asyncio.run(run(config, root, started_at=started_at))
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
