from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, TextIO

import yaml

from trainrunner import __version__
from trainrunner.config.loader import CLEAR, load_and_validate_config
from trainrunner.config.schemas import LoggingConfig, RunConfig
from trainrunner.errors import CheckpointError, ConfigurationError, ValidationError
from trainrunner.registry import DATA_MODULES, MODELS, RegistryError, initialize_registries
from trainrunner.tracking import MLflowTracker, NullTracker, Tracker
from trainrunner.training import (
    CheckpointStore,
    Orchestrator,
    RunState,
    ShutdownCoordinator,
    TorchTrainable,
    TrainingLoop,
)
from trainrunner.utils.logging import configure_logging
from trainrunner.utils.summary import format_run_summary
from trainrunner.utils.working_dir import prepare_working_dir, write_resolved_config

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
SIGNAL_EXIT_BASE = 128


def _configure_logger(
    config_logging: LoggingConfig,
    *,
    verbose: int,
    log_dir: Path | None = None,
    stream: TextIO | None = None,
) -> logging.Logger:
    level = LOG_LEVELS.get(config_logging.level, logging.INFO)
    if verbose > 0:
        level = logging.DEBUG

    file_name = config_logging.file_name
    if log_dir is not None:
        file_name = str(log_dir / file_name)

    return configure_logging(
        level=level,
        json_output=config_logging.json_output,
        log_to_file=config_logging.log_to_file and log_dir is not None,
        file_name=file_name,
        stream=stream,
    )


def _emit_config_error(error: ConfigurationError, *, json_output: bool) -> None:
    if json_output:
        payload = {
            "status": "error",
            "message": error.message,
            "details": error.details,
            "errors": error.errors,
        }
        print(json.dumps(payload, indent=2, default=str), file=sys.stderr)
        return

    print(f"Config error: {error.message}", file=sys.stderr)
    if error.details:
        print(error.details, file=sys.stderr)


def _emit_run_error(error: Exception, *, json_output: bool) -> None:
    path = getattr(error, "path", None)
    if json_output:
        payload: dict[str, Any] = {
            "status": "error",
            "type": type(error).__name__,
            "message": str(error),
        }
        if path is not None:
            payload["path"] = str(path)
        print(json.dumps(payload, indent=2), file=sys.stderr)
        return

    print(f"Run failed: {error}", file=sys.stderr)


def _create_tracker(config: RunConfig, logger: logging.Logger) -> Tracker:
    tracking_cfg = config.tracking
    if not tracking_cfg.enabled:
        return NullTracker()

    try:
        return MLflowTracker(
            tracking_uri=tracking_cfg.tracking_uri,
            experiment=tracking_cfg.experiment,
        )
    except RuntimeError as exc:
        logger.warning("MLflow unavailable; falling back to NullTracker: %s", exc)
        return NullTracker()


def _collect_overrides(args: argparse.Namespace) -> dict[str, dict[str, Any]]:
    schedule: dict[str, Any] = {
        "save_every_s": args.save_every_s,
        "validate_every_s": args.validate_every_s,
    }
    # A run-mode flag on the command line replaces the run mode from the file.
    if args.validate_only:
        schedule.update(validate_only=True, epochs=CLEAR)
    elif args.epochs is not None:
        schedule.update(epochs=args.epochs, validate_only=False)
    return {
        "output": {"working_dir": args.working_dir},
        "schedule": schedule,
    }


def build_parser() -> argparse.ArgumentParser:
    """Construct the argument parser for the trainrunner CLI."""
    parser = argparse.ArgumentParser(
        prog="trainrunner",
        description=(
            "Run resumable training jobs that checkpoint on a wall-clock schedule "
            "and save once more on shutdown."
        ),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
        help="Show the trainrunner version and exit.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (repeatable).",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        required=True,
        help="Path to the YAML configuration file.",
    )
    common.add_argument(
        "--json",
        action="store_true",
        help="Emit machine-readable JSON output.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="Train (resuming from the newest checkpoint) or validate a saved model.",
    )
    run_parser.add_argument(
        "--working-dir",
        default=None,
        help="Directory holding checkpoints and logs (overrides output.working_dir).",
    )
    mode = run_parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--epochs",
        type=int,
        default=None,
        help="Number of epochs to train in this process.",
    )
    mode.add_argument(
        "--validate-only",
        action="store_true",
        help="Restore the newest checkpoint, validate it and exit.",
    )
    run_parser.add_argument(
        "--save-every-s",
        type=float,
        default=None,
        help="Seconds between periodic checkpoints.",
    )
    run_parser.add_argument(
        "--validate-every-s",
        type=float,
        default=None,
        help="Seconds between periodic validations.",
    )
    subparsers.add_parser("check-config", parents=[common], help="Validate a config file.")
    subparsers.add_parser(
        "print-config",
        parents=[common],
        help="Print the resolved config with defaults.",
    )

    return parser


def _handle_check_config(args: argparse.Namespace) -> int:
    try:
        config, _, _ = load_and_validate_config(args.config)
    except ConfigurationError as exc:
        _emit_config_error(exc, json_output=args.json)
        return EXIT_CONFIG_ERROR
    _configure_logger(
        config.logging,
        verbose=args.verbose,
        stream=sys.stderr if args.json else None,
    )

    if args.json:
        print(json.dumps({"status": "ok"}, indent=2))
    else:
        print("Config validation succeeded.")
    return EXIT_OK


def _handle_print_config(args: argparse.Namespace) -> int:
    try:
        config, _, _ = load_and_validate_config(args.config)
    except ConfigurationError as exc:
        _emit_config_error(exc, json_output=args.json)
        return EXIT_CONFIG_ERROR
    _configure_logger(
        config.logging,
        verbose=args.verbose,
        stream=sys.stderr if args.json else None,
    )

    payload = config.model_dump()
    if args.json:
        print(json.dumps(payload, indent=2))
    else:
        print(yaml.safe_dump(payload, sort_keys=False), end="")
    return EXIT_OK


def _validate_saved_model(
    config: RunConfig, orchestrator: Orchestrator, working_dir: Path, *, json_output: bool
) -> str | dict[str, Any]:
    orchestrator.initialize(require_checkpoint=True)
    metrics = orchestrator.validate()
    return format_run_summary(
        config=config,
        working_dir=working_dir,
        json_output=json_output,
        validation_metrics=metrics,
        validated_checkpoint=orchestrator.resumed_from,
    )


def _train(
    config: RunConfig,
    orchestrator: Orchestrator,
    working_dir: Path,
    *,
    json_output: bool,
) -> tuple[str | dict[str, Any], int]:
    schedule = config.schedule
    assert schedule.epochs is not None

    orchestrator.initialize()
    run_state = RunState()
    coordinator = ShutdownCoordinator(
        run_state,
        orchestrator.save,
        poll_interval=schedule.shutdown_poll_s,
    )
    loop = TrainingLoop(
        orchestrator,
        run_state,
        save_every_s=schedule.save_every_s,
        validate_every_s=schedule.validate_every_s,
    )

    run_state.begin_training()
    coordinator.install()
    try:
        train_result = loop.run(schedule.epochs)
    finally:
        try:
            coordinator.shutdown()
        finally:
            coordinator.uninstall()

    summary = format_run_summary(
        config=config,
        working_dir=working_dir,
        json_output=json_output,
        train_result=train_result,
        final_checkpoint=coordinator.saved,
    )
    signum = coordinator.signal_received
    exit_code = SIGNAL_EXIT_BASE + signum if signum is not None else EXIT_OK
    return summary, exit_code


def _handle_run(args: argparse.Namespace) -> int:
    try:
        config, _, _ = load_and_validate_config(args.config, _collect_overrides(args))
        working_dir = prepare_working_dir(config.output.working_dir)
    except ConfigurationError as exc:
        _emit_config_error(exc, json_output=args.json)
        return EXIT_CONFIG_ERROR

    logger = _configure_logger(
        config.logging,
        verbose=args.verbose,
        log_dir=working_dir,
        stream=sys.stderr if args.json else None,
    )
    logger.info("Working directory: %s", working_dir)

    if config.output.save_config_copy:
        write_resolved_config(working_dir, config)

    initialize_registries()
    try:
        MODELS.get(config.model.name)
        DATA_MODULES.get(config.data.name)
    except RegistryError as exc:
        _emit_config_error(ConfigurationError(str(exc)), json_output=args.json)
        return EXIT_CONFIG_ERROR

    store = CheckpointStore(config.checkpoint.prefix, config.checkpoint.suffix)
    tracker = _create_tracker(config, logger)
    exit_code = EXIT_OK
    try:
        tracker.start_run(config.tracking.run_name or config.run.name)
        tracker.log_params(config.model_dump())
        orchestrator = Orchestrator(
            lambda: TorchTrainable(config),
            store,
            working_dir,
            tracker=tracker,
        )

        try:
            if config.schedule.validate_only:
                summary = _validate_saved_model(
                    config, orchestrator, working_dir, json_output=args.json
                )
            else:
                summary, exit_code = _train(
                    config, orchestrator, working_dir, json_output=args.json
                )
        except (CheckpointError, ValidationError) as exc:
            logger.error("%s", exc)
            _emit_run_error(exc, json_output=args.json)
            return EXIT_FAILURE
        except Exception as exc:
            logger.exception("Run failed")
            _emit_run_error(exc, json_output=args.json)
            return EXIT_FAILURE

        if args.json:
            print(json.dumps(summary, indent=2))
        else:
            print(summary)
    finally:
        tracker.end_run()

    return exit_code


def main(argv: Sequence[str] | None = None) -> int:
    """Entrypoint for ``python -m trainrunner``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "check-config":
        return _handle_check_config(args)
    if args.command == "print-config":
        return _handle_print_config(args)
    if args.command == "run":
        return _handle_run(args)

    print(f"Unknown command: {args.command}", file=sys.stderr)
    return EXIT_FAILURE
