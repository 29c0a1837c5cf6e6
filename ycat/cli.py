from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from streamkit import DefaultStageRecorder, Pipeline, Stage
from ycat.codec import Format, InputFile, format_from_string, read_files, write_to
from ycat.config import YcatConfig, load_config
from ycat.logging_utils import setup_logger
from ycat.stages import null_stream, to_array

EPILOG = """\
If no files are specified values are read from stdin.
Using "-" as a file path will read values from stdin.
Files without a format option will be parsed as YAML unless
they end in ".json".
"""

EXIT_ERROR = 2


class _InputAction(argparse.Action):
    """Append files to `namespace.inputs` in command line order."""

    def __init__(self, option_strings, dest, fmt: Format = Format.AUTO, **kwargs):
        self.fmt = fmt
        super().__init__(option_strings, dest, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        inputs = list(getattr(namespace, self.dest, None) or [])
        paths = list(values or [])
        if option_string is not None and not paths:
            # A bare -y/-j reads that format from stdin.
            paths = [""]
        inputs.extend(InputFile(str(path), self.fmt) for path in paths)
        setattr(namespace, self.dest, inputs)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ycat",
        description="command line YAML/JSON processor",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "inputs", nargs="*", action=_InputAction, default=None, metavar="FILE", help="Input files"
    )
    parser.add_argument(
        "-y", "--yaml", nargs="*", action=_InputAction, dest="inputs", fmt=Format.YAML,
        metavar="FILE", help="Read YAML values from file(s)",
    )
    parser.add_argument(
        "-j", "--json", nargs="*", action=_InputAction, dest="inputs", fmt=Format.JSON,
        metavar="FILE", help="Read JSON values from file(s)",
    )
    parser.add_argument("-n", "--null", action="store_true", help="Use null value input (no reading)")
    parser.add_argument(
        "-o", "--out", choices=("json", "j", "yaml", "y"), default=None, help="Set output format"
    )
    parser.add_argument(
        "--to-json",
        dest="out",
        action="store_const",
        const="json",
        help="Output JSON one value per line (same as -o json)",
    )
    parser.add_argument("-a", "--array", action="store_true", help="Merge values into an array")
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="Log more (-v info, -vv debug)"
    )
    return parser


def build_stages(args: argparse.Namespace, cfg: YcatConfig) -> list[Stage]:
    """Input stage, optional array merge, then stdout output."""

    producer_buffer = cfg.buffers.producer
    transform_buffer = cfg.buffers.transform

    if args.null:
        stages: list[Stage] = [null_stream(buffer=producer_buffer)]
    else:
        inputs = list(args.inputs or []) or [InputFile("-", Format.YAML)]
        stages = [read_files(*inputs, buffer=producer_buffer)]

    if args.array:
        stages.append(to_array(buffer=transform_buffer))

    out = format_from_string(args.out) if args.out else Format(cfg.output)
    stages.append(write_to(None, out, close=False, name="stdout"))
    return stages


def _log_level(verbose: int, cfg: YcatConfig) -> int:
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return min(logging.INFO, cfg.log_level_value)
    return cfg.log_level_value


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        raw_cfg, meta = load_config(args.config)
        cfg, warnings = YcatConfig.from_dict(raw_cfg)
    except (OSError, TypeError, ValueError) as exc:
        setup_logger(logging.WARNING)
        logging.getLogger("ycat").error("Invalid configuration: %s", exc)
        return EXIT_ERROR

    logger = setup_logger(_log_level(args.verbose, cfg))
    for warning in warnings:
        logger.warning(warning)
    logger.debug("Config: mode=%s paths=%s", meta.get("mode"), meta.get("paths"))

    pipeline = Pipeline.build(
        build_stages(args, cfg),
        recorder=DefaultStageRecorder(log=logger.getChild("pipeline")),
        name="ycat",
    )
    # The recorder logs each stage failure as it happens.
    errors = pipeline.wait()
    if errors:
        logger.debug("Finished with %d error(s)", len(errors))
        return EXIT_ERROR
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
