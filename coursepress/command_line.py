import argparse
import logging
import sys

# importing the command modules registers their subcommands
from . import build, release, watch  # noqa: F401
from .command_registry import command_specs
from .errors import BuildError

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="coursepress",
        description=(
            "Compile a Markdown course tree with Godot code includes into"
            " JSON artifacts"
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every compiled and written file",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    for name, spec in command_specs().items():
        subparser = subparsers.add_parser(
            name, help=spec["help"], description=spec["description"]
        )
        for argument in spec["arguments"]:
            kwargs = dict(argument["kwargs"])
            if argument["flags"][0].startswith("--"):
                kwargs["dest"] = argument["dest"]
            subparser.add_argument(*argument["flags"], **kwargs)
        subparser.set_defaults(handler=spec["handler"])
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if getattr(args, "handler", None) is None:
        parser.print_help()
        return 2
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    kwargs = {
        key: value
        for key, value in vars(args).items()
        if key not in ("command", "handler", "verbose")
    }
    try:
        args.handler(**kwargs)
    except BuildError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
