import inspect


class CommandRegistrationError(Exception):
    """Raised when two handlers claim the same subcommand name."""

# subcommand name -> handler, help texts and argparse arguments
_COMMAND_SPECS = {}


def _argument(parameter, help_text=None):
    """Translate one handler parameter into argparse flags and options.

    Parameters without a default are positional (shown upper-case in usage),
    the others become ``--options``.  A boolean default turns into a switch.
    """
    kwargs = {}
    if parameter.default is inspect.Parameter.empty:
        flags = [parameter.name]
        kwargs["metavar"] = parameter.name.upper()
    else:
        flags = ["--" + parameter.name.replace("_", "-")]
        kwargs["default"] = parameter.default
        if isinstance(parameter.default, bool):
            kwargs["action"] = (
                "store_false" if parameter.default else "store_true"
            )
        elif parameter.default is None:
            kwargs["metavar"] = "DIR"
        else:
            kwargs["type"] = type(parameter.default)
    if help_text:
        kwargs["help"] = help_text.strip()
    return {"flags": flags, "kwargs": kwargs, "dest": parameter.name}


def register_command(help_text, description=None, help=None):
    """Register a command handler for the CLI dispatcher."""
    argument_help = help if help is not None else {}

    def decorator(func):
        name = func.__name__.replace("_", "-")
        if name in _COMMAND_SPECS:
            raise CommandRegistrationError(
                f"Command '{name}' already registered"
            )
        parameters = [
            parameter
            for parameter in inspect.signature(func).parameters.values()
            if parameter.kind
            not in (
                inspect.Parameter.VAR_POSITIONAL,
                inspect.Parameter.VAR_KEYWORD,
            )
        ]
        _COMMAND_SPECS[name] = {
            "handler": func,
            "help": help_text.strip(),
            "description": (description or help_text).strip(),
            "arguments": [
                _argument(p, argument_help.get(p.name)) for p in parameters
            ],
        }
        return func

    return decorator


def command_specs():
    """Registered commands, sorted by name."""
    return dict(sorted(_COMMAND_SPECS.items()))
