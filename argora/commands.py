"""
Argora commands: definition, routing and execution.

Scope
- Command: a named node of the command tree holding an argument schema, a run
  callback, optional setup/cleanup hooks, help metadata and child commands.
- LazyCommand / lazy(): a child whose full definition is loaded only when it is
  executed; a metadata-only stub answers help and completion meanwhile.
- resolve() / list_names(): the router primitives (list_names never loads).
- invoke() / run_main(): parse, route, validate and execute a command line,
  surfacing every user input error as a rendered fault and an exit code.

Lifecycle of one invocation
1. parse the words of the current level (argora.parser.parse_args)
2. --help / --help-all / --version short-circuit
3. route into a subcommand (loading it if lazy) and repeat from 1
4. report unknown switches according to the schema's unknown-keys mode
5. validate the raw values with pydantic (argora.validation.validate)
6. setup(args) -> run(args) -> cleanup(args, error), cleanup always runs
   (a CommandException raised by a hook is rendered as is, any other
   exception is reported as an ExecutionError)

Quick example:
    >>> class Args(BaseModel):
    ...     name: Annotated[str, arg(positional=True)]
    >>> @command(name="greet")
    ... def greet(args: Args):
    ...     logger.log(f"hello, {args.name}")
    >>> invoke(greet, ["world"]).exit_code
    0
"""
import asyncio
import contextlib
import functools
import importlib
import inspect
import shlex
import sys
from collections import namedtuple
from collections.abc import Iterable, Mapping

from rich.traceback import Traceback

from .faults import *
from .help import render_help
from .logger import CollectedLogs, colors_enabled, logger
from .parser import leading_word, parse_args
from .schemas import OneOf, AllOf, all_of, branches, is_model
from .utils import *
from .validation import validate


class Context(namedtuple("Context", ("path", "root", "version", "global_args"))):
    """
    Routing context threaded from the root down to the executing command.

    - path: names of the subcommands walked so far (empty at the root).
    - root: name of the root command.
    - version: version shown by --version and in subcommand help headers.
    - global_args: schema merged into every level's arguments.
    """
    __slots__ = ()

    @property
    def route(self):
        return " ".join((self.root, *self.path))


class RunResult(namedtuple("RunResult", ("success", "result", "error", "exit_code", "logs"))):
    """
    Outcome of invoke(): the run callback's return value on success, the
    exception otherwise, the exit code and the captured logs.
    """
    __slots__ = ()


def _schema_like(annotation):
    if annotation is None or isinstance(annotation, OneOf | AllOf) or is_model(annotation):
        return True
    members = branches(annotation)
    return bool(members) and all(map(_schema_like, members))


def _infer_args(run):
    """
    Argument schema declared by the annotation of the run callback's first parameter.
    """
    try:
        parameters = list(inspect.signature(run, eval_str=True).parameters.values())
    except (TypeError, ValueError, NameError):
        return None
    if not parameters or parameters[0].annotation is inspect.Parameter.empty:
        return None
    return parameters[0].annotation if _schema_like(parameters[0].annotation) else None


def _unset(object):
    return Unset if object is None else object


def _process_name(cls, name):
    if not isinstance(name, str):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    elif not (name := name.strip()):
        raise ValueError(f"{cls.__typename__} 'name' cannot be empty")
    elif name.startswith("-") or any(character.isspace() for character in name):
        raise ValueError(f"{cls.__typename__} 'name' cannot start with '-' or contain whitespace")
    return name


def _process_callbacks(cls, metadata):
    for name in ("run", "setup", "cleanup"):
        if (object := metadata[name]) is not Unset and not callable(object):
            raise TypeError(f"{cls.__typename__} {name!r} must be callable")
        metadata[name] = coalesce(object)


def _process_strings(cls, metadata):
    for name in ("descr", "version"):
        if not isinstance(object := metadata[name], str | Unset):
            raise TypeError(f"{cls.__typename__} {name!r} must be a string")
        elif isinstance(object, str) and not (object := object.strip()):
            raise ValueError(f"{cls.__typename__} {name!r} cannot be empty")
        metadata[name] = coalesce(object)


def _process_iterables(cls, metadata):
    for name in ("notes", "examples"):
        if isinstance(object := metadata[name], str) or not isinstance(object, Iterable):
            raise TypeError(f"{cls.__typename__} {name!r} must be an iterable of strings")
        sanitized = []
        for item in object:
            if not isinstance(item, str):
                raise TypeError(f"{cls.__typename__} {name!r} must be an iterable of strings")
            elif not (item := item.strip()):
                raise ValueError(f"{cls.__typename__} {name!r} cannot contain empty strings")
            sanitized.append(item)
        metadata[name] = tuple(sanitized)


def _process_children(cls, children):
    if isinstance(children, Mapping):
        pairs = list(children.items())
    elif isinstance(children, Iterable) and not isinstance(children, str):
        pairs = [(getattr(child, "name", None), child) for child in children]
    else:
        raise TypeError(f"{cls.__typename__} 'children' must be a mapping or an iterable of commands")
    processed = {}
    for name, child in pairs:
        if not isinstance(child, Command | LazyCommand):
            raise TypeError(f"{cls.__typename__} 'children' must only contain commands")
        name = _process_name(cls, name)
        if name in processed:
            raise ValueError(f"{cls.__typename__} subcommand name {name!r} is already in use")
        processed[name] = child
    return processed


class Command(metaclass=IntrospectableType):
    """
    A node of the command tree.

    Parameters
    - name: the word routing to this command (the program name at the root).
    - args: argument schema (BaseModel subclass, union, one_of/all_of), or None.
    - descr: one-line description shown in help and completion.
    - children: subcommands, as a mapping of names or an iterable of commands.
    - run: callable receiving the validated arguments; its return value becomes
      RunResult.result (coroutines are awaited).
    - setup / cleanup: lifecycle hooks, see also the @cmd.setup / @cmd.cleanup
      decorators. cleanup receives (args, error) and always runs.
    - notes, examples: help bullets.
    - version: shown by --version (the root's version applies to the whole tree).

    Names starting with "__" are hidden from help and completion listings.
    """
    __introspectable__ = (
        "name",
        "args",
        "descr",
        "children",
        "run",
        "notes",
        "examples",
        "version",
    )
    __displayable__ = ("name", "descr", "version", "children")

    def __init__(
            self,
            name,
            /,
            args=None,
            descr=Unset,
            children=(),
            run=Unset,
            setup=Unset,
            cleanup=Unset,
            notes=(),
            examples=(),
            version=Unset,
    ):
        cls = type(self)
        metadata = {
            "name": _process_name(cls, name),
            "args": args,
            "descr": descr,
            "children": _process_children(cls, children),
            "run": run,
            "setup": setup,
            "cleanup": cleanup,
            "notes": notes,
            "examples": examples,
            "version": version,
        }
        _process_callbacks(cls, metadata)
        _process_strings(cls, metadata)
        _process_iterables(cls, metadata)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)

    @property
    def hidden(self):
        return self._name.startswith("__")

    def setup(self, callback, /):
        """
        Register the setup hook (once). Usable as a decorator: @cmd.setup
        """
        if not callable(callback):
            raise TypeError(f"{type(self).__typename__} setup must be callable")
        if self._setup is not None:
            raise TypeError(f"{type(self).__typename__} setup cannot be overridden")
        self._setup = callback
        return callback

    def cleanup(self, callback, /):
        """
        Register the cleanup hook (once). Usable as a decorator: @cmd.cleanup
        """
        if not callable(callback):
            raise TypeError(f"{type(self).__typename__} cleanup must be callable")
        if self._cleanup is not None:
            raise TypeError(f"{type(self).__typename__} cleanup cannot be overridden")
        self._cleanup = callback
        return callback

    def mount(self, child, /, name=Unset):
        """
        Attach `child` (a Command or LazyCommand) under `name` (its own name by default).
        """
        if not isinstance(child, Command | LazyCommand):
            raise TypeError(f"{type(self).__typename__} child must be a command")
        name = _process_name(type(self), coalesce(name, child.name))
        if self._children.setdefault(name, child) is not child:
            raise ValueError(f"{type(self).__typename__} subcommand name {name!r} is already in use")
        return child

    def command(self, source=Unset, /, **options):
        """
        Create a subcommand and mount it here; same forms as the module-level command().

            @app.command(name="build")
            def build(args: BuildArgs): ...
        """
        if source is not Unset:
            return self.mount(command(source, **options))

        @rename("command")
        def wrapper(source, /):
            return self.mount(command(source, **options))
        return wrapper

    def __replace__(self, **changes):
        values = {
            "args": self._args,
            "descr": _unset(self._descr),
            "children": dict(self._children),
            "run": _unset(self._run),
            "setup": _unset(self._setup),
            "cleanup": _unset(self._cleanup),
            "notes": self._notes,
            "examples": self._examples,
            "version": _unset(self._version),
        }
        values.update(changes)
        return type(self)(values.pop("name", self._name), **values)


class LazyCommand(metaclass=IntrospectableType):
    """
    A subcommand loaded on first execution.

    - stub: metadata-only Command (name, descr, args, children) used by help and
      completion without loading anything.
    - loader: a callable returning the command (coroutine functions are run to
      completion), or an import path "package.module:attribute".
    """
    __introspectable__ = ("stub", "loader")
    __displayable__ = ("stub", "loader", "loaded")

    def __init__(self, stub, loader, /):
        if not isinstance(stub, Command):
            raise TypeError(f"{type(self).__typename__} 'stub' must be a command")
        if isinstance(loader, str):
            module, separator, attribute = loader.partition(":")
            if not separator or not module.strip() or not attribute.strip():
                raise ValueError(f"{type(self).__typename__} 'loader' import path must look like 'module:attribute'")
        elif not callable(loader):
            raise TypeError(f"{type(self).__typename__} 'loader' must be callable or an import path")
        self._stub = stub
        self._loader = loader
        self._loaded = None

    name = property(lambda self: self._stub.name)
    args = property(lambda self: self._stub.args)
    descr = property(lambda self: self._stub.descr)
    children = property(lambda self: self._stub.children)
    notes = property(lambda self: self._stub.notes)
    examples = property(lambda self: self._stub.examples)
    version = property(lambda self: self._stub.version)
    hidden = property(lambda self: self._stub.hidden)

    @property
    def loaded(self):
        return self._loaded is not None

    def load(self):
        """
        Load (once) and return the full command.
        """
        if self._loaded is not None:
            return self._loaded
        if isinstance(self._loader, str):
            module, _, attribute = self._loader.partition(":")
            loaded = functools.reduce(getattr, attribute.strip().split("."), importlib.import_module(module.strip()))
        else:
            loaded = _settle(self._loader())
        if isinstance(loaded, LazyCommand):
            loaded = loaded.load()
        if not isinstance(loaded, Command):
            raise TypeError(f"{type(self).__typename__} loader for {self.name!r} did not produce a command")
        self._loaded = loaded
        return loaded


def lazy(stub, loader, /):
    """
    Declare a lazily loaded subcommand.

        app.mount(lazy(Command("deploy", descr="Deploy the site"), "mysite.deploy:command"))
    """
    return LazyCommand(stub, loader)


def command(source=Unset, /, **options):
    """
    Create a Command from a run callable, or return a decorator doing so.

    Invocation modes
    - Direct: cmd = command(func, name="x", ...)
    - Decorator: @command(name="x", ...) above a function.

    Defaults
    - name: the function name in kebab case.
    - descr: the function docstring.
    - args: the annotation of the function's first parameter, when it is a schema.
    """
    @rename("command")
    def wrapper(source, /):
        if not callable(source):
            raise TypeError("@command() must be applied to a callable")
        metadata = dict(options)
        metadata.setdefault("args", _infer_args(source))
        if not isinstance(metadata.get("descr", Unset), str) and (docstring := inspect.getdoc(source)):
            metadata["descr"] = docstring.splitlines()[0]
        name = metadata.pop("name", Unset)
        return Command(coalesce(name, kebab(getattr(source, "__name__", "command"))), run=source, **metadata)

    return wrapper(source) if source is not Unset else wrapper


def resolve(command, name, /):
    """
    Return the child routed by `name` (loading it when lazy), or None.
    """
    child = command.children.get(name)
    if isinstance(child, LazyCommand):
        return child.load()
    return child


def list_names(command, /, visible=True):
    """
    Child names in declaration order; hidden ones ("__" prefix) are skipped
    unless visible=False. Never loads lazy children.
    """
    return [name for name in command.children if not (visible and name.startswith("__"))]


def _looping():
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def _settle(value):
    """
    Await `value` when it is awaitable, otherwise return it unchanged.

    asyncio.run() cannot nest: inside a running event loop awaitables are
    rejected with TypeError.
    """
    if not inspect.isawaitable(value):
        return value
    if _looping():
        if inspect.iscoroutine(value):
            value.close()
        raise TypeError("invoke() cannot await command callbacks inside a running event loop")

    async def wait():
        return await value
    return asyncio.run(wait())


@functools.cache
def _ordinal(number):
    """
    Return a human-friendly ordinal label for a 1-based position.
    """
    try:
        return (
            "first", "second", "third", "fourth", "fifth", "sixth", "seventh", "eighth", "ninth", "tenth"
        )[number - 1]
    except IndexError:
        pass
    if 10 < number % 100 < 20:
        return f"{number}th"
    return f'{number}%s' % {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


def _alternatives(names):
    quoted = [f"'{name}'" for name in names]
    if len(quoted) < 2:
        return "".join(quoted)
    return f"{", ".join(quoted[:-1])} or {quoted[-1]}"


def _tokens(prompt):
    if prompt is Unset:
        return sys.argv[1:]
    if isinstance(prompt, str):
        return shlex.split(prompt)
    if not isinstance(prompt, Iterable):
        raise TypeError("invoke() prompt must be a string or an iterable of strings")
    tokens = []
    for item in prompt:
        if not isinstance(item, str):
            raise TypeError("invoke() prompt must be a string or an iterable of strings")
        tokens.append(item)
    return tokens


class _Runner:
    """
    One invocation: settings shared by every level of the command tree.
    """

    def __init__(self, settings):
        self.settings = settings

    def trigger(self, fault, context):
        trigger(
            fault,
            prog=context.route,
            shell=True,
            deferred=True,
            fancy=self.settings["fancy"],
            colorful=self.settings["colorful"],
        )

    def help(self, command, context, show_all=False):
        logger.log(render_help(
            command,
            context,
            show_all=show_all,
            colorful=self.settings["colorful"],
            fancy=self.settings["fancy"],
        ))

    def failure(self, error):
        return RunResult(False, None, error, 1, None)

    def unknown_subcommand(self, command, word, context, index=None):
        suggestions = similar(word, list_names(command))
        where = f" at {_ordinal(index + 1)} position" if index is not None else ""
        return UnknownSubcommandError(
            f"unknown subcommand {word!r}{where}",
            code=FaultCode.UNKNOWN_SUBCOMMAND,
            title="unknown subcommand",
            hint=(
                f"did you mean {_alternatives(suggestions)}?" if suggestions else
                f"run '{context.route} --help' to list the available subcommands"
            ),
        )

    def unknown_switches(self, parsed, context):
        # passthrough schemas receive unknown switches as extra keys
        if parsed.extraction.unknown_keys == "passthrough":
            return None
        names = [field.cli_name for field in parsed.extraction.options]
        faults = []
        for unknown in parsed.unknown:
            suggestions = [f"--{name}" for name in similar(unknown.name, names)]
            faults.append(UnknownSwitchError(
                f"unknown switch {unknown.token!r} at {_ordinal(unknown.index + 1)} position",
                code=FaultCode.UNKNOWN_SWITCH,
                title="unknown switch",
                hint=(
                    f"did you mean {_alternatives(suggestions)}?" if suggestions else
                    f"run '{context.route} --help' to list the available options"
                ),
            ))
        if not faults:
            return None
        return faults[0] if len(faults) == 1 else CommandExit(faults)

    def surplus(self, parsed, context):
        faults = []
        taken = len(parsed.positionals) - len(parsed.surplus)
        for offset, word in enumerate(parsed.surplus):
            faults.append(UnexpectedPositionalError(
                f"unexpected positional {word!r} at {_ordinal(taken + offset + 1)} position",
                code=FaultCode.UNEXPECTED_POSITIONAL,
                title="unexpected positional",
                hint=f"run '{context.route} --help' to see the expected arguments",
            ))
        if not faults:
            return None
        return faults[0] if len(faults) == 1 else CommandExit(faults)

    def lifecycle(self, command, args, context):
        hooks = (command._setup, command.run, command._cleanup)
        if _looping() and any(inspect.iscoroutinefunction(hook) for hook in hooks):
            raise TypeError(f"invoke() cannot run the coroutine callbacks of {context.route!r} inside a running event loop")
        error = None
        result = None
        try:
            if command._setup is not None:
                _settle(command._setup(args))
            if command.run is not None:
                result = _settle(command.run(args))
        except Exception as exception:
            error = exception

        if command._cleanup is not None:
            try:
                _settle(command._cleanup(args, error))
            except Exception as exception:
                if error is None:
                    error = exception

        if error is None:
            return RunResult(True, result, None, 0, None)

        self.report(error, context)
        return self.failure(error)

    def report(self, error, context):
        if isinstance(error, CommandException | CommandExit):
            self.trigger(error, context)
            return
        if self.settings["debug"]:
            logger.error(Traceback.from_exception(type(error), error, error.__traceback__))
        self.trigger(ExecutionError(
            str(error) or type(error).__name__,
            code=FaultCode.EXECUTION_FAILED,
            title="execution failed",
            hint=None if self.settings["debug"] else "run again with debug enabled for the full traceback",
        ), context)

    def __call__(self, command, argv, context):
        settings = self.settings
        while True:
            schema = all_of(context.global_args, command.args)
            parsed = parse_args(argv, command, skip_validation=settings["skip_validation"], schema=schema)

            if parsed.help or parsed.help_all:
                names = list_names(command, visible=False)
                index = leading_word(argv, parsed.extraction)
                word = None if index is None else argv[index]
                if names and word is not None and word not in names and not parsed.extraction.positionals:
                    fault = self.unknown_subcommand(command, word, context, index)
                    self.trigger(fault, context)
                    logger.newline()
                    self.help(command, context, show_all=parsed.help_all)
                    return self.failure(fault)
                self.help(command, context, show_all=parsed.help_all)
                return RunResult(True, None, None, 0, None)

            if parsed.version:
                if context.version:
                    logger.log(context.version)
                return RunResult(True, None, None, 0, None)

            if parsed.subcommand is not None:
                command, argv = resolve(command, parsed.subcommand), parsed.remaining
                context = context._replace(path=context.path + (parsed.subcommand,))
                continue

            if command.children and command.run is None:
                if parsed.positionals and not parsed.extraction.positionals:
                    word = parsed.positionals[0]
                    fault = self.unknown_subcommand(command, word, context, argv.index(word))
                    self.trigger(fault, context)
                    return self.failure(fault)
                self.help(command, context)
                return RunResult(True, None, None, 0, None)

            if fault := self.unknown_switches(parsed, context):
                self.trigger(fault, context)
                return self.failure(fault)

            if parsed.surplus:
                if command.children and not parsed.extraction.positionals:
                    word = parsed.surplus[0]
                    fault = self.unknown_subcommand(command, word, context, argv.index(word))
                else:
                    fault = self.surplus(parsed, context)
                self.trigger(fault, context)
                return self.failure(fault)

            validation = validate(parsed.extraction.schema, parsed.raw)
            if not validation.ok:
                fault = InvalidArgumentsError(
                    f"invalid arguments for '{context.route}'",
                    code=FaultCode.INVALID_ARGUMENTS,
                    title="invalid arguments",
                    details=[str(issue) for issue in validation.issues],
                    hint=f"run '{context.route} --help' to see the expected arguments",
                )
                self.trigger(fault, context)
                return self.failure(fault)

            return self.lifecycle(command, validation.data, context)


def invoke(object, prompt=Unset, /, **options):
    """
    Run a command line and return a RunResult (never exits the process).

    Parameters
    - object: a Command (a plain callable is wrapped with command()).
    - prompt: Unset (sys.argv[1:]), a shell-like string (split with shlex) or an
      iterable of words.

    Options
    - version: version reported by --version (defaults to command.version).
    - debug: print full tracebacks for execution errors and enable logger.debug.
    - capture_logs: collect every emission into RunResult.logs.
    - skip_validation: skip the structural checks of field definitions.
    - global_args: schema merged into every level's arguments.
    - colorful / fancy: fault and help rendering (colorful follows NO_COLOR,
      FORCE_COLOR, CI and the terminal by default).

    Definition errors (argora.faults.DefinitionError) are raised, never rendered.
    """
    if isinstance(object, LazyCommand):
        object = object.load()
    elif not isinstance(object, Command):
        if not callable(object):
            raise TypeError("invoke() first argument must be a command or a callable")
        object = command(object)

    unknown = options.keys() - {
        "version", "debug", "capture_logs", "skip_validation", "global_args", "colorful", "fancy",
    }
    if unknown:
        raise TypeError(f"invoke() got unexpected options {sorted(unknown)!r}")

    settings = {
        "debug": bool(options.get("debug", False)),
        "capture_logs": bool(options.get("capture_logs", False)),
        "skip_validation": bool(options.get("skip_validation", False)),
        "colorful": bool(coalesce(options.get("colorful", Unset), colors_enabled())),
        "fancy": bool(options.get("fancy", False)),
    }
    if not _schema_like(global_args := options.get("global_args")):
        raise TypeError("invoke() 'global_args' must be a schema")
    context = Context((), object.name, coalesce(options.get("version", Unset), object.version), global_args)

    tokens = _tokens(prompt)
    with contextlib.ExitStack() as stack:
        stack.enter_context(logger.debugging_as(settings["debug"] or logger.debugging))
        logs = stack.enter_context(logger.capture()) if settings["capture_logs"] else CollectedLogs()
        result = _Runner(settings)(object, tokens, context)
    return result._replace(logs=logs)


def run_main(command, /, **options):
    """
    Entry point helper: invoke(command) on sys.argv[1:] and exit with its code.
    """
    result = invoke(command, Unset, **options)
    sys.exit(result.exit_code)


__all__ = (
    "Command",
    "LazyCommand",
    "Context",
    "RunResult",
    "command",
    "lazy",
    "resolve",
    "list_names",
    "invoke",
    "run_main",
)
