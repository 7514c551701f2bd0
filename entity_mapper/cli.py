"""CLI for entity mapper."""

import importlib
import sys
from typing import Annotated, Literal

import structlog
from cyclopts import App, Parameter

from entity_mapper.config import get_config
from entity_mapper.config_commands import config_app
from entity_mapper.models import Outcome
from entity_mapper.session import Session

logger = structlog.get_logger()

app = App(
    name="entity-mapper",
    help="Entity Mapper - map Python objects to relational tables",
)

app.command(config_app)


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def load_models(session: Session, models: str | None = None) -> None:
    """Import the model module and let it define its entities on ``session``.

    Args:
        session: Session to define entities on
        models: "module" or "module:function"; the function defaults to ``register``
    """
    spec = models or get_config().get("models")
    if not spec:
        raise ValueError(
            "No model module configured. Pass --models or set it using:\n"
            "  entity-mapper config set models <module>[:<function>]"
        )

    module_name, _, func_name = spec.partition(":")
    logger.debug("Loading models", module=module_name, function=func_name or "register")
    module = importlib.import_module(module_name)
    register = getattr(module, func_name or "register")
    register(session)


def open_session(models: str | None = None) -> Session:
    """Create a connected session with the configured models defined."""
    session = Session.from_config(get_config())
    load_models(session, models)
    return session


def report(action: str, outcomes: list[Outcome]) -> None:
    """Print the outcome of a schema operation and exit non-zero on failure."""
    if not outcomes:
        print(f"{action} did not complete")
        sys.exit(1)
    outcome = outcomes[0]
    if outcome.ok:
        print(f"{action} {outcome.completed} table(s)")
        return
    print(f"{action} {outcome.completed} of {outcome.total} table(s) before failing: {outcome.error}")
    sys.exit(1)


@app.command
def sync(models: str | None = None) -> None:
    """Create the tables of all defined entities that do not exist yet."""
    session = open_session(models)
    outcomes: list[Outcome] = []
    try:
        session.schema_sync(outcomes.append)
    finally:
        session.close()
    report("Synchronized", outcomes)


@app.command
def reset(models: str | None = None) -> None:
    """Drop the tables of all defined entities."""
    session = open_session(models)
    outcomes: list[Outcome] = []
    try:
        session.transaction(lambda tx: session.reset(tx, outcomes.append))
    finally:
        session.close()
    report("Dropped", outcomes)


@app.command
def describe(models: str | None = None) -> None:
    """Print every defined entity with its fields and relations."""
    config = get_config()
    session = Session(order=config.drain_order)
    load_models(session, models)

    metas = session.registry.ordered(session.order)
    print(f"Found {len(metas)} entity(ies):\n")
    for meta in metas:
        print(f"{meta.name}")
        for name, storage_type in meta.fields.items():
            print(f"  {name}: {storage_type.value}")
        for name, target in meta.has_one.items():
            print(f"  {name} -> {target.name}")
        for name, target in meta.has_many.items():
            print(f"  {name} -> [{target.name}]")


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "critical",
) -> None:
    """Main entry point with global options."""
    configure_logging(log_level)
    app(tokens)


if __name__ == "__main__":
    app.meta()
