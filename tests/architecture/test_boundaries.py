from pytest_archon import archrule

CORE_MODULES = (
    "cqrs_ddd_query_params.catalog",
    "cqrs_ddd_query_params.composer",
    "cqrs_ddd_query_params.cursor",
    "cqrs_ddd_query_params.fields",
    "cqrs_ddd_query_params.metadata",
    "cqrs_ddd_query_params.params",
    "cqrs_ddd_query_params.predicates",
    "cqrs_ddd_query_params.registry",
    "cqrs_ddd_query_params.validation",
)


def test_core_does_not_know_adapters() -> None:
    """
    Validation, composition and metadata work on abstract operations only.
    They must not import execution adapters or the backend that wires them.
    """
    rule = archrule("core_is_adapter_free")
    for module in CORE_MODULES:
        rule = rule.match(module)
    (
        rule.should_not_import("cqrs_ddd_query_params.adapters*")
        .should_not_import("cqrs_ddd_query_params.backend")
        .should_not_import("sqlalchemy*")
        .check("cqrs_ddd_query_params")
    )


def test_adapters_layering() -> None:
    """
    Adapters consume composed operations. They never validate
    parameters and never reach back into the backend.
    """
    (
        archrule("adapters_layering")
        .match("cqrs_ddd_query_params.adapters*")
        .should_not_import("cqrs_ddd_query_params.backend")
        .should_not_import("cqrs_ddd_query_params.validation")
        .should_not_import("cqrs_ddd_query_params.config")
        .check("cqrs_ddd_query_params")
    )


def test_memory_adapter_is_database_free() -> None:
    """The in-memory adapter must run without any database driver installed."""
    (
        archrule("memory_adapter_independence")
        .match("cqrs_ddd_query_params.adapters.memory")
        .should_not_import("sqlalchemy*")
        .check("cqrs_ddd_query_params")
    )


def test_options_do_not_depend_on_execution() -> None:
    """Option resolution sits below everything that consumes options."""
    (
        archrule("config_independence")
        .match("cqrs_ddd_query_params.config")
        .should_not_import("cqrs_ddd_query_params.validation")
        .should_not_import("cqrs_ddd_query_params.composer")
        .should_not_import("cqrs_ddd_query_params.backend")
        .check("cqrs_ddd_query_params")
    )
