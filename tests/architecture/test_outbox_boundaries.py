from pytest_archon import archrule


def test_core_independence() -> None:
    """
    Core must not import any storage or broker adapter package.
    It is the foundation and must remain independent.
    """
    (
        archrule("core_is_independent")
        .match("outbox_core*")
        .should_not_import("outbox_persistence_sqlalchemy*")
        .should_not_import("outbox_messaging*")
        .should_not_import("sqlalchemy*")
        .should_not_import("aiokafka*")
        .check("outbox_core")
    )


def test_write_path_has_no_broker_dependency() -> None:
    """
    Enqueue only stages envelopes; it never reaches the dispatcher or a broker.
    """
    (
        archrule("write_path_isolation")
        .match("outbox_core.enqueue")
        .match("outbox_core.registry")
        .should_not_import("outbox_core.dispatcher")
        .should_not_import("outbox_core.ports.broker")
        .should_not_import("outbox_core.adapters*")
        .check("outbox_core", only_direct_imports=True)
    )


def test_ports_do_not_depend_on_adapters() -> None:
    (
        archrule("ports_isolation")
        .match("outbox_core.ports*")
        .should_not_import("outbox_core.adapters*")
        .should_not_import("outbox_core.dispatcher")
        .check("outbox_core", only_direct_imports=True)
    )


def test_persistence_does_not_depend_on_messaging() -> None:
    """
    Storage and broker adapters are interchangeable and must not know each other.
    """
    (
        archrule("persistence_layering")
        .match("outbox_persistence_sqlalchemy*")
        .should_not_import("outbox_messaging*")
        .check("outbox_persistence_sqlalchemy")
    )


def test_messaging_does_not_depend_on_persistence() -> None:
    (
        archrule("messaging_layering")
        .match("outbox_messaging*")
        .should_not_import("outbox_persistence_sqlalchemy*")
        .should_not_import("sqlalchemy*")
        .check("outbox_messaging")
    )
