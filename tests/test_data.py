import pytest

from svcdemo.data import (
    BookRepository,
    DataCloseError,
    DataLayer,
    DocumentRepository,
    UserRepository,
)


class _Client:
    def __init__(self, name, log, fail=False):
        self.name = name
        self.log = log
        self.fail = fail

    def close(self):
        self.log.append(self.name)
        if self.fail:
            raise OSError(f"{self.name} broke")


class _Engine:
    def __init__(self, log):
        self.log = log

    def dispose(self):
        self.log.append("dispose")


def test_close_order_mongo_first():
    log = []
    layer = DataLayer(postgres_client=_Client("pg", log), mongo_client=_Client("mongo", log))
    layer.close()
    assert log == ["mongo", "pg"]


def test_close_without_clients_is_quiet():
    layer = DataLayer()
    layer.close()
    assert layer.postgres_client is None and layer.mongo_client is None


def test_close_uses_dispose_when_available():
    log = []
    DataLayer(postgres_client=_Engine(log)).close()
    assert log == ["dispose"]


def test_close_collects_all_errors():
    log = []
    layer = DataLayer(
        postgres_client=_Client("pg", log, fail=True),
        mongo_client=_Client("mongo", log, fail=True),
    )
    with pytest.raises(DataCloseError) as info:
        layer.close()
    assert log == ["mongo", "pg"]
    assert len(info.value.errors) == 2
    assert "failed to close mongodb" in str(info.value.errors[0])
    assert "failed to close postgres" in str(info.value.errors[1])
    assert str(info.value).startswith("failed to close data layer")


def test_close_continues_after_mongo_failure():
    log = []
    layer = DataLayer(
        postgres_client=_Client("pg", log),
        mongo_client=_Client("mongo", log, fail=True),
    )
    with pytest.raises(DataCloseError) as info:
        layer.close()
    assert log == ["mongo", "pg"]
    assert len(info.value.errors) == 1


def test_context_manager_closes():
    log = []
    with DataLayer(mongo_client=_Client("mongo", log)) as layer:
        assert log == []
    assert log == ["mongo"]
    assert layer.mongo_client is not None


@pytest.mark.parametrize("interface", [UserRepository, BookRepository, DocumentRepository])
def test_interfaces_are_abstract(interface):
    with pytest.raises(TypeError):
        interface()