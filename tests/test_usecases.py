import json
import re

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from svcdemo.domain import InvalidEmailError
from svcdemo.sql_repository import SqlUserRepository, create_schema
from svcdemo.tasks import HandleService, TaskMessage
from svcdemo.usecases import (
    ROUTING_KEY_TASK_SAYHELLO_CREATE,
    BookService,
    BookUseCase,
    UserService,
    UserUseCase,
)
from svcdemo.user_cache import UserRedisCache, build_user_key

USER_PATTERN = re.compile(r"^User\{ID: (.+), Username: (.*), Email: (.*)\}$")


class DictRedis:
    def __init__(self):
        self.store = {}
        self.expiry = {}

    def set(self, key, value, ex=None):
        self.store[key] = value
        self.expiry[key] = ex

    def get(self, key):
        return self.store.get(key)

    def delete(self, key):
        self.store.pop(key, None)


class MemoryUserRepo:
    def __init__(self, fail=False):
        self.users = {}
        self.fail = fail

    def create(self, user):
        if self.fail:
            raise RuntimeError("db down")
        user.validate()
        self.users[user.id] = user
        return user


class MemoryDocRepo:
    def __init__(self):
        self.documents = {}

    def save_document(self, doc_id, document):
        self.documents[doc_id] = dict(document)


class RecordingPublisher:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def publish_with_routing(self, routing_key, message):
        if self.fail:
            raise ConnectionError("broker unreachable")
        self.sent.append((routing_key, message))


class FailingBookClient:
    def just_tell_me(self):
        raise ConnectionError("book service unavailable")


class EmptyBookClient:
    def just_tell_me(self):
        return ""


@pytest.fixture
def parts():
    redis = DictRedis()
    return {
        "book_client": BookService(BookUseCase()),
        "user_repo": MemoryUserRepo(),
        "user_doc_repo": MemoryDocRepo(),
        "user_cache": UserRedisCache(redis),
        "publisher": RecordingPublisher(),
        "redis": redis,
    }


def make_use_case(parts, **overrides):
    args = {k: v for k, v in parts.items() if k != "redis"}
    args.update(overrides)
    return UserUseCase(**args)


def test_book_use_case_without_name():
    assert BookUseCase().just_tell_me("") == "World"


def test_book_use_case_with_name():
    assert BookUseCase().just_tell_me("Alice") == "World Alice"


def test_book_service_returns_use_case_message():
    assert BookService(BookUseCase()).just_tell_me() == "World"


def test_book_service_propagates_errors():
    class Broken(BookUseCase):
        def just_tell_me(self, name=""):
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        BookService(Broken()).just_tell_me()


def test_say_hello_describes_stored_user(parts):
    result = make_use_case(parts).say_hello()
    match = USER_PATTERN.match(result)
    assert match is not None
    user_id, username, email = match.groups()
    assert username == "Hello from user-service"
    assert email == "World"
    stored = parts["user_repo"].users[user_id]
    assert (stored.username, stored.email) == (username, email)


def test_say_hello_with_name(parts):
    result = make_use_case(parts).say_hello("Bob")
    assert USER_PATTERN.match(result).group(2) == "Hello Bob"


def test_say_hello_saves_document(parts):
    result = make_use_case(parts).say_hello()
    user_id = USER_PATTERN.match(result).group(1)
    assert parts["user_doc_repo"].documents[user_id] == {
        "username": "Hello from user-service",
        "email": "World",
    }


def test_say_hello_caches_user_with_ttl(parts):
    result = make_use_case(parts).say_hello()
    user_id = USER_PATTERN.match(result).group(1)
    cached = parts["user_cache"].get_user(user_id)
    assert cached.id == user_id
    assert cached.username == "Hello from user-service"
    assert parts["redis"].expiry[build_user_key(user_id)] == 60


def test_say_hello_publishes_task(parts):
    result = make_use_case(parts).say_hello()
    user_id = USER_PATTERN.match(result).group(1)
    [(routing_key, payload)] = parts["publisher"].sent
    assert routing_key == ROUTING_KEY_TASK_SAYHELLO_CREATE
    task = json.loads(payload)
    assert task["task_type"] == "sayhello"
    assert task["user_id"] == user_id
    assert task["username"] == task["message"] == "Hello from user-service"
    assert task["created_at"]


def test_published_task_is_handled_by_nice_service(parts):
    make_use_case(parts).say_hello()
    [(_, payload)] = parts["publisher"].sent
    handled = []

    class Recorder:
        def handle_say_hello_task(self, msg):
            handled.append(msg)

    HandleService(Recorder()).handle_message(payload)
    assert handled == [TaskMessage.from_json(payload)]


def test_book_failure_propagates_and_stores_nothing(parts):
    use_case = make_use_case(parts, book_client=FailingBookClient())
    with pytest.raises(ConnectionError):
        use_case.say_hello()
    assert parts["user_repo"].users == {}
    assert parts["publisher"].sent == []


def test_repository_failure_stops_flow(parts):
    use_case = make_use_case(parts, user_repo=MemoryUserRepo(fail=True))
    with pytest.raises(RuntimeError, match="db down"):
        use_case.say_hello()
    assert parts["user_doc_repo"].documents == {}
    assert parts["publisher"].sent == []


def test_validation_error_propagates(parts):
    use_case = make_use_case(parts, book_client=EmptyBookClient())
    with pytest.raises(InvalidEmailError):
        use_case.say_hello()


def test_publish_failure_is_not_fatal(parts):
    use_case = make_use_case(parts, publisher=RecordingPublisher(fail=True))
    result = use_case.say_hello()
    user_id = USER_PATTERN.match(result).group(1)
    assert user_id in parts["user_repo"].users


def test_say_hello_with_sql_repository(parts):
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    create_schema(engine)
    repo = SqlUserRepository(engine)
    result = make_use_case(parts, user_repo=repo).say_hello()
    user_id = USER_PATTERN.match(result).group(1)
    stored = repo.get_by_id(user_id)
    assert stored.email == "World"
    assert stored.created_at is not None


def test_user_service_returns_use_case_result(parts):
    result = UserService(make_use_case(parts)).say_hello()
    assert USER_PATTERN.match(result).group(2) == "Hello from user-service"
    assert len(parts["user_repo"].users) == 1