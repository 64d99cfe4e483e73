# svcdemo

svcdemo is a library of building blocks for a small set of cooperating services:

- a Flask **API gateway** that passes greeting requests on to a user service;
- **user logic** that gets a message from a book client, stores the new user in SQL, in a MongoDB collection and in a cache, and then publishes a task message;
- **book logic** that returns a short message;
- a **task handler** that decodes JSON task messages and sends each one to the handler for its `task_type`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

| Module | Contents |
| --- | --- |
| `svcdemo.domain` | `User`, `Book`, `new_user`, `new_book`, and the domain errors: `DomainError`, `InvalidUsernameError`, `InvalidBooknameError`, `InvalidEmailError`, `UserNotFoundError`, `UserAlreadyExistsError`, `BookNotFoundError`, `BookAlreadyExistsError` |
| `svcdemo.config` | `ServerConfig`, `PostgresSettings`, `MongoSettings`, `RabbitMQSettings`, `ConfigError` |
| `svcdemo.dto` | `Response`, `HelloResponse`, `success_response`, `error_response` |
| `svcdemo.messaging` | the `Publisher`, `Consumer` and `MessageQueue` interfaces; `RabbitPublisher`, `RabbitConsumer`, `RabbitMessageQueue`, `init_rabbitmq` |
| `svcdemo.user_cache` | `UserCache`, `UserRedisCache`, `build_user_key`, `serialize_user`, `deserialize_user`, `CacheError` |
| `svcdemo.sql_repository` | `SqlUserRepository`, `SqlBookRepository`, `UserRecord`, `BookRecord`, `create_schema`, `RepositoryError` |
| `svcdemo.data` | the `UserRepository`, `BookRepository` and `DocumentRepository` interfaces; `DataLayer`, `DataCloseError` |
| `svcdemo.document_repository` | `MongoDocumentRepository`, `UserDocumentRepository`, `BookDocumentRepository`, `create_user_indexes`, `create_book_indexes`, `init_mongo_client`, `DocumentError` |
| `svcdemo.usecases` | `BookUseCase`, `BookService`, `UserUseCase`, `UserService` |
| `svcdemo.tasks` | `TaskMessage`, `TaskUseCase`, `HandleService`, `MessageDecodeError`, `UnknownTaskTypeError` |
| `svcdemo.gateway` | `create_app`, `GatewayUserService`, `trace_metadata`, `get_request_id` |

## Domain and configuration

`User.validate()` and `Book.validate()` raise `InvalidUsernameError` or `InvalidBooknameError` when the name is empty, and `InvalidEmailError` when the e-mail is empty. `new_user` and `new_book` set both timestamps to the current time and leave `id` empty.

Every settings class is a frozen dataclass. `validated()` either raises `ConfigError` or returns a copy with the defaults filled in:

- `PostgresSettings`: must be `enabled`. `ssl_mode` defaults to `"disable"` and `log_level` to `"warn"`.
- `MongoSettings`: needs both `uri` and `database`. `max_pool_size` defaults to 100, `min_pool_size` to 10 and `connect_timeout` to 10 seconds.
- `RabbitMQSettings`: must be `enabled` and have a `url`. `exchange_type` defaults to `"topic"` and `routing_key` to `"#"`.

`ServerConfig(name, host, port).address()` returns `"host:port"`.

## SQL storage

```python
from sqlalchemy import create_engine
from svcdemo.domain import new_user
from svcdemo.sql_repository import SqlUserRepository, create_schema

engine = create_engine("sqlite://")
create_schema(engine)
users = SqlUserRepository(engine)

alice = users.create(new_user("alice", "alice@example.com"))  # assigns a UUID id
assert users.get_by_username("alice").id == alice.id
users.list(offset=0, limit=10)  # newest first
```

If a lookup, update or delete finds no row, it raises `UserNotFoundError` (or `BookNotFoundError`). Database failures raise `RepositoryError`. `SqlBookRepository` offers the same operations, with `get_by_bookname` in place of `get_by_username`.

`DataLayer` holds the clients and the repositories. `DataLayer.close()` closes the MongoDB client first and then the SQL client. For the SQL client it calls `dispose()` where the client has it and `close()` otherwise. If either step fails, it raises `DataCloseError`, whose `errors` attribute lists the failures.

## Document storage

```python
from svcdemo.config import MongoSettings
from svcdemo.document_repository import (
    UserDocumentRepository, create_user_indexes, init_mongo_client,
)

settings = MongoSettings(uri="mongodb://localhost:27017", database="demo")
client = init_mongo_client(settings, create_indexes=lambda db: create_user_indexes(db["users"]))
docs = UserDocumentRepository(client[settings.database])
docs.save_document("u1", {"username": "alice", "email": "alice@example.com"})
```

`save_document` upserts the document under `_id`. It sets `created_at` only when the document has none, and it always sets `updated_at`. `find_documents(filter, skip, limit)` sorts by `created_at`, newest first, and ignores a `skip` or `limit` that is not positive. When nothing matches, the get, delete and update operations raise `UserNotFoundError` or `BookNotFoundError`. Driver failures raise `DocumentError`. `init_mongo_client` raises `ConnectionError` when it cannot create the client. If index creation fails, it closes the client and raises `DocumentError`.

## Cache

`UserRedisCache(client)` works with any client that has the redis `set(key, value, ex=...)`, `get` and `delete` methods. It stores each user as JSON under `user:id:<id>`. A `ttl` of 0 means the entry does not expire. A missing entry gives `None`. An empty id, or a failure in the client, raises `CacheError`.

## Messaging

`init_rabbitmq(settings)` validates the settings and opens a blocking pika connection, raising `ConnectionError` on failure. You can pass your own `connect(url)` callable instead. The resulting `RabbitMessageQueue` hands out:

- `new_publisher()`: publishes persistent messages with content type `application/json` to the configured exchange. `publish` uses the configured routing key and `publish_with_routing` takes one.
- `new_consumer()`: declares the durable queue and binds it to the exchange. `consume(handler, stop)` passes each message body to `handler`. A message is acknowledged when the handler returns, and rejected without requeue when the handler raises. The loop ends when `stop.is_set()` is true, for example with a `threading.Event`.

Publishers, consumers and queues are context managers that close themselves on exit.

## Use cases

`BookUseCase.just_tell_me(name)` returns `"World"`, or `"World <name>"` when a name is given.

`UserUseCase(book_client, user_repo, user_doc_repo, user_cache, publisher).say_hello(name)` performs these steps in order:

1. calls `book_client.just_tell_me()`;
2. creates a user whose username is the greeting and whose e-mail field is the book message;
3. saves that user to the repository and to the document store;
4. caches the user for 60 seconds;
5. publishes a `sayhello` task on routing key `task.sayhello.create`.

It returns `User{ID: ..., Username: ..., Email: ...}`. A failure in steps 1 to 4 is raised to the caller. A failure to publish is only logged. `BookService` and `UserService` wrap these use cases with request logging.

## Task messages

```python
from svcdemo.tasks import HandleService, TaskUseCase

service = HandleService(TaskUseCase())
service.handle_message(b'{"user_id": "u1", "username": "alice", "task_type": "sayhello"}')
```

Invalid JSON, or fields that are not strings, raise `MessageDecodeError`. A task type other than `sayhello` raises `UnknownTaskTypeError`. `service.handle_message` can be passed directly as the handler of `RabbitConsumer.consume`.

## Gateway

```python
from svcdemo.gateway import create_app

class StaticUserService:
    def say_hello(self, request_id=""):
        return "User{ID: 1, Username: Hello from user-service, Email: World}"

app = create_app(StaticUserService(), timeout=30.0)
client = app.test_client()
print(client.get("/api/v1/user/hello").get_json())
# {'code': 0, 'message': 'success', 'data': {'message': '...'}}
```

Every response carries an `X-Request-ID` header. It echoes the request's own `X-Request-ID` if one was sent, and a new UUID otherwise. Inside a request, `get_request_id()` returns that ID. Every response also carries CORS headers. `OPTIONS` requests get `204`. `GET /health` returns `{"status": "ok"}`.

`timeout` limits each call to the user service, in seconds. If the user service raises an error or runs past the limit, the response is HTTP 500 with `{"code": 10001, "message": "failed to call user service"}`. Any other unhandled exception gives HTTP 500 with `{"code": 500, "message": "Internal server error", "request_id": ...}`.

`GatewayUserService(client)` calls `client.say_hello(metadata=...)` and passes `trace_metadata(request_id)`, which is `[("x-trace-id", request_id)]`, or empty when there is no ID. Failures are raised as `RuntimeError`.

## What the package does not do

svcdemo is a library only. It does not provide:

- **Commands or servers:** nothing starts the gateway, the services or the consumer as running processes, and nothing handles signals.
- **A network transport between services:** the book client and user client are whatever objects you pass in.
- **Schema migrations:** `create_schema` only creates missing tables.
- **A cache client:** you supply the redis-compatible client for `UserRedisCache`.