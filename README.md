# wschat

The core of a WebSocket chat backend. It covers one-to-one and group
conversations, text and file messages, and the signalling for audio and
video calls. The package has no dependency on a web framework, database
driver or message broker. Storage, caching and sockets are passed in as
small interfaces, and in-memory versions of them are included.

## Modules

### `wschat.config`

Reads the TOML configuration. It has the sections `mainConfig`,
`mysqlConfig`, `redisConfig`, `authCodeConfig`, `logConfig`, `kafkaConfig`
and `staticSrcConfig`, which map to the dataclasses `MainConfig`,
`MysqlConfig`, `RedisConfig`, `AuthCodeConfig`, `LogConfig`, `KafkaConfig`
and `StaticSrcConfig`, all held together by `Config`.

- Keys are camelCase, for example `appName` and `databaseName`. They are
  matched exactly first, then without regard to case. A missing key keeps
  its zero value. A value of the wrong type raises `ValueError`.
- `KafkaConfig.timeout` accepts either a whole number of nanoseconds or a
  duration string such as `"1m30s"` or `"500ms"`.
- `load_config(path)` decodes one file.
- `candidate_config_paths(exe_path)` lists the places searched for
  `configs/config.toml`, in order:
  - the working directory;
  - up to three parent directories of the working directory;
  - when `exe_path` is given, that file's directory and two of its parents.
- `find_and_load_config(paths)` returns the first existing path that
  decodes. It logs files that fail to decode and raises `FileNotFoundError`
  if no path loads.
- `get_config()` searches from the running program's location. It loads the
  configuration once and caches it.

### `wschat.models`

Dataclasses for the stored records: `UserInfo`, `UserContact`,
`ContactApply`, `GroupInfo`, `Session` and `Message`. Each carries its
`TABLE_NAME`. Soft-deletable records have an `is_deleted` property.

`GroupInfo.members` holds a JSON array of member ids:

- `member_ids()` decodes it. An empty column means no members, and malformed
  data raises `ValueError`.
- `set_members()` writes it.

Status codes are `IntEnum`s: `MessageType`, `MessageStatus`, `ContactType`,
`ContactStatus`, `ContactApplyStatus`, `GroupAddMode`, `GroupStatus` and
`UserStatus`.

### `wschat.requests`

One dataclass for each JSON request body, for example `LoginRequest`,
`CreateGroupRequest` and `ChatMessageRequest`.

`parse_request(cls, payload)` accepts text, bytes or an already decoded
mapping:

- Keys are matched exactly, or failing that without regard to case.
- Unknown keys are ignored, missing ones keep their zero value, and a JSON
  `null` leaves a scalar at its zero value.
- Invalid JSON raises `RequestError` (a `ValueError`). So do a body that is
  not an object, a value of the wrong type, and an integer out of range for
  its field.

### `wschat.responses`

One dataclass for each JSON response body, for example `LoginRespond`,
`GetMessageListRespond` and `GetContactInfoRespond`.

- `to_dict(obj)` converts a response, or a list of responses, to plain data.
- `to_json(obj)` encodes it compactly, escaping `<`, `>`, `&`, U+2028 and
  U+2029.
- `from_dict(cls, data)` builds a response back from plain data and checks
  the field types.
- `GetContactInfoRespond.contact_members` holds raw JSON text. It is decoded
  in place on output, and an empty value becomes `null`.

### `wschat.envelope`

`json_back(message, ret, data)` builds the reply body for a service result:

| `ret` | reply body |
| ----- | ---------- |
| `0`   | `{"code": 200, "message": ...}`, plus `"data"` when data is not `None` |
| `-2`  | `{"code": 400, "message": ...}` |
| `-1`  | `{"code": 500, "message": ...}` |
| other | `None` |

### `wschat.crypto`

`encrypt_aes(data, key, iv)` encrypts with AES in CFB mode and returns the
IV followed by the ciphertext, Base64-encoded.

- The IV is padded with zero bytes or cut to 16 bytes.
- A key of invalid length raises `ValueError`.

### `wschat.hub`

Channel-mode routing.

**`ChatServer(store, cache)`** takes logins, logouts and raw chat messages on
bounded queues:

- `send_client_to_login`
- `send_client_to_logout`
- `send_message_to_transmit`

`process_pending()` handles everything queued so far and returns how many
events it handled. `start()` runs that loop until `close()` is called.
Putting anything on a queue after `close()` raises `RuntimeError`.

On login the client is registered and its socket receives a welcome text.
On logout the client is removed and its socket receives a logout text.

**`MessageRouter.route(data)`** handles one chat message:

- **Text and file messages** are stored with a fresh id from
  `new_message_uuid()` (`"M"` followed by 11 characters). They are delivered
  to the receiver if it is online (a receiver id starting with `U`) and
  echoed to the sender. A group message (a receiver id starting with `G`)
  goes to every online member.
- **Audio/video messages** are delivered only to a user receiver and are not
  echoed. They are stored only for the call events `start_call`,
  `receive_call` and `reject_call` sent with message id `PROXY`.
- **History.** The encoded message is appended to any cached history under
  `message_list_<send>_<receive>` or `group_messagelist_<group>`. A cache
  entry that does not exist yet is not created.
- **Avatars.** Sender avatars are cut down to the part that begins with
  `/static/` by `normalize_path()`. The default avatar URL is kept as it is,
  and any other path raises `ValueError`. The server logs such a message and
  drops it.

**Interfaces and in-memory versions:**

- `MessageStore` and `InMemoryMessageStore`, which also provides
  `add_group()`.
- `Cache` and `InMemoryCache`, which supports expiry.
- `Connection`, the socket interface.
- `Peer`, the hub's view of an online client.
- `MessageBack`, an encoded message paired with the stored message's id.

### `wschat.broker`

`KafkaChatServer(store, cache, topic)` works like `ChatServer`, except that
chat messages are read from a `ChatTopic`.

`ChatTopic` is an in-process, single-partition topic:

- `write(key, value)` appends a record and returns a `TopicRecord`.
- `read(timeout)` returns the next record, or `None` if nothing arrives in
  time. Once the topic is closed and drained it raises `EOFError`.
- `close()` closes the topic.

### `wschat.client`

`ChatService(mode, store, ...)` ties sockets to a server according to
`MessageMode`:

- `CHANNEL` needs `chat_server=`.
- `KAFKA` needs `kafka_server=` and `topic=`.

`new_client(conn, client_id)` registers a `Client` and, unless
`run_threads=False`, starts its read and write loops in threads.
`client_logout(client_id)` logs the client out, closes its socket, stops
its write loop and returns `"退出成功"`. Unknown ids are ignored.

`Client.forward(raw)` hands one message to the server:

- In channel mode, when the server queue is full the message waits in the
  client's own overflow queue. When both queues are full, the client is sent
  a "too busy" text and `forward` returns `False`.
- In kafka mode the message is written to the topic with the configured
  partition as its key.

`Client.write()` marks each message as sent in the store once it has been
written to the socket.

## Example

```python
import json

from wschat.hub import ChatServer, InMemoryCache, InMemoryMessageStore, Peer


class Socket:
    def __init__(self):
        self.sent = []

    def write_message(self, data):
        self.sent.append(data)

    def close(self):
        pass


server = ChatServer(InMemoryMessageStore(), InMemoryCache())
alice, bob = Peer("U1", Socket()), Peer("U2", Socket())
server.send_client_to_login(alice)
server.send_client_to_login(bob)
server.process_pending()  # both sockets receive the welcome text

server.send_message_to_transmit(json.dumps({
    "type": 0,
    "content": "hello",
    "send_id": "U1",
    "send_name": "alice",
    "send_avatar": "http://localhost:8000/static/avatars/a.png",
    "receive_id": "U2",
}).encode())
server.process_pending()

back = bob.send_back.get_nowait()
json.loads(back.message)["content"]  # "hello"; alice.send_back holds the echo
```

```python
from wschat.envelope import json_back

json_back("ok", 0, None)            # {"code": 200, "message": "ok"}
json_back("bad request", -2, None)  # {"code": 400, "message": "bad request"}
```

## What this package does not do

- It has no HTTP API, route table or WebSocket listener, and no command to
  start a server. A host application accepts connections and passes socket
  objects to `ChatService`.
- It does not connect to MySQL, Redis or Kafka. Persistence and caching use
  whatever `MessageStore` and `Cache` objects you supply, and `ChatTopic`
  lives only in the process.
- It does not implement the account, contact, group or session operations,
  or SMS codes and file uploads. Only the data shapes for them are provided.

## Tests

The tests use pytest, which comes with the `test` extra:

```
pip install -e .[test]
pytest
```