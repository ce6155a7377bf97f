# feishubridge

Building blocks for a bridge between Matrix and Feishu (Lark) chats.

The package holds the parts of such a bridge that do not depend on a
particular homeserver, database or web framework:

- `feishubridge.matrix_to_feishu`: turns Matrix message content into text and
  payloads for Feishu. `format_matrix_to_feishu(msg_type, content)` dispatches
  on a `MessageType`; `convert_matrix_text_to_feishu`,
  `convert_matrix_markdown_to_feishu` and `convert_matrix_html_to_feishu`
  strip formatting; `extract_matrix_mentions` shortens `@user:server.tld` to
  `@user`; `create_feishu_rich_text` builds a Feishu `post` JSON string with
  mentions and links picked out; `create_feishu_text_message` and
  `create_feishu_card_message` build message bodies; `convert_matrix_emoticons`
  maps common emoji to Feishu emoticon codes.
- `feishubridge.feishu_to_matrix`: the other direction.
  `convert_feishu_emoticons`, `convert_feishu_content_to_matrix_html`, and
  `extract_mentions_from_rich_text` / `extract_links_from_rich_text`, which take
  Feishu rich text in its JSON (mapping) form.
- `feishubridge.util`: `UidGenerator` for stable Matrix user ids of Feishu
  users, `TtlCache` (a bounded cache with per-entry expiry),
  `parse_feishu_api_error` (pulls `code=`, `msg=` and `retryable=` out of an
  error message into `FeishuApiErrorFields`) and `build_trace_id`.
- `feishubridge.metrics`: `BridgeMetrics` counters, a process-wide instance
  from `global_metrics()`, `QueueDepthGuard` and `ScopedTimer` context
  managers, and `render_prometheus()` for the Prometheus text format.
- `feishubridge.health`: `health_payload()` and `ready_payload()` bodies.
- `feishubridge.auth`: scoped bearer-token checks for a provisioning API
  (`ProvisioningAuth`, `AuthScope`, `AuthContext`, `AuthError`) and helpers
  for request ids, actors and pagination.
- `feishubridge.provisioning`: request and response models of the
  provisioning API and the logic behind dead-letter replay and cleanup
  (`parse_bridge_request`, `parse_cleanup_request`, `cleanup_boundary`,
  `select_cleanup_candidates`, `replay_batch`).
- `feishubridge.admin`: `AdminClient`, an HTTP client for the admin API of a
  running bridge, with `resolve_admin_access`, `env_token_for_scope` and
  `decode_api_response`.

## Examples

Formatting a Matrix message for Feishu:

```python
from feishubridge.matrix_to_feishu import extract_matrix_mentions, convert_matrix_emoticons

extract_matrix_mentions("ping @bob:example.com and @carol:example.net")
# 'ping @bob and @carol'

convert_matrix_emoticons("Great 😊 👍")
# 'Great [微笑] [赞]'
```

And the other way round:

```python
from feishubridge.feishu_to_matrix import convert_feishu_emoticons

convert_feishu_emoticons("[微笑] [赞]")
# '😊 👍'
```

Matrix ids for Feishu users:

```python
from feishubridge.util import UidGenerator, build_trace_id

uids = UidGenerator()
mxid = uids.generate_mxid("ou_123", "example.com")   # '@feishu_ou_123:example.com'
uids.is_feishu_mxid(mxid)                            # True

build_trace_id("matrix_to_feishu", "$event", None)   # 'matrix_to_feishu-<16 hex digits>'
```

Metrics:

```python
from feishubridge.metrics import ScopedTimer, global_metrics

metrics = global_metrics()
metrics.record_inbound_event("im.message.receive_v1")
metrics.record_cache_hit("user_profile")

with metrics.begin_queue_task():
    with ScopedTimer("webhook"):
        ...  # handle the event

print(metrics.render_prometheus())
```

Checking a provisioning request:

```python
from feishubridge.auth import AuthError, AuthScope, ProvisioningAuth

auth = ProvisioningAuth(read_token="placeholder", write_token="secret", delete_token="token")
context = auth.authorize({"Authorization": "Bearer secret"}, {}, AuthScope.WRITE)
context.scope         # AuthScope.WRITE
context.actor_source  # 'token_scope:write'

try:
    auth.authorize({}, {}, AuthScope.READ)
except AuthError as err:
    err.message       # 'missing authorization token'
```

Talking to a running bridge's admin API:

```python
from feishubridge.admin import AdminClient

client = AdminClient("http://localhost:8080/admin", "token")
client.status()
client.mappings(limit=50)
client.replay(status="failed", limit=10)
client.cleanup_dead_letters(status="replayed", older_than_hours=24, dry_run=True)
```

Responses are decoded as JSON; an empty body gives `{}`, a body that is not
JSON gives `{"raw": body}`, and a non-2xx status raises `AdminApiError`.

## Provisioning tokens

The provisioning scopes each include the ones below them:
`read` < `write` < `delete`. A request carries its token either as
`Authorization: Bearer token` or as an `access_token` query parameter.

`resolve_admin_access` picks the token for an admin call: an explicit token
first, then the environment, most specific variable first, then the fallback
token it was given.

| Scope  | Variables tried, in order |
|--------|---------------------------|
| read   | `MATRIX_BRIDGE_FEISHU_PROVISIONING_READ_TOKEN`, `..._WRITE_TOKEN`, `..._DELETE_TOKEN`, `..._ADMIN_TOKEN`, `..._TOKEN` |
| write  | `MATRIX_BRIDGE_FEISHU_PROVISIONING_WRITE_TOKEN`, `..._DELETE_TOKEN`, `..._ADMIN_TOKEN`, `..._TOKEN` |
| delete | `MATRIX_BRIDGE_FEISHU_PROVISIONING_DELETE_TOKEN`, `..._ADMIN_TOKEN`, `..._WRITE_TOKEN`, `..._TOKEN` |

## What this package does not do

It is a library, not a running bridge. It has no command-line program, does
not connect to a Matrix homeserver or to Feishu, serves no HTTP endpoints
itself (the health, metrics and provisioning modules supply payloads, checks
and models for a server you provide), and stores nothing: room mappings and
dead letters are kept by whatever storage the caller brings.

## Testing

The test suite uses pytest and responses; both are listed in the `test`
extra:

```sh
pip install -e ".[test]"
pytest
```