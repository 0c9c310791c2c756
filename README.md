# clawkit

Building blocks for a local AI assistant, using only the standard library.

- **Providers** (`clawkit.provider`): a small `Provider` interface for chat
  completion with tool calling, an OpenAI-compatible HTTP client with
  streaming and capability negotiation, and composable wrappers that add
  model identity, fallback, tiered routing, automatic task classification,
  usage observation, JSONL metrics and readable debug traces.
- **Memory** (`clawkit.memory`): compact per-turn summaries written to
  daily JSONL files, one directory per conversation.
- **Knowledge** (`clawkit.knowledge`): an experience library of Markdown
  files per topic, keyword scoring of past turns, and a map/reduce
  distiller that turns conversation memory into reusable notes.
- **Paths and frames** (`clawkit.dirs`, `clawkit.ipc`): the on-disk layout
  under one state directory, and the newline-delimited JSON frames a
  daemon and its clients exchange.

## Providers

Every provider (`clawkit.provider.base.Provider`) exposes two calls:

- `complete(ctx, messages)` returns the reply text;
- `complete_with_tools(ctx, messages, tools)` returns a `CompleteResult`
  holding either the reply text or the `ToolCallRequest`s the model asked
  for, with the stop reason, token `Usage` and `ModelMeta`.

Messages are `Message` objects; tools are described with `ToolDef`.
`OpenAIProvider` raises `ProviderError` when a request fails; the wrappers
let errors of their inner provider pass through.

### Call context

Per-call settings travel in a frozen `CallContext`
(`clawkit.provider.context`). Each helper returns a new context, and
`None` is accepted wherever a context is expected.

- `with_model_hint(ctx, hint)` / `hint_from_context(ctx)`: the requested
  tier, a `ModelHint` (`DEFAULT`, `ROUTER`, `TASK`, `SUMMARY`, `THINKING`).
- `with_hint_source(ctx, source)` / `source_from_context(ctx)`: a label for
  the code path behind the call, for instance from
  `hint_source_agent_loop(i)` or `hint_source_distill_map(i, total)`.
- `with_stream_func(ctx, fn)`: a callback that receives text deltas while
  a reply is streamed.
- `with_timeout(ctx, seconds)`: a deadline; `ctx.remaining()` gives the
  seconds left, or `None` without a deadline.
- `with_no_fallback(ctx)`: stops a fallback provider from trying its
  second provider.

### Wrappers

```python
from clawkit.provider.identity import wrap_identity
from clawkit.provider.fallback import wrap_fallback
from clawkit.provider.router import RouterProvider
from clawkit.provider.observe import wrap_observe

task = wrap_identity(task_backend, "task_model")
thinking = wrap_identity(thinking_backend, "thinking_model")

router = RouterProvider(task, None, None, thinking)
llm = wrap_observe(wrap_fallback(router, task))
```

- `wrap_identity(inner, model_key)` fills in `ModelMeta.model_key` when the
  result has none.
- `wrap_fallback(primary, fallback)` calls the fallback when
  `should_fallback(err)` says the primary model is unavailable (not found,
  overloaded, HTTP 404/429/500/502/503/504, `TimeoutError`), unless the
  context carries the no-fallback flag. If either side is `None` the other
  is returned unchanged.
- `RouterProvider(task, routing, summary, thinking)` sends each call to the
  tier named by the context's hint; `resolve(ctx)` shows the choice. An
  unconfigured tier is served by the task tier and a warning is logged. A
  missing task tier raises `ValueError`.
- `AutoRouter(provider, extra_thinking_keywords)` and its
  `classify(ctx, text, history, tool_names)` return a `RouteDecision`:
  thinking keywords, short plain messages and tool-name mentions are
  decided locally; anything else goes to the routing-tier model with a
  short deadline, and any failure there yields the task tier.
  `wrap_auto_route(inner, router, log)` classifies every
  `complete_with_tools` call that carries no hint; `set_tool_names(names)`
  sets the tool names it matches against.
- `wrap_observe(inner)` passes a `UsageEvent` to the observer set with
  `with_usage_observer(ctx, observer)`, splitting prompt tokens between
  the latest user input and the context with `estimate_prompt_breakdown`.
- `wrap_metrics(inner, file_path)` appends one `MetricsRecord` JSON line
  per call; `wrap_debug(inner, file_path)` writes a readable trace of each
  request and response. Both return `inner` unchanged, with a warning on
  stderr, when the file cannot be opened, and both have `close()`.

### OpenAI-compatible endpoints

```python
from clawkit.provider.context import with_stream_func
from clawkit.provider.base import Message
from clawkit.provider.openai import OpenAIProvider

llm = OpenAIProvider("https://api.example.com/v1", "placeholder", "gpt-4o-mini")
ctx = with_stream_func(None, lambda delta: print(delta, end=""))
reply = llm.complete(ctx, [Message(role="user", content="hello")])
```

The request goes to `{base_url}/chat/completions`. With a stream callback
in the context (and `stream_enabled`, the default) the request asks for a
stream and a `text/event-stream` reply is parsed with `parse_sse`;
otherwise `parse_json_response` reads the JSON body. The optional fields
`stream_options` and `thinking` (when `thinking_budget` is set) are sent
first and dropped for good once the server rejects them with HTTP 400;
`probe_capabilities(ctx)` settles this ahead of the first real request and
returns what it learned.

## Memory

```python
from clawkit.memory.extract import build_summary
from clawkit.memory.store import Manager

manager = Manager("/tmp/claw-memory")
store = manager.for_session("main")

turn = build_summary(1, "list the repo", "Here are the files.", [], 1, False)
store.save_turn(turn)

recent = store.load_recent(20)  # oldest first; 0 loads every turn
```

`extract_actions(calls, results)` condenses tool calls into `Action`
records (`bash`, `read_file`, `write_file`, `list_files`, others by name),
and `collect_artifacts(actions)` lists the files read or written.
`trunc(s, n)` shortens text. `Store.list_days()` and `Store.today_path()`
show the daily files; `Manager.all_sessions()`, `delete_session()` and
`clear_session()` manage session directories.

## Knowledge

```python
from clawkit.knowledge.score import extract_keywords, filter_relevant
from clawkit.knowledge.store import ExperienceStore

keywords = extract_keywords("Docker 部署")
relevant = filter_relevant(recent, keywords, 80)

library = ExperienceStore("/tmp/claw-experiences")
library.save("Docker 部署", "# Docker 部署\n\n- keep images small\n")
print(library.load("Docker 部署"))
for meta in library.list_experiences():
    print(meta.topic, meta.size)
```

Topics are stored under `safe_name(topic)`, which is also the `topic`
that `list_experiences()` reports. `tokenize`, `topic_tokens`,
`score_turn` and `format_batch_for_llm` are available on their own.

`Distiller(llm, mem, store).distill(ctx, topic, progress)` gathers every
stored turn, keeps those relevant to the topic, asks the summary tier for
notes in batches of ten, merges them with any existing notes, and saves
and returns the document. It raises `DistillError` when there is nothing
to work from or a step fails.

## Paths and frames

All state lives under `$OPENCLAW_STATE_DIR`, or `~/.claw` when unset.
`clawkit.dirs` returns the paths inside it (`sessions()`, `logs()`,
`log_file()`, `memory_dir()`, `experiences_dir()`, `config_file()`,
`socket_path()` and others); `mkdir_all()` creates the directories.

`clawkit.ipc.Msg` is one protocol frame: `to_json()` / `from_json(line)`
encode and decode it. `read_frames(stream)` yields lines from a text or
binary stream and raises `FrameTooLargeError` above `MAX_FRAME_BYTES`.

## What is not included

The package has no command-line program, no daemon and no socket server
or client: `clawkit.ipc` only defines frames and `clawkit.dirs` only names
paths. It has no conversation session store, no agent loop and no tool
runner that executes shell commands or file operations, and no
configuration file loader.