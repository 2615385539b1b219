# kubeletkit

Building blocks for node agents that sit between a cluster control plane and
some other backend. The package has no third-party dependencies.

## What is in it

### Logging: `kubeletkit.log`

- `Logger` is an abstract interface with `debug`, `info`, `warn`, `error`,
  `fatal` (each taking any number of operands) and their printf-style
  variants `debugf`, `infof`, `warnf`, `errorf`, `fatalf` (a `%` format
  string plus arguments). `with_field`, `with_fields` and `with_error`
  return a logger that carries extra fields.
- `NopLogger` discards everything and is the default logger.
- `with_logger(logger)` is a context manager that makes `logger` the current
  logger for the enclosed block (stored in a context variable, so it follows
  asyncio tasks).
- `get_logger()` returns the current logger, or the default logger when none
  is set. If the default has been set to `None`, it raises `RuntimeError`.
- `set_default_logger(logger)` replaces the default and returns the previous
  one.

### Logger backends

- `kubeletkit.klog.KlogLogger(fields=None, logger=None)` writes to a
  standard `logging.Logger` (by default the one named `kubeletkit.klog`),
  appending its fields to every message as a sorted ` [k=v ...]` suffix
  (see `process_fields` and `FieldMap`, which renders the suffix once).
  `debug`/`debugf` only emit, at INFO level, when the verbosity set with
  `set_verbosity(level)` is 4 or more. `with_error` stores the exception
  under the field `err`. `fatal`/`fatalf` log at CRITICAL and raise
  `SystemExit(255)`. `new(fields)` creates one with the default backend.
- `kubeletkit.stdlog.StdlibLogger(logger, fields=None)`, usually created
  with `from_logging(logger)`, forwards each call to the matching
  `logging` level and attaches its fields to each record as the `fields`
  attribute. `with_error` stores the exception under the field `error`.
  `fatal`/`fatalf` log at CRITICAL and raise `SystemExit(1)`.

### Pod utilities: `kubeletkit.podutils`

Data classes `Service`, `ServicePort`, `ObjectMeta` and `EnvVar`, and:

- `from_services(services)`: the service-discovery environment variables
  for every service whose cluster IP is set (`NAME_SERVICE_HOST`,
  `NAME_SERVICE_PORT`, one `NAME_SERVICE_PORT_<PORTNAME>` per named port,
  and the Docker-style link variables `NAME_PORT`,
  `NAME_PORT_<port>_<PROTO>` with `_PROTO`, `_PORT` and `_ADDR`). Dashes
  in names become underscores and names are upper-cased; the protocol
  defaults to TCP. A service with a cluster IP but no ports raises
  `ValueError`.
- `is_service_ip_set(service)`: false for an empty cluster IP or `"None"`.
- `convert_downward_api_field_label(version, label, value)`: returns
  `(label, value)` for supported labels, maps `spec.host` to
  `spec.nodeName`, and raises `ValueError` for an unsupported version or
  label, or for a subscript on anything other than annotations or labels.
- `extract_field_path_as_string(obj, field_path)`: reads `metadata.name`,
  `metadata.namespace`, `metadata.uid`, `metadata.labels`,
  `metadata.annotations` and their `['key']` subscripts from an
  `ObjectMeta` or an object with a `metadata` attribute holding one.
  Whole maps are rendered with `format_map`. Unsupported paths or invalid
  subscript keys raise `ValueError`; objects without metadata raise
  `TypeError`.
- `split_maybe_subscripted_path(field_path)`: splits
  `"metadata.labels['key']"` into `("metadata.labels", "key", True)`;
  anything else comes back as `(field_path, "", False)`.
- `format_map(m)`: `key="value"` lines in key order, values quoted with
  escapes.
- `is_qualified_name(value)`: a list of validation error messages, empty
  when the value is a valid, optionally prefixed, qualified name.

### Rate limiters: `kubeletkit.ratelimit`

All delays are in seconds. Every limiter implements `RateLimiter`:
`when(item)` records an attempt and returns the delay, `forget(item)`
resets it, `num_requeues(item)` reports attempts.

- `ItemExponentialFailureRateLimiter(base_delay, max_delay)`:
  `base_delay * 2**failures`, capped at `max_delay`.
- `ItemFastSlowRateLimiter(fast_delay, slow_delay, max_fast_attempts)`.
- `BucketRateLimiter(rate, burst)`: one token bucket shared by all items;
  raises `ValueError` for a non-positive rate or a burst below 1.
- `MaxOfRateLimiter(*limiters)`: the longest delay of its limiters.
- `default_item_based_rate_limiter()`: exponential backoff from 1 ms up to
  1000 s.

### Work queue: `kubeletkit.queue`

`Queue(ratelimiter, name, handler, retry_func=None)` is an asyncio work
queue of string keys ordered by the time work may start on them.

- `enqueue(key)` uses the rate limiter's delay,
  `enqueue_without_rate_limit(key)` schedules immediately, and
  `enqueue_without_rate_limit_with_delay(key, after)` waits `after`
  seconds. A key is held once; enqueueing it again can only bring its start
  time forward. A key enqueued while it is being handled is queued again
  once handling finishes.
- `forget(key)` drops a queued key, or stops a key that is being handled
  from being retried.
- `len(queue)`, `empty()`, `unprocessed_len()` and
  `items_being_processed_len()` report its size; `str(queue)` lists the
  queued items.
- `await run(workers)` processes keys with that many workers until
  cancelled. It raises `ValueError` if `workers` is not positive and
  `RuntimeError` if the queue is already running.
  `await handle_queue_item()` waits for and handles a single key.
- The handler may be a plain function or a coroutine function. When it
  raises, `retry_func(key, times_tried, originally_added, err)` decides:
  returning a delay in seconds (or `None` for the rate limiter's delay)
  requeues the key, raising gives up on it. `default_retry_func` retries
  until `MAX_RETRIES` (20) attempts, then raises `RetriesExhaustedError`.

The queue is meant to be used from a single event loop thread.

## Installation

```
pip install kubeletkit
```

For running the test suite:

```
pip install "kubeletkit[test]"
pytest
```

## Example

```python
import asyncio
import contextlib
import logging

from kubeletkit import log, stdlog
from kubeletkit.queue import Queue
from kubeletkit.ratelimit import default_item_based_rate_limiter

logging.basicConfig(level=logging.DEBUG)
log.set_default_logger(stdlog.from_logging(logging.getLogger("agent")))


async def sync_pod(key: str) -> None:
    log.get_logger().with_field("key", key).info("syncing")


async def main() -> None:
    queue = Queue(default_item_based_rate_limiter(), "pods", sync_pod)
    queue.enqueue("default/my-pod")
    worker = asyncio.create_task(queue.run(2))
    await asyncio.sleep(0.1)
    worker.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await worker


asyncio.run(main())
```

## What it does not do

kubeletkit is a library of parts, not an agent. It has no command-line
program, does not talk to a cluster API server, and has no node or pod
controller, provider interface or HTTP server; those are left to the code
that uses these parts.