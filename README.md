# amorpc

Building blocks for a threaded remote procedure call system, plus a checker
for file-system coherence between two views of one directory.

## What is in it

- **`amorpc.marshall`**: the wire format. `Marshall` builds a buffer that
  begins with `RPC_HEADER_SZ` reserved bytes (room for a 4-byte size field and
  the request or reply header) and then the content. Values are written with
  `put(value, kind)`, where `kind` is a `Kind` (`UCHAR`, `CHAR`, `USHORT`,
  `SHORT`, `UINT`, `INT`, `ULL`, `STRING`, `BYTES`), a `ListOf(item)` or a
  `MapOf(key, value)`. All integers are big-endian. Strings, bytes, lists and
  maps are prefixed with their length as a 32-bit unsigned integer, and maps
  are written in ascending key order. `pack_req_header` and
  `pack_reply_header` fill in a `ReqHeader` or a `ReplyHeader`; `content()`
  returns what follows the header and `take_buf()` hands over the whole buffer.
  `Unmarshall` reads the same values back with `get(kind)`. A read past the end
  sets `ok` to false instead of raising, and `okdone()` tells whether
  everything was read without anything left over.
- **`amorpc.fifo.Fifo`**: a thread-safe queue with an optional limit. `enq`
  blocks while the queue is full, or returns `False` when called with
  `blocking=False`; `deq` blocks until there is an item.
- **`amorpc.thr_pool.ThreadPool`**: a fixed number of worker threads fed from
  a `Fifo` of at most `100 * size` jobs. `add_job(fn, *args)` queues a call;
  `close()` (or leaving a `with` block) lets the queued jobs finish and joins
  the workers. An exception in a job is logged and the worker carries on.
- **`amorpc.pollmgr`**: `SelectAIO` keeps the sets of watched descriptors for
  `select` and wakes a pending `wait_ready()` whenever they change.
  `PollMgr` runs one background thread that calls `read_cb(fd)` and
  `write_cb(fd)` on the object registered for each ready descriptor.
  `PollMgr.instance()` returns a process-wide manager; `block_remove_fd(fd)`
  returns only once no further callback for that descriptor can run.
  Watch modes are given as `PollFlag.RDONLY`, `WRONLY` or `RDWR`.
- **`amorpc.netutil`**: `make_sockaddr("[host:]port")` returns an
  `(address, port)` tuple, with the host defaulting to `127.0.0.1`;
  `resolve_host` resolves a name and raises `ValueError` if it cannot.
  `add_timespec`, `cmp_timespec` and `diff_timespec` do millisecond
  arithmetic on `(seconds, nanoseconds)` pairs.
- **`amorpc.debuglog`**: `set_debug(level)` and `log(level, message)`, which
  prints the message only when `abs(level)` is within the set level, using the
  levels in `DebugLevel`.
- **`amorpc.fscheck`**: checks that two directories showing the same
  underlying file system agree with each other. Failures raise `CheckFailed`.

## Installing

```
pip install .
pip install ".[test]"   # with the test dependencies
```

## The coherence checker

```
amorpc-fscheck DIR1 DIR2
amorpc-fscheck --separate DIR1 DIR2
amorpc-fscheck --delay 0 DIR1 DIR2
```

Without options it makes a directory `d<pid>` under `DIR1`, expects it to
appear under `DIR2`, and then runs these sections, printing `OK` after each:
create then read, unlink, append, readdir, many sequential creates, a
20000-byte write, concurrent creates, concurrent creates of the same file,
concurrent create/delete, and concurrent creates of the same file through the
same directory. The concurrent parts use a second thread.

With `--separate` it makes `da<pid>` under `DIR1` and `db<pid>` under `DIR2`,
then creates 100 files and deletes 99 of them in each directory at the same
time, and checks that each directory is left with one entry.

Before each create, append or unlink the checker waits `--delay` seconds
(1 by default), because some file-system clients only see a change once the
modification time has moved a whole second. The command exits with status 0
on success and 1 on a failed check or wrong usage.

The same checks are available as functions: `run_coherence`,
`run_separate_dirs`, and the single steps `create1`, `check1`, `append1`,
`unlink1`, `checknot`, `createn`, `checkn`, `unlinkn` and `dircheck`.

## What it does not do

The package has no RPC client or server. There is nothing that opens
network connections, frames messages over a socket, sends calls or dispatches
them to handlers, and no at-most-once reply tracking. The wire format, queue,
worker pool and poll loop are the parts such a system is built from, but they
are not wired together here. There is no RPC self-test command either.

## Running the tests

```
pytest
```