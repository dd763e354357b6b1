"""


OPC DA Connector

Keeps a local cache of item readings from an OPC DA server fresh, and tells listeners what changed.

- ServerConnection: the session to one server. Holds the groups, attaches them each time the
  connection is established and broadcasts the connection status to them.
- GroupSession: a set of items polled at a fixed rate. Each cycle reads every item, diffs the readings
  against the cache and emits the changes on the group's channels.
- client facade: the abstract operations the connector needs from an OPC DA client library
  (sessions, server objects, group subscriptions, sync reads and writes, browsing.)
- consumers: GroupReader and GroupWriter bind a group to the pipeline that uses it.
- config: configobj files describing the server and its groups.


## Liveness

A group that can't complete a read (the previous read is still outstanding, or the server is not online)
counts the cycle as deferred. After more than max_deferred_cycles deferred cycles in a row it stops
polling and asks its connection to reconnect. The connection drops requests while a reconnect is
running, so several stalled groups produce a single reconnect.

There's no other retry. A connection that fails to connect stays offline until something asks it to
reconnect.


## Threading

Everything runs on one asyncio event loop. The only suspension points are the facade coroutines,
so group and connection state is only ever touched by one task at a time and needs no locks.
Timers are loop callbacks; reads are tasks started by the timer callback.
"""
