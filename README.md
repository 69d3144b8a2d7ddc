# mqttsamples

A set of small, ready-to-run MQTT client programs built on `paho-mqtt`.
Each one shows a single way of working with an MQTT broker: publishing,
subscribing, consuming from a queue, persistent sessions, topic aliases,
secure connections, a group chat and a remote-procedure-call service built
on MQTT v5 properties.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Broker address

Unless noted otherwise, each program takes the broker URI as its first
argument and falls back to `tcp://localhost:1883`. The schemes `tcp`,
`mqtt`, `ssl`, `mqtts`, `ws` and `wss` are understood; a bare host name
means `tcp`. `mqttsamples.publish.parse_broker_uri` turns a URI into a
`BrokerAddress`, and `make_client` builds a client for it.

## Publishers

```
mqtt-async-publish [URI]
```
Connects, publishes "Hello MQTT world!" on `test` at QoS 1 and disconnects.

```
mqtt-sync-publish [URI]
```
Publishes "Hello synchronous world!" on `test` at QoS 1, with five second
timeouts on the connection and the publish.

```
mqtt-ws-publish [URI] [PROXY]
```
Publishes "Hello MQTT world!" on `test` at QoS 0 over a websocket
connection (default `ws://localhost:8080`), optionally through an HTTP
proxy.

```
mqtt-persist-publish [URI]
```
Publishes "Hello world!" on `test` at QoS 1 with client ID
`async_persist_pub`, holding the message in an in-memory store
(`mqttsamples.persistence.MemPersistence`) until the broker acknowledges
it. Store operations are logged at debug level; a missing key raises
`PersistenceError`.

```
mqtt-topic-publish [URI]
```
Publishes "Hello there" five times on `test` through a
`mqttsamples.topic.Topic` object.

```
mqtt-topic-alias-publish [URI]
```
MQTT v5: sets topic alias 1 for a long topic name, publishes through it
four times, removes the alias again and publishes with the full topic name.
Exits with status 2 when the broker does not support topic aliases.

```
mqtt-publish-time [URI]
```
Publishes the current time, in seconds with three decimals, on `data/time`
every time the reading in hundredths of a second changes. Runs until
interrupted.

```
mqtt-ssl-publish [URI]
```
Connects over TLS (default `ssl://localhost:18884`) as user `testuser` and
publishes "Hello secure world!" on `test`. The trust store
`test-root-ca.crt` and the key store `client.pem` must be in the current
directory; otherwise the program stops with status 1.

## Subscribers and consumers

```
mqtt-subscribe [URI]
```
Subscribes to `test` and `hello` with a persistent session, prints each
message as `topic - payload` and keeps reconnecting when the connection
drops. A will message is set on `test`.

```
mqtt-legacy-subscribe [URI]
```
The same with a clean session, subscribing again after every reconnect.

```
mqtt-dyn-subscribe [URI]
```
Keeps a `TopicRegistry` of subscribed topics. Publishing a topic name to
`requests/subscription/add` makes it subscribe to that topic as well; the
grown list is subscribed again after every reconnect.

```
mqtt-sync-consume [URI]
```
Blocking consumer with a persistent session on `test` and `hello`;
subscribes only when the broker holds no session for it, and tries twelve
reconnects, five seconds apart, when the connection is lost.

```
mqtt-sync-consume-v5 [URI]
```
MQTT v5 consumer that routes messages by subscription identifier: `data/#`
messages (identifier 1) are printed, and the payload `exit` on `command`
(identifier 2) ends the program.

## Chat

```
mqtt-chat USER GROUP
```
Joins the chat group on `chat/GROUP` on the broker at `localhost` (MQTT v5).
Every line typed is sent to the group as `USER: text`; an empty line or the
end of input leaves. Should the connection drop, the group hears that the
user left once the ten second will delay has passed.

## RPC math service

```
mqtt-rpc-math-srvr
mqtt-rpc-math-cli add|mult NUM1 NUM2 [... NUMN]
```
Both use the broker at `localhost` over MQTT v5. The server answers
requests on `requests/math/<operation>` with the sum (`add`) or product
(`mult`) of the JSON array of numbers in the payload, replying on the
request's response topic with its correlation data. The client sends one
request, using its assigned client identifier to form a reply topic under
`replies/math/`, and prints the result. Arguments that are not numbers are
dropped.

## What this package does not do

It contains no MQTT broker. Every program needs a broker to be running and
reachable; the chat and RPC programs only ever connect to `localhost`.