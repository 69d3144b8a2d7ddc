[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mqttsamples"
version = "0.1.0"
description = "Small MQTT client programs: publishers, subscribers, consumers, a chat client and an RPC math service"
requires-python = ">=3.10"
dependencies = [
    "paho-mqtt>=2.0",
]
keywords = ["mqtt", "iot", "messaging", "publish", "subscribe", "rpc", "chat"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications",
    "Topic :: Internet",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
mqtt-async-publish = "mqttsamples.publish:main"
mqtt-sync-publish = "mqttsamples.publish:sync_main"
mqtt-ws-publish = "mqttsamples.publish:ws_main"
mqtt-persist-publish = "mqttsamples.persistence:main"
mqtt-topic-publish = "mqttsamples.topic:main"
mqtt-topic-alias-publish = "mqttsamples.topic:alias_main"
mqtt-publish-time = "mqttsamples.timepub:main"
mqtt-ssl-publish = "mqttsamples.sslpub:main"
mqtt-subscribe = "mqttsamples.subscribe:main"
mqtt-legacy-subscribe = "mqttsamples.subscribe:legacy_main"
mqtt-dyn-subscribe = "mqttsamples.subscribe:dyn_main"
mqtt-sync-consume = "mqttsamples.consume:main"
mqtt-sync-consume-v5 = "mqttsamples.consume:v5_main"
mqtt-chat = "mqttsamples.chat:main"
mqtt-rpc-math-cli = "mqttsamples.rpc:main"
mqtt-rpc-math-srvr = "mqttsamples.rpc:server_main"

[tool.hatch.build.targets.wheel]
packages = ["mqttsamples"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
