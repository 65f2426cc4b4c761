# BotWatcher: file-drop triggered job dispatcher
#
# Components:
#   descriptor.py - descriptor parsing and validation (JobDescriptor)
#   reader.py     - wait-until-ready descriptor file reads
#   watchers.py   - input and completion directory watchers (watchdog)
#   gate.py       - single-flight dispatch gate and run state
#   launcher.py   - detached launcher process start
#   dispatcher.py - wires the pipeline together
#   eventlog.py   - event record sink (logging + JSONL + optional HTTP)
#   config.py     - YAML/env configuration
#   service.py    - start/stop lifecycle and CLI entry point

__version__ = "1.0.0"
