"""Assistant module - the conversational core.

- tools: finance tool schemas and the dispatch registry
- context: finance summary injected into the system prompt
- loop: the multi-round tool-calling state machine
- aggregator: media-group debounce in front of the loop
- service: thread lifecycle and per-thread serialization of turns
"""
