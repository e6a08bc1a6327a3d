"""Assistant error taxonomy."""


class DispatchError(Exception):
    """A tool call could not be executed."""


class UnknownTool(DispatchError):
    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ValidationFailure(DispatchError):
    """
    Tool arguments were rejected.

    Never escapes the registry: the message becomes ordinary tool-result
    text so the model can correct itself within the same turn.
    """


class StoreUnavailable(DispatchError):
    """The ledger store failed; reported to the model as an error result."""


class LoopExceeded(Exception):
    """The model kept requesting tools past the round limit."""

    def __init__(self, rounds: int):
        super().__init__(f"Tool loop exceeded {rounds} rounds without a final answer")
        self.rounds = rounds


class ThreadNotFound(Exception):
    def __init__(self, thread_id: str):
        super().__init__(f"Thread not found: {thread_id}")
        self.thread_id = thread_id
