"""Engine SDK for redaction engines.

Example usage:
    from callscrub.engine_sdk import Engine, TaskInput, TaskOutput

    class MyEngine(Engine):
        def process(self, input: TaskInput) -> TaskOutput:
            transcript = input.get_transcript()
            return TaskOutput(data={"text": transcript.text})
"""

from callscrub.engine_sdk.base import Engine
from callscrub.engine_sdk.types import TaskInput, TaskOutput

__all__ = [
    "Engine",
    "TaskInput",
    "TaskOutput",
]
