from component_bus.testing.harness import ComponentTest
from component_bus.testing.mocks.transport import MockTransportError, RecordingTransport

__all__ = ["ComponentTest", "MockTransportError", "RecordingTransport"]
