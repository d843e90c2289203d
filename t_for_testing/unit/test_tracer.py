import unittest
from unittest.mock import MagicMock, patch

from opentelemetry.sdk.trace import TracerProvider

from config.settings import TracerConfig
from observability.tracing.tracer import _can_connect, get_tracer, setup_tracer_provider


class TestSetupTracerProvider(unittest.TestCase):
    def test_disabled_returns_none(self):
        with patch("observability.tracing.tracer.register") as mock_register:
            self.assertIsNone(setup_tracer_provider(TracerConfig(enabled=False)))
            mock_register.assert_not_called()

    def test_unreachable_collector_returns_none(self):
        with patch("observability.tracing.tracer._can_connect", return_value=False), \
                patch("observability.tracing.tracer.register") as mock_register:
            self.assertIsNone(setup_tracer_provider(TracerConfig()))
            mock_register.assert_not_called()

    def test_registers_phoenix_provider(self):
        provider = TracerProvider()
        config = TracerConfig(project_name="checkout", protocol="grpc")
        with patch("observability.tracing.tracer._can_connect", return_value=True), \
                patch("observability.tracing.tracer.register", return_value=provider) as mock_register:
            self.assertIs(setup_tracer_provider(config), provider)
        mock_register.assert_called_once_with(
            project_name="checkout",
            endpoint="http://localhost:4317",
            protocol="grpc",
            auto_instrument=False,
            batch=False,
        )


class TestCanConnect(unittest.TestCase):
    def test_connection_refused(self):
        with patch("observability.tracing.tracer.socket.create_connection",
                   side_effect=ConnectionRefusedError()):
            self.assertFalse(_can_connect(TracerConfig()))

    def test_connection_ok(self):
        connection = MagicMock()
        with patch("observability.tracing.tracer.socket.create_connection",
                   return_value=connection) as mock_connect:
            self.assertTrue(_can_connect(TracerConfig(endpoint="http://collector:6006/v1/traces")))
        self.assertEqual(mock_connect.call_args[0][0], ("collector", 6006))


class TestGetTracer(unittest.TestCase):
    def test_uses_given_provider(self):
        provider = TracerProvider()
        tracer = get_tracer("tests", tracer_provider=provider)
        with tracer.start_as_current_span("probe") as span:
            self.assertTrue(span.is_recording())


if __name__ == "__main__":
    unittest.main()
