import logging
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from screen_solver.credentials import CredentialPool
from screen_solver.orchestrator import (
    GeminiProvider,
    OpenAIProvider,
    ProviderKind,
    SolutionOrchestrator,
)


def both_pools():
    return {
        ProviderKind.GEMINI: CredentialPool(["gemini-test-key"]),
        ProviderKind.OPENAI: CredentialPool(["openai-test-key"]),
    }


class TestConfigSelection(unittest.TestCase):
    @patch("screen_solver.orchestrator.SolutionOrchestrator._load_user_config")
    def test_preferred_provider_from_config(self, mock_load_config):
        mock_load_config.return_value = {"defaults": {"preferredProvider": "OpenAI"}}

        orchestrator = SolutionOrchestrator(pools=both_pools())

        self.assertEqual(orchestrator.get_active_provider(), ProviderKind.OPENAI)

    @patch("screen_solver.orchestrator.SolutionOrchestrator._load_user_config")
    def test_argument_overrides_config(self, mock_load_config):
        mock_load_config.return_value = {"defaults": {"preferredProvider": "openai"}}

        orchestrator = SolutionOrchestrator(
            pools=both_pools(), preferred_provider=ProviderKind.GEMINI
        )

        self.assertEqual(orchestrator.get_active_provider(), ProviderKind.GEMINI)

    @patch("screen_solver.orchestrator.SolutionOrchestrator._load_user_config")
    def test_unknown_preferred_provider(self, mock_load_config):
        # Unknown names are ignored and the default order applies
        mock_load_config.return_value = {"defaults": {"preferredProvider": "claude"}}

        orchestrator = SolutionOrchestrator(pools=both_pools())

        self.assertEqual(orchestrator.get_active_provider(), ProviderKind.GEMINI)

    @patch("screen_solver.orchestrator.SolutionOrchestrator._load_user_config")
    def test_malformed_sections_ignored(self, mock_load_config):
        mock_load_config.return_value = {"defaults": [], "providers": "nope"}

        orchestrator = SolutionOrchestrator(pools=both_pools())

        self.assertEqual(orchestrator.get_active_provider(), ProviderKind.GEMINI)
        self.assertEqual(
            orchestrator.providers[ProviderKind.GEMINI].model,
            GeminiProvider.DEFAULT_MODEL,
        )


class TestProviderConfig(unittest.TestCase):
    @patch("screen_solver.orchestrator.SolutionOrchestrator._load_user_config")
    def test_defaults(self, mock_load_config):
        mock_load_config.return_value = {}

        orchestrator = SolutionOrchestrator(pools=both_pools())

        openai_provider = orchestrator.providers[ProviderKind.OPENAI]
        self.assertIsInstance(openai_provider, OpenAIProvider)
        self.assertEqual(openai_provider.model, "gpt-4o")
        self.assertEqual(openai_provider.max_tokens, 4096)
        self.assertIsNone(openai_provider.timeout)
        self.assertEqual(
            orchestrator.providers[ProviderKind.GEMINI].model, "gemini-2.0-flash"
        )

    @patch("screen_solver.orchestrator.SolutionOrchestrator._load_user_config")
    def test_model_timeout_and_tokens(self, mock_load_config):
        mock_load_config.return_value = {
            "providers": {
                "gemini": {"model": "gemini-2.5-pro", "timeout": 30, "maxTokens": 2048},
                "openai": {"model": "", "timeout": "slow"},
            }
        }

        orchestrator = SolutionOrchestrator(pools=both_pools())

        gemini = orchestrator.providers[ProviderKind.GEMINI]
        self.assertEqual(gemini.model, "gemini-2.5-pro")
        self.assertEqual(gemini.timeout, 30.0)
        self.assertEqual(gemini.max_tokens, 2048)

        # Invalid values fall back to defaults
        openai_provider = orchestrator.providers[ProviderKind.OPENAI]
        self.assertEqual(openai_provider.model, OpenAIProvider.DEFAULT_MODEL)
        self.assertIsNone(openai_provider.timeout)


class TestLoggingConfig(unittest.TestCase):
    def tearDown(self):
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            if isinstance(handler, logging.FileHandler):
                root_logger.removeHandler(handler)
                handler.close()

    @patch("screen_solver.orchestrator.SolutionOrchestrator._load_user_config")
    def test_log_file(self, mock_load_config):
        with tempfile.TemporaryDirectory() as tmp_dir:
            log_path = Path(tmp_dir) / "solver.log"
            mock_load_config.return_value = {
                "logging": {"level": "warning", "file": str(log_path)}
            }

            SolutionOrchestrator(pools=both_pools())

            root_logger = logging.getLogger()
            file_handlers = [
                h for h in root_logger.handlers if isinstance(h, logging.FileHandler)
            ]
            self.assertEqual(len(file_handlers), 1)
            self.assertEqual(Path(file_handlers[0].baseFilename), log_path)
            self.assertEqual(root_logger.level, logging.WARNING)

            self.tearDown()

    @patch("screen_solver.orchestrator.SolutionOrchestrator._load_user_config")
    def test_verbose_overrides_level(self, mock_load_config):
        mock_load_config.return_value = {"logging": {"level": "error"}}

        SolutionOrchestrator(pools=both_pools(), verbose=True)

        self.assertEqual(logging.getLogger().level, logging.DEBUG)


if __name__ == "__main__":
    unittest.main()
