"""
Screen Solver - Screenshot-to-Solution Request Orchestrator
===========================================================

Sends screenshots of coding problems to a hosted vision/language model and
returns the explanation, code and complexity analysis as structured results,
rotating through several API keys when one of them fails.

Example Usage:
    >>> from screen_solver import SolutionOrchestrator, ProviderKind
    >>>
    >>> import asyncio
    >>>
    >>> async def main():
    ...     orchestrator = SolutionOrchestrator()
    ...     orchestrator.set_credential("...", ProviderKind.GEMINI)
    ...     with open("problem.png", "rb") as f:
    ...         problem = await orchestrator.extract_problem([f.read()])
    ...     solution = await orchestrator.generate_solution(problem.text)
    ...     print(solution.extracted_code, solution.time_complexity)
    >>>
    >>> asyncio.run(main())
"""

__version__ = "1.0.0"

from .classifier import (
    ParsedSolution,
    ProblemCategory,
    ProblemClassifier,
    ResponseParser,
)
from .credentials import (
    CredentialManager,
    CredentialPool,
    add_api_key,
    configure_credentials_interactive,
    get_api_keys,
    get_credential_manager,
)
from .orchestrator import (
    AllCredentialsExhaustedError,
    BaseProvider,
    ExtractionResult,
    GeminiProvider,
    KeyRotationHandler,
    MalformedInputError,
    NoProviderConfiguredError,
    OpenAIProvider,
    OptimizationResult,
    ProviderError,
    ProviderKind,
    ProviderRequest,
    SolutionOrchestrator,
    SolutionResult,
    SolverError,
)

__all__ = [
    # Version
    "__version__",

    # Credential management
    "CredentialPool",
    "CredentialManager",
    "get_api_keys",
    "add_api_key",
    "get_credential_manager",
    "configure_credentials_interactive",

    # Classification and parsing
    "ProblemCategory",
    "ProblemClassifier",
    "ResponseParser",
    "ParsedSolution",

    # Orchestrator
    "SolutionOrchestrator",
    "ProviderKind",
    "BaseProvider",
    "OpenAIProvider",
    "GeminiProvider",
    "ProviderRequest",
    "KeyRotationHandler",
    "SolutionResult",
    "OptimizationResult",
    "ExtractionResult",

    # Errors
    "SolverError",
    "NoProviderConfiguredError",
    "AllCredentialsExhaustedError",
    "MalformedInputError",
    "ProviderError",
]
