"""
Screen Solver - Request Orchestrator
====================================
Sends screenshots and problem statements to a hosted vision/language model
and turns the answer into structured results.
Features:
- Two interchangeable providers (OpenAI multimodal chat, Google Gemini)
- Round-robin API key fallback within a provider
- One-shot fallback from the secondary to the primary provider
- Problem classification to pick a prompt template
- Extraction of code, answer letter and complexity from model text
- Uniform result objects; failures never escape as exceptions

Security Features:
- No API keys in code
- Secure error messages (no credential leakage)
- Audit logging with redaction of key-like strings
"""

import asyncio
import base64
import json
import logging
import re
import sys
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

import httpx
import openai
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from openai import AsyncOpenAI

from .classifier import (
    DEFAULT_COMPLEXITY,
    SOLUTION_SYSTEM_PROMPT,
    ProblemCategory,
    ProblemClassifier,
    ResponseParser,
    detect_language,
)
from .credentials import (
    CONFIG_DIR,
    CredentialManager,
    CredentialPool,
    get_credential_manager,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

OCR_SYSTEM_PROMPT = (
    "You are a specialized OCR expert focusing on programming problems, "
    "technical interviews, and assessment questions. Extract the complete "
    "content with perfect accuracy, maintaining original formatting, "
    "mathematical notation, code samples, and all question details. If the "
    "content spans multiple images, ensure coherent and complete extraction "
    "across all images."
)

OCR_PROMPT = (
    "Extract the complete content from these screenshots. Preserve all "
    "formatting, code blocks, mathematical notation, bullet points, and "
    "question options. If this is a programming problem, include all "
    "constraints, examples, and edge cases. If it's an MCQ, clearly list all "
    "options. Return only the extracted problem."
)

CODE_EXTRACTION_PROMPT = (
    "Extract the exact source code from this screenshot. Preserve all syntax, "
    "indentation, comments, variable names, and formatting exactly as shown. "
    "Return only the code without any explanations, markdown formatting, or "
    "modifications."
)

OPTIMIZATION_SYSTEM_PROMPT = (
    "You are a senior technical interviewer and code optimization expert with "
    "extensive knowledge of algorithms, data structures, and software "
    "engineering best practices."
)

OPTIMIZATION_PROMPT = """Problem Statement:
{problem}

Current Solution:
```
{code}
```

Provide a comprehensive analysis including:

1. Precise time complexity with detailed explanation (best, average, and worst cases)
2. Exact space complexity with detailed explanation
3. Correctness verification (does it handle all edge cases and requirements)
4. Specific optimizations with code examples (if possible)
5. Alternative approaches with their time/space tradeoffs
6. Any bugs or logical errors in the current implementation with fixes
7. Code quality assessment and suggestions for improvement"""


def format_http_error(response: httpx.Response) -> str:
    """Format detailed error message from an HTTP error response."""
    status_code = response.status_code
    message = response.reason_phrase or "request failed"
    retry_after = response.headers.get("Retry-After")

    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error_info = payload.get("error")
        if isinstance(error_info, dict):
            error_message = error_info.get("message")
            if error_message:
                message = error_message
            details = error_info.get("details", [])
            if isinstance(details, list):
                for detail in details:
                    if (
                        isinstance(detail, dict)
                        and detail.get("@type")
                        == "type.googleapis.com/google.rpc.RetryInfo"
                    ):
                        retry_delay = detail.get("retryDelay")
                        if retry_delay:
                            message = f"{message} Suggested retry after {retry_delay}."
                        break

    if retry_after:
        message = f"{message} Retry-After: {retry_after}."

    return f"HTTP {status_code}: {message}"


class ProviderKind(Enum):
    """Hosted model services; OPENAI is primary, GEMINI secondary"""

    OPENAI = "openai"
    GEMINI = "gemini"


class SolverError(Exception):
    """Base class for orchestration failures"""


class NoProviderConfiguredError(SolverError):
    def __init__(self) -> None:
        super().__init__(
            "No AI service available. Please set your OpenAI or Gemini API key."
        )


class MalformedInputError(SolverError):
    pass


class ProviderError(SolverError):
    """A single request to a provider failed (transport, auth, quota, payload)"""


class AllCredentialsExhaustedError(SolverError):
    def __init__(self, provider: ProviderKind, attempts: int, last_error: Exception):
        self.provider = provider
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"All {provider.value} API keys failed after {attempts} attempt(s): "
            f"{last_error}"
        )


@dataclass(frozen=True)
class ProviderRequest:
    """Provider-neutral request payload"""

    prompt: str
    system: str | None = None
    images: tuple[bytes, ...] = ()
    max_tokens: int | None = None


@dataclass(frozen=True)
class SolutionResult:
    full_text: str
    extracted_code: str
    time_complexity: str
    space_complexity: str
    provider_used: ProviderKind | None
    failed: bool = False
    failure_message: str | None = None
    category: ProblemCategory | None = None
    language: str | None = None

    @classmethod
    def failure(
        cls, message: str, category: ProblemCategory | None = None
    ) -> "SolutionResult":
        return cls(
            full_text="",
            extracted_code="",
            time_complexity=DEFAULT_COMPLEXITY,
            space_complexity=DEFAULT_COMPLEXITY,
            provider_used=None,
            failed=True,
            failure_message=message,
            category=category,
        )


@dataclass(frozen=True)
class OptimizationResult:
    full_analysis: str
    provider_used: ProviderKind | None = None
    failed: bool = False
    failure_message: str | None = None

    @classmethod
    def failure(cls, message: str) -> "OptimizationResult":
        return cls(full_analysis="", failed=True, failure_message=message)


@dataclass(frozen=True)
class ExtractionResult:
    """Text transcribed from one or more screenshots"""

    text: str
    provider_used: ProviderKind | None = None
    failed: bool = False
    failure_message: str | None = None

    @classmethod
    def failure(cls, message: str) -> "ExtractionResult":
        return cls(text="", failed=True, failure_message=message)


class InputValidator:
    """Input validation performed before any network call"""

    MAX_PROMPT_LENGTH = 200000
    MAX_IMAGES = 10
    MAX_IMAGE_BYTES = 20 * 1024 * 1024

    KEY_PATTERNS = [
        r"(sk-|api[_-]?key[=:\s]*|bearer\s+)[a-zA-Z0-9\-_]{20,}",
        r"AIza[a-zA-Z0-9\-_]{20,}",
    ]

    @classmethod
    def validate_text(cls, text: str | None, label: str = "Prompt") -> tuple[bool, str]:
        if not isinstance(text, str) or not text.strip():
            return False, f"No {label.lower()} provided"

        if len(text) > cls.MAX_PROMPT_LENGTH:
            return False, f"{label} exceeds maximum length of {cls.MAX_PROMPT_LENGTH}"

        return True, ""

    @classmethod
    def validate_images(cls, images: list[bytes] | None) -> tuple[bool, str]:
        if not images:
            return False, "No screenshots provided"

        if len(images) > cls.MAX_IMAGES:
            return False, f"Too many screenshots: max {cls.MAX_IMAGES}"

        for i, image in enumerate(images):
            if not isinstance(image, (bytes, bytearray)) or not image:
                return False, f"Screenshot {i} is empty"
            if len(image) > cls.MAX_IMAGE_BYTES:
                return False, f"Screenshot {i} exceeds {cls.MAX_IMAGE_BYTES} bytes"

        return True, ""

    @classmethod
    def redact(cls, text: str) -> str:
        """Replace anything that looks like an API key"""
        for pattern in cls.KEY_PATTERNS:
            text = re.sub(pattern, "[REDACTED]", text, flags=re.IGNORECASE)
        return text

    @classmethod
    def sanitize_for_logging(cls, text: str, max_len: int = 100) -> str:
        """Sanitize text for safe logging (no sensitive data)"""
        if not text:
            return ""
        sanitized = cls.redact(text[:max_len])
        return sanitized + ("..." if len(text) > max_len else "")


def guess_image_mime(data: bytes) -> str:
    """Sniff the image type from magic bytes; screenshots default to PNG."""
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/png"


class KeyRotationHandler:
    """Round-robin retry of one request across a provider's API keys"""

    @classmethod
    async def execute_with_fallback(
        cls,
        pool: CredentialPool,
        func: Callable[[str], Awaitable[T]],
        provider_name: str = "",
    ) -> T:
        """
        Call ``func`` with the pool's current key, advancing through the
        remaining keys on failure. Attempts are sequential; at most
        ``len(pool)`` are made. The last error is re-raised when every key
        has failed.
        """
        start_index = pool.index

        try:
            return await func(pool.current())
        except Exception as e:
            last_error = e
            logger.warning(
                f"{provider_name} request failed with key {pool.index}: "
                f"{InputValidator.sanitize_for_logging(str(e))}"
            )

        for attempt in range(len(pool) - 1):
            api_key = pool.advance()
            logger.info(f"Attempt {attempt + 2}: trying next {provider_name} API key")

            try:
                return await func(api_key)
            except Exception as e:
                last_error = e
                logger.warning(
                    f"{provider_name} request failed with key {pool.index}: "
                    f"{InputValidator.sanitize_for_logging(str(e))}"
                )

            if pool.index == start_index:
                break

        logger.error(f"All {provider_name} API keys have failed")
        raise last_error


class BaseProvider(ABC):
    """Abstract base class for hosted model providers"""

    kind: ProviderKind

    def __init__(
        self,
        model: str,
        max_tokens: int = 4096,
        timeout: float | None = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._clients: dict[str, Any] = {}

    @property
    def provider_name(self) -> str:
        return self.kind.value

    @abstractmethod
    async def ask(self, api_key: str, request: ProviderRequest) -> str:
        """Issue one request with ``api_key`` and return the raw text answer"""
        pass


class OpenAIProvider(BaseProvider):
    """OpenAI chat completions with text and base64 image content parts"""

    kind = ProviderKind.OPENAI
    DEFAULT_MODEL = "gpt-4o"

    def _build_http_client(self) -> httpx.AsyncClient | None:
        if self.timeout:
            return httpx.AsyncClient(timeout=self.timeout)
        return None

    def _get_client(self, api_key: str) -> AsyncOpenAI:
        if api_key not in self._clients:
            # One HTTP request per key; KeyRotationHandler owns retries
            self._clients[api_key] = AsyncOpenAI(
                api_key=api_key,
                http_client=self._build_http_client(),
                max_retries=0,
            )
        return self._clients[api_key]

    @staticmethod
    def build_messages(request: ProviderRequest) -> list[dict[str, Any]]:
        content: list[dict[str, Any]] = [{"type": "text", "text": request.prompt}]
        for image in request.images:
            encoded = base64.b64encode(image).decode("ascii")
            content.append(
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{guess_image_mime(image)};base64,{encoded}"},
                }
            )

        messages: list[dict[str, Any]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.append({"role": "user", "content": content})
        return messages

    async def ask(self, api_key: str, request: ProviderRequest) -> str:
        client = self._get_client(api_key)
        start_time = time.time()

        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(request),
                max_tokens=request.max_tokens or self.max_tokens,
            )
        except openai.APIStatusError as e:
            raise ProviderError(format_http_error(e.response)) from e
        except openai.APITimeoutError as e:
            raise ProviderError(f"Timeout error: {e}") from e
        except openai.APIConnectionError as e:
            raise ProviderError(f"Connection error: {e}") from e
        except Exception as e:
            raise ProviderError(str(e)) from e

        logger.debug(
            f"OpenAI responded in {(time.time() - start_time) * 1000:.0f}ms"
        )

        choices = getattr(response, "choices", None)
        content = choices[0].message.content if choices else None
        if not content:
            raise ProviderError("Malformed response: missing message content")
        return content


class GeminiProvider(BaseProvider):
    """Google Gemini generate_content with a prompt and inline image parts"""

    kind = ProviderKind.GEMINI
    DEFAULT_MODEL = "gemini-2.0-flash"

    def _get_client(self, api_key: str) -> genai.Client:
        if api_key not in self._clients:
            if self.timeout:
                # HttpOptions timeout is in milliseconds
                self._clients[api_key] = genai.Client(
                    api_key=api_key,
                    http_options=genai_types.HttpOptions(timeout=int(self.timeout * 1000)),
                )
            else:
                self._clients[api_key] = genai.Client(api_key=api_key)
        return self._clients[api_key]

    @staticmethod
    def build_contents(request: ProviderRequest) -> list[Any]:
        contents: list[Any] = [request.prompt]
        for image in request.images:
            contents.append(
                genai_types.Part.from_bytes(data=image, mime_type=guess_image_mime(image))
            )
        return contents

    async def ask(self, api_key: str, request: ProviderRequest) -> str:
        client = self._get_client(api_key)
        start_time = time.time()

        config = genai_types.GenerateContentConfig(
            system_instruction=request.system,
            max_output_tokens=request.max_tokens or self.max_tokens,
        )

        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=self.build_contents(request),
                config=config,
            )
        except genai_errors.APIError as e:
            raise ProviderError(f"HTTP {e.code}: {e.message or e.status}") from e
        except Exception as e:
            raise ProviderError(str(e)) from e

        logger.debug(
            f"Gemini responded in {(time.time() - start_time) * 1000:.0f}ms"
        )

        text = getattr(response, "text", None)
        if not text:
            raise ProviderError("Malformed response: no text in response")
        return text


PROVIDER_CLASSES: dict[ProviderKind, type[BaseProvider]] = {
    ProviderKind.OPENAI: OpenAIProvider,
    ProviderKind.GEMINI: GeminiProvider,
}


class SolutionOrchestrator:
    """
    Owns the providers, their credential pools and the active provider
    selection, and exposes the boundary operations used by the UI layer.

    Operations are serialized with a lock: a request and its fallback
    attempts run to completion before the next request starts.
    """

    def __init__(
        self,
        providers: dict[ProviderKind, BaseProvider] | None = None,
        pools: dict[ProviderKind, CredentialPool] | None = None,
        preferred_provider: ProviderKind | None = None,
        credential_manager: CredentialManager | None = None,
        verbose: bool = False,
    ) -> None:
        self.verbose = verbose

        # Load config first so we can use it for logging setup
        self._user_config = self._load_user_config()
        self._setup_logging()

        self.providers = providers if providers is not None else self._build_providers()

        if pools is None:
            manager = credential_manager or get_credential_manager()
            pools = {}
            for kind in ProviderKind:
                pool = manager.build_pool(kind.value)
                if pool is not None:
                    pools[kind] = pool
        self.pools: dict[ProviderKind, CredentialPool] = dict(pools)

        self._lock = asyncio.Lock()
        self._active: ProviderKind | None = None
        self._select_initial_provider(preferred_provider)

    def _get_defaults_config(self) -> dict[str, Any]:
        defaults = self._user_config.get("defaults", {})
        if isinstance(defaults, dict):
            return defaults
        return {}

    def _get_provider_config(self, provider_name: str) -> dict[str, Any]:
        providers = self._user_config.get("providers", {})
        if not isinstance(providers, dict):
            return {}

        provider_config = providers.get(provider_name, {})
        if not isinstance(provider_config, dict):
            return {}

        return provider_config

    def _build_providers(self) -> dict[ProviderKind, BaseProvider]:
        providers: dict[ProviderKind, BaseProvider] = {}
        for kind, provider_cls in PROVIDER_CLASSES.items():
            config = self._get_provider_config(kind.value)
            model = config.get("model")
            max_tokens = config.get("maxTokens")
            timeout = config.get("timeout")
            providers[kind] = provider_cls(
                model=model if isinstance(model, str) and model else provider_cls.DEFAULT_MODEL,
                max_tokens=max_tokens if isinstance(max_tokens, int) else 4096,
                timeout=float(timeout) if isinstance(timeout, (int, float)) else None,
            )
        return providers

    def _resolve_preferred_provider(
        self, preferred: ProviderKind | None
    ) -> ProviderKind | None:
        if preferred is not None:
            return preferred

        config_value = self._get_defaults_config().get("preferredProvider")
        if not isinstance(config_value, str):
            return None

        try:
            return ProviderKind(config_value.strip().lower())
        except ValueError:
            logger.warning(f"Unknown preferred provider in config: {config_value}")
            return None

    def _is_configured(self, kind: ProviderKind) -> bool:
        return kind in self.pools and kind in self.providers

    def _select_initial_provider(self, preferred: ProviderKind | None) -> None:
        preferred = self._resolve_preferred_provider(preferred)
        if preferred is not None and self._is_configured(preferred):
            self._active = preferred
        else:
            # Gemini is the default when both are configured
            for kind in (ProviderKind.GEMINI, ProviderKind.OPENAI):
                if self._is_configured(kind):
                    self._active = kind
                    break
        logger.info(
            f"Active provider: {self._active.value if self._active else 'none'}"
        )

    def _setup_logging(self) -> None:
        level = logging.DEBUG if self.verbose else logging.INFO

        log_config = self._user_config.get("logging", {})
        if not isinstance(log_config, dict):
            log_config = {}
        if not self.verbose and "level" in log_config:
            level_name = str(log_config["level"]).upper()
            level = getattr(logging, level_name, logging.INFO)

        handlers: list[logging.Handler] = [logging.StreamHandler()]

        log_file = log_config.get("file")
        if log_file:
            try:
                expanded_path = Path(log_file).expanduser()
                handlers.append(logging.FileHandler(expanded_path, encoding="utf-8"))
            except OSError as e:
                # Fallback to console only if file setup fails
                print(f"Failed to setup log file {log_file}: {e}")

        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            handlers=handlers,
            force=True,
        )

    def _load_user_config(self) -> dict[str, Any]:
        config_path = CONFIG_DIR / "config.json"
        if not config_path.exists():
            return {}

        try:
            with config_path.open("r", encoding="utf-8") as config_file:
                loaded = json.load(config_file)
        except (OSError, ValueError) as exc:
            # Can't log yet as logging isn't set up, use print
            print(f"Warning: Failed to load config from {config_path}: {exc}")
            return {}

        if not isinstance(loaded, dict):
            print(f"Warning: Config file {config_path} did not contain an object.")
            return {}

        return loaded

    def set_credential(self, secret: str, provider: ProviderKind) -> None:
        """
        Add an API key for ``provider`` and make that provider active.
        A blank key is logged and ignored; pools and selection are unchanged.
        """
        if not isinstance(secret, str) or not secret.strip():
            logger.warning(f"Ignoring empty API key for provider: {provider.value}")
            return

        secret = secret.strip()
        if provider in self.pools:
            self.pools[provider].add(secret)
        else:
            self.pools[provider] = CredentialPool([secret])

        if provider in self.providers:
            self._active = provider
        logger.info(f"API key set for provider: {provider.value}")

    def get_active_provider(self) -> ProviderKind | None:
        return self._active

    def is_available(self) -> bool:
        """
        Check that some provider can serve requests, re-selecting the
        active provider if the current one lost its configuration.
        """
        if self._active is not None and self._is_configured(self._active):
            return True

        for kind in (ProviderKind.OPENAI, ProviderKind.GEMINI):
            if self._is_configured(kind):
                self._active = kind
                logger.info(f"Using {kind.value} as provider")
                return True

        self._active = None
        logger.warning("No AI provider available")
        return False

    async def _ask_with_fallback(
        self, kind: ProviderKind, request: ProviderRequest
    ) -> str:
        provider = self.providers[kind]
        pool = self.pools[kind]

        async def _attempt(api_key: str) -> str:
            return await provider.ask(api_key, request)

        try:
            return await KeyRotationHandler.execute_with_fallback(
                pool, _attempt, provider.provider_name
            )
        except Exception as e:
            raise AllCredentialsExhaustedError(kind, len(pool), e) from e

    async def _run(
        self, operation: str, request: ProviderRequest
    ) -> tuple[str, ProviderKind]:
        async with self._lock:
            if not self.is_available():
                raise NoProviderConfiguredError()
            kind = self._active
            assert kind is not None

            logger.info(
                f"{operation} via {kind.value}: "
                f"{InputValidator.sanitize_for_logging(request.prompt)}"
            )

            try:
                return await self._ask_with_fallback(kind, request), kind
            except AllCredentialsExhaustedError:
                if kind is not ProviderKind.GEMINI or not self._is_configured(
                    ProviderKind.OPENAI
                ):
                    raise
                logger.warning(f"{operation}: falling back to OpenAI")
                return (
                    await self._ask_with_fallback(ProviderKind.OPENAI, request),
                    ProviderKind.OPENAI,
                )

    async def extract_problem(self, images: list[bytes]) -> ExtractionResult:
        """Transcribe a problem statement from one or more screenshots."""
        is_valid, error = InputValidator.validate_images(images)
        if not is_valid:
            return ExtractionResult.failure(error)

        request = ProviderRequest(
            prompt=OCR_PROMPT,
            system=OCR_SYSTEM_PROMPT,
            images=tuple(bytes(image) for image in images),
        )
        try:
            text, kind = await self._run("Problem extraction", request)
        except SolverError as e:
            logger.error(
                f"Problem extraction failed: {InputValidator.sanitize_for_logging(str(e), 300)}"
            )
            message = f"Error analyzing screenshots: {InputValidator.redact(str(e))}"
            return ExtractionResult.failure(message)

        return ExtractionResult(text=text.strip(), provider_used=kind)

    async def generate_solution(self, problem: str) -> SolutionResult:
        """
        Classify the problem, prompt the active provider with the matching
        template and parse the answer.
        """
        is_valid, error = InputValidator.validate_text(problem, "Problem statement")
        if not is_valid:
            return SolutionResult.failure(error)

        category = ProblemClassifier.classify(problem)
        logger.debug(f"Classified problem as {category.value}")

        request = ProviderRequest(
            prompt=ProblemClassifier.build_prompt(problem, category),
            system=SOLUTION_SYSTEM_PROMPT,
        )
        try:
            text, kind = await self._run("Solution generation", request)
        except SolverError as e:
            logger.error(
                f"Solution generation failed: {InputValidator.sanitize_for_logging(str(e), 300)}"
            )
            message = f"Error generating solution: {InputValidator.redact(str(e))}"
            return SolutionResult.failure(message, category)

        parsed = ResponseParser.parse(text, category)
        return SolutionResult(
            full_text=parsed.solution_text,
            extracted_code=parsed.code,
            time_complexity=parsed.time,
            space_complexity=parsed.space,
            provider_used=kind,
            category=category,
            language=(
                None
                if category is ProblemCategory.MULTIPLE_CHOICE
                else detect_language(parsed.code_block)
            ),
        )

    async def optimize_solution(self, problem: str, code: str) -> OptimizationResult:
        """Ask for a complexity/correctness review of ``code``."""
        for value, label in ((problem, "Problem statement"), (code, "Code to optimize")):
            is_valid, error = InputValidator.validate_text(value, label)
            if not is_valid:
                return OptimizationResult.failure(error)

        request = ProviderRequest(
            prompt=OPTIMIZATION_PROMPT.format(problem=problem, code=code),
            system=OPTIMIZATION_SYSTEM_PROMPT,
        )
        try:
            text, kind = await self._run("Solution optimization", request)
        except SolverError as e:
            logger.error(
                f"Solution optimization failed: {InputValidator.sanitize_for_logging(str(e), 300)}"
            )
            message = f"Error optimizing solution: {InputValidator.redact(str(e))}"
            return OptimizationResult.failure(message)

        return OptimizationResult(full_analysis=text, provider_used=kind)

    async def extract_code(self, image: bytes) -> ExtractionResult:
        """Transcribe source code verbatim from a screenshot."""
        is_valid, error = InputValidator.validate_images([image] if image else [])
        if not is_valid:
            return ExtractionResult.failure(error)

        request = ProviderRequest(prompt=CODE_EXTRACTION_PROMPT, images=(bytes(image),))
        try:
            text, kind = await self._run("Code extraction", request)
        except SolverError as e:
            logger.error(
                f"Code extraction failed: {InputValidator.sanitize_for_logging(str(e), 300)}"
            )
            message = f"Error extracting code: {InputValidator.redact(str(e))}"
            return ExtractionResult.failure(message)

        # Models sometimes wrap the transcription in a fence despite the prompt
        code = ResponseParser.extract_code_block(text) or text.strip()
        return ExtractionResult(text=code, provider_used=kind)


def _read_problem_text(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _read_images(paths: list[str]) -> list[bytes]:
    images = []
    for path in paths:
        file_path = Path(path)
        if not file_path.is_file():
            raise MalformedInputError(f"Screenshot file not found: {path}")
        images.append(file_path.read_bytes())
    return images


def _print_solution(solution: SolutionResult) -> None:
    provider = solution.provider_used.value if solution.provider_used else "?"
    category = solution.category.value if solution.category else "?"
    print(f"\n[{provider}] ({category})")
    print("-" * 60)
    print(solution.full_text)
    print("-" * 60)
    if solution.extracted_code != solution.full_text:
        print(f"Code ({solution.language or 'unknown language'}):")
        print(solution.extracted_code)
        print("-" * 60)
    print(f"Time Complexity: {solution.time_complexity}")
    print(f"Space Complexity: {solution.space_complexity}")


async def main(argv: list[str] | None = None) -> int:
    """CLI interface for the orchestrator"""
    import argparse

    parser = argparse.ArgumentParser(description="Screen Solver CLI")
    parser.add_argument("screenshots", nargs="*", help="Screenshots of the problem")
    parser.add_argument(
        "--text",
        "-t",
        metavar="FILE",
        help="Read the problem statement from FILE ('-' for stdin) instead of screenshots",
    )
    parser.add_argument(
        "--extract-only",
        action="store_true",
        help="Print the extracted problem and stop",
    )
    parser.add_argument(
        "--optimize",
        metavar="CODE_IMAGE",
        help="Extract code from CODE_IMAGE and request an optimization analysis",
    )
    parser.add_argument(
        "--provider",
        "-p",
        choices=[kind.value for kind in ProviderKind],
        help="Provider to use when both are configured",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--configure", action="store_true", help="Configure API keys")

    args = parser.parse_args(argv)

    if args.configure:
        from .credentials import configure_credentials_interactive

        configure_credentials_interactive()
        return 0

    if not args.screenshots and not args.text:
        parser.print_help()
        return 1

    try:
        images = _read_images(args.screenshots)
        code_images = _read_images([args.optimize]) if args.optimize else []
        problem = _read_problem_text(args.text) if args.text else None
    except (MalformedInputError, OSError) as e:
        print(f"\nError: {e}")
        return 1

    orchestrator = SolutionOrchestrator(
        preferred_provider=ProviderKind(args.provider) if args.provider else None,
        verbose=args.verbose,
    )

    if problem is None:
        extraction = await orchestrator.extract_problem(images)
        if extraction.failed:
            print(f"\nError: {extraction.failure_message}")
            return 1
        problem = extraction.text

    if args.extract_only:
        print(problem)
        return 0

    if code_images:
        code = await orchestrator.extract_code(code_images[0])
        if code.failed:
            print(f"\nError: {code.failure_message}")
            return 1
        analysis = await orchestrator.optimize_solution(problem, code.text)
        if analysis.failed:
            print(f"\nError: {analysis.failure_message}")
            return 1
        print(analysis.full_analysis)
        return 0

    solution = await orchestrator.generate_solution(problem)
    if solution.failed:
        print(f"\nError: {solution.failure_message}")
        return 1
    _print_solution(solution)
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
