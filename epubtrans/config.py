"""
Centralized configuration
"""
import os
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

_config_logger = logging.getLogger(__name__)

# Check for DEBUG_MODE early (before .env is loaded, check environment)
_debug_mode = os.getenv('DEBUG_MODE', 'false').lower() == 'true'
if _debug_mode:
    logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    _config_logger.setLevel(logging.DEBUG)

# .env is looked up in the current working directory
_env_file = Path.cwd() / '.env'
_dotenv_result = load_dotenv(_env_file)
if _debug_mode:
    _config_logger.debug(f"Looking for .env at: {_env_file.absolute()} (loaded: {_dotenv_result})")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        _config_logger.warning(f"Invalid integer for {name}: {raw!r}, using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default))
    try:
        return float(raw)
    except ValueError:
        _config_logger.warning(f"Invalid number for {name}: {raw!r}, using {default}")
        return default


# LLM Provider configuration
LLM_PROVIDER = os.getenv('LLM_PROVIDER', 'anthropic')  # 'anthropic' or 'openai'
ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY', os.getenv('ANTHROPIC_KEY', ''))
ANTHROPIC_API_ENDPOINT = os.getenv('ANTHROPIC_API_ENDPOINT', 'https://api.anthropic.com/v1')
ANTHROPIC_VERSION = '2023-06-01'
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
OPENAI_API_ENDPOINT = os.getenv('OPENAI_API_ENDPOINT', 'https://api.openai.com/v1/chat/completions')
DEFAULT_MODEL = os.getenv('DEFAULT_MODEL', 'claude-3-5-sonnet-20240620')

# Default languages from environment
DEFAULT_SOURCE_LANGUAGE = os.getenv('DEFAULT_SOURCE_LANGUAGE', 'English')
DEFAULT_TARGET_LANGUAGE = os.getenv('DEFAULT_TARGET_LANGUAGE', 'Vietnamese')

# Generation parameters
TEMPERATURE = _env_float('TEMPERATURE', 0.3)
MAX_OUTPUT_TOKENS = _env_int('MAX_OUTPUT_TOKENS', 4096)
REQUEST_TIMEOUT = _env_int('REQUEST_TIMEOUT', 300)

# Rate limiting and retries
RATE_LIMIT_PER_MINUTE = _env_float('RATE_LIMIT_PER_MINUTE', 50)
RATE_LIMIT_BURST = _env_int('RATE_LIMIT_BURST', 10)
MAX_TRANSLATION_ATTEMPTS = _env_int('MAX_TRANSLATION_ATTEMPTS', 3)
RETRY_BASE_DELAY_SECONDS = _env_float('RETRY_BASE_DELAY_SECONDS', 1.0)
RATE_LIMIT_BACKOFF_MULTIPLIER = _env_float('RATE_LIMIT_BACKOFF_MULTIPLIER', 10.0)

# Response cache
CACHE_TTL_SECONDS = _env_float('CACHE_TTL_SECONDS', 15 * 60)

# Batching
# 'chars' counts characters of the unit HTML, 'tokens' uses the word based token estimate
BATCH_SIZE_MODE = os.getenv('BATCH_SIZE_MODE', 'chars')
MAX_BATCH_CHARS = _env_int('MAX_BATCH_CHARS', 4000)
MAX_BATCH_TOKENS = _env_int('MAX_BATCH_TOKENS', 1500)
# Overrides both ceilings when set
MAX_BATCH_SIZE = _env_int('MAX_BATCH_SIZE', 0) or None
TOKENS_PER_WORD = _env_float('TOKENS_PER_WORD', 1.33)
TOKEN_REFRESH_INTERVAL = _env_int('TOKEN_REFRESH_INTERVAL', 5)

# Prompting
PROMPT_PRESET = os.getenv('PROMPT_PRESET', 'general')
TRANSLATION_GUIDELINES = os.getenv('TRANSLATION_GUIDELINES', '')
SYSTEM_PROMPT = os.getenv('SYSTEM_PROMPT', '')

# Side files (usage metadata, audit log, debug dumps)
STATE_DIR = os.getenv('STATE_DIR', '.epubtrans')

# Debug mode (reload after .env is loaded)
DEBUG_MODE = os.getenv('DEBUG_MODE', 'false').lower() == 'true'

if DEBUG_MODE or _debug_mode:
    _config_logger.setLevel(logging.DEBUG)
    _config_logger.debug("LOADED CONFIGURATION VALUES:")
    _config_logger.debug(f"   LLM_PROVIDER: {LLM_PROVIDER}")
    _config_logger.debug(f"   DEFAULT_MODEL: {DEFAULT_MODEL}")
    _config_logger.debug(f"   ANTHROPIC_API_KEY: {'***' + ANTHROPIC_API_KEY[-4:] if ANTHROPIC_API_KEY else '(not set)'}")
    _config_logger.debug(f"   OPENAI_API_KEY: {'***' + OPENAI_API_KEY[-4:] if OPENAI_API_KEY else '(not set)'}")
    _config_logger.debug(f"   RATE_LIMIT: {RATE_LIMIT_PER_MINUTE}/min burst {RATE_LIMIT_BURST}")
    _config_logger.debug(f"   BATCH_SIZE_MODE: {BATCH_SIZE_MODE}")
    _config_logger.debug(f"   STATE_DIR: {STATE_DIR}")

# EPUB structure
CONTAINER_FILE_PATH = "META-INF/container.xml"
XHTML_MEDIA_TYPE = "application/xhtml+xml"
NAMESPACES = {
    'container': 'urn:oasis:names:tc:opendocument:xmlns:container',
    'opf': 'http://www.idpf.org/2007/opf',
    'dc': 'http://purl.org/dc/elements/1.1/',
    'xhtml': 'http://www.w3.org/1999/xhtml',
}

# Attributes persisted in content documents
CONTENT_ID_KEY = "content-id"
TRANSLATION_ID_KEY = "translation-id"
TRANSLATION_BY_ID_KEY = "translated-by"
TRANSLATION_LANG_KEY = "translation-lang"


@dataclass
class TranslationConfig:
    """Configuration for the translate command"""

    source_language: str = DEFAULT_SOURCE_LANGUAGE
    target_language: str = DEFAULT_TARGET_LANGUAGE
    model: str = DEFAULT_MODEL

    # LLM Provider settings
    llm_provider: str = LLM_PROVIDER
    anthropic_api_key: str = ANTHROPIC_API_KEY
    anthropic_api_endpoint: str = ANTHROPIC_API_ENDPOINT
    openai_api_key: str = OPENAI_API_KEY
    openai_api_endpoint: str = OPENAI_API_ENDPOINT
    temperature: float = TEMPERATURE
    max_output_tokens: int = MAX_OUTPUT_TOKENS
    timeout: int = REQUEST_TIMEOUT

    # Rate limiting / retry / cache
    requests_per_minute: float = RATE_LIMIT_PER_MINUTE
    burst: int = RATE_LIMIT_BURST
    max_attempts: int = MAX_TRANSLATION_ATTEMPTS
    retry_base_delay: float = RETRY_BASE_DELAY_SECONDS
    rate_limit_backoff_multiplier: float = RATE_LIMIT_BACKOFF_MULTIPLIER
    cache_ttl: float = CACHE_TTL_SECONDS

    # Batching
    batch_size_mode: str = BATCH_SIZE_MODE
    max_batch_size: Optional[int] = MAX_BATCH_SIZE
    tokens_per_word: float = TOKENS_PER_WORD
    token_refresh_interval: int = TOKEN_REFRESH_INTERVAL

    # Prompting
    prompt_preset: str = PROMPT_PRESET
    guidelines: str = TRANSLATION_GUIDELINES
    system_prompt: str = SYSTEM_PROMPT

    state_dir: str = STATE_DIR
    enable_colors: bool = True

    def __post_init__(self):
        """Validate configuration."""
        # Imported here to keep config importable without the core package
        from epubtrans.core.adapters.exceptions import ConfigurationError

        if self.batch_size_mode not in ('chars', 'tokens'):
            raise ConfigurationError(f"batch_size_mode must be 'chars' or 'tokens', got {self.batch_size_mode!r}")
        if self.max_batch_size is None:
            self.max_batch_size = MAX_BATCH_TOKENS if self.batch_size_mode == 'tokens' else MAX_BATCH_CHARS
        if self.max_batch_size < 1:
            raise ConfigurationError("max_batch_size must be >= 1")
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be >= 1")
        if self.requests_per_minute <= 0 or self.burst < 1:
            raise ConfigurationError("rate limit must be positive with a burst of at least 1")
        if self.llm_provider not in ('anthropic', 'openai'):
            raise ConfigurationError(f"Unknown LLM provider: {self.llm_provider}")

    @property
    def api_key(self) -> str:
        if self.llm_provider == 'openai':
            return self.openai_api_key
        return self.anthropic_api_key

    @classmethod
    def from_cli_args(cls, args) -> 'TranslationConfig':
        """Create config from CLI arguments"""
        guidelines = TRANSLATION_GUIDELINES
        guidelines_file = getattr(args, 'guidelines', None)
        if guidelines_file:
            guidelines = Path(guidelines_file).read_text(encoding='utf-8')

        return cls(
            source_language=args.source,
            target_language=args.target,
            model=args.model,
            llm_provider=getattr(args, 'provider', LLM_PROVIDER),
            batch_size_mode=getattr(args, 'batch_mode', BATCH_SIZE_MODE),
            max_batch_size=getattr(args, 'max_batch_size', None) or MAX_BATCH_SIZE,
            prompt_preset=getattr(args, 'prompt_preset', PROMPT_PRESET),
            guidelines=guidelines,
            enable_colors=not getattr(args, 'no_color', False),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for logging (API keys masked)"""
        return {
            'source_language': self.source_language,
            'target_language': self.target_language,
            'model': self.model,
            'llm_provider': self.llm_provider,
            'api_key': '***' + self.api_key[-4:] if self.api_key else '(not set)',
            'requests_per_minute': self.requests_per_minute,
            'burst': self.burst,
            'max_attempts': self.max_attempts,
            'batch_size_mode': self.batch_size_mode,
            'max_batch_size': self.max_batch_size,
            'prompt_preset': self.prompt_preset,
        }
