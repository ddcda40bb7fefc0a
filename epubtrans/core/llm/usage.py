"""
Usage metadata and request audit log.

Both live in the state directory and are diagnostics only: every read or
write failure is logged and swallowed so that it can never interrupt a
translation run or touch the book's content files.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Any

import aiofiles

logger = logging.getLogger(__name__)

METADATA_FILENAME = "translator_metadata.json"
AUDIT_LOG_FILENAME = "translator.log"
MAX_PROMPT_EXAMPLES = 5
PROMPT_EXAMPLE_LENGTH = 100


@dataclass
class UsageMetadata:
    """Aggregated provider usage across runs."""
    total_calls: int = 0
    last_used: Optional[str] = None
    model_usage: Dict[str, int] = field(default_factory=dict)
    prompt_examples: List[str] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def record(self, model: str, content: str, input_tokens: int, output_tokens: int) -> None:
        self.total_calls += 1
        self.last_used = datetime.now().isoformat()
        self.model_usage[model] = self.model_usage.get(model, 0) + 1
        if len(self.prompt_examples) < MAX_PROMPT_EXAMPLES:
            self.prompt_examples.append(content[:PROMPT_EXAMPLE_LENGTH])
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UsageMetadata':
        return cls(
            total_calls=int(data.get('total_calls', 0)),
            last_used=data.get('last_used'),
            model_usage=dict(data.get('model_usage', {})),
            prompt_examples=list(data.get('prompt_examples', []))[:MAX_PROMPT_EXAMPLES],
            input_tokens=int(data.get('input_tokens', 0)),
            output_tokens=int(data.get('output_tokens', 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['total_tokens'] = self.total_tokens
        return data


class UsageTracker:
    """Persists ``UsageMetadata`` and appends audit entries under ``state_dir``.

    Pass ``state_dir=None`` to keep everything in memory (tests, dry runs).
    """

    def __init__(self, state_dir: Optional[str] = None):
        self.state_dir = Path(state_dir) if state_dir else None
        self.metadata = UsageMetadata()
        # Serializes writers of the metadata file and the audit log
        self._lock = asyncio.Lock()

    @property
    def metadata_path(self) -> Optional[Path]:
        return self.state_dir / METADATA_FILENAME if self.state_dir else None

    @property
    def audit_log_path(self) -> Optional[Path]:
        return self.state_dir / AUDIT_LOG_FILENAME if self.state_dir else None

    async def load(self) -> None:
        """Load previous metadata. A missing or unreadable file starts fresh."""
        path = self.metadata_path
        if path is None or not path.exists():
            return
        try:
            async with aiofiles.open(path, 'r', encoding='utf-8') as f:
                self.metadata = UsageMetadata.from_dict(json.loads(await f.read()))
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Could not read usage metadata %s: %s", path, e)

    async def save(self) -> None:
        path = self.metadata_path
        if path is None:
            return
        async with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(path, 'w', encoding='utf-8') as f:
                    await f.write(json.dumps(self.metadata.to_dict(), indent=2, ensure_ascii=False))
            except OSError as e:
                logger.warning("Could not write usage metadata %s: %s", path, e)

    async def record_success(self, model: str, content: str,
                             input_tokens: int, output_tokens: int) -> None:
        self.metadata.record(model, content, input_tokens, output_tokens)
        await self.save()

    async def audit(self, model: str, system_prompt: str, content: str,
                    response: Optional[str] = None, error: Optional[str] = None) -> None:
        """Append one JSON line describing a provider request."""
        path = self.audit_log_path
        if path is None:
            return
        entry = {
            'timestamp': datetime.now().isoformat(),
            'model': model,
            'system_prompt': system_prompt,
            'content': content,
        }
        if response is not None:
            entry['response'] = response
        if error is not None:
            entry['error'] = error
        async with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(path, 'a', encoding='utf-8') as f:
                    await f.write(json.dumps(entry, ensure_ascii=False) + "\n")
            except OSError as e:
                logger.warning("Could not append to audit log %s: %s", path, e)
