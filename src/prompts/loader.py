"""
Markdown prompt templates with YAML frontmatter.

Each template lives at ``prompts/<group>/<name>.md``. The frontmatter
declares a version, a short description and the variables the body needs:

    ---
    version: v1
    description: What the prompt asks for
    requires:
      - tag_name
    ---
    Body rendered with Jinja2, e.g. {{ tag_name }}
"""

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, StrictUndefined

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent

_FRONTMATTER = re.compile(r"\A---\s*\n(?P<meta>.*?)\n---\s*\n(?P<body>.*)\Z", re.DOTALL)
_ENV = Environment(undefined=StrictUndefined, autoescape=False)


@dataclass(frozen=True)
class PromptTemplate:
    prompt_id: str
    body: str
    version: str = "v1"
    description: str = ""
    requires: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def parse(cls, prompt_id: str, text: str) -> "PromptTemplate":
        match = _FRONTMATTER.match(text)
        if match is None:
            return cls(prompt_id, text.strip())

        try:
            meta: dict[str, Any] = yaml.safe_load(match.group("meta")) or {}
        except yaml.YAMLError as e:
            logger.warning(f"Ignoring unreadable frontmatter in prompt '{prompt_id}': {e}")
            meta = {}

        return cls(
            prompt_id=prompt_id,
            body=match.group("body").strip(),
            version=str(meta.get("version", "v1")),
            description=meta.get("description", ""),
            requires=tuple(meta.get("requires") or ()),
        )

    def render(self, **variables: Any) -> str:
        missing = [name for name in self.requires if name not in variables]
        if missing:
            raise ValueError(f"Missing required vars for prompt '{self.prompt_id}': {missing}")
        return _ENV.from_string(self.body).render(**variables)


def get_prompt_path(prompt_id: str) -> Path:
    return PROMPTS_DIR / f"{prompt_id}.md"


@lru_cache(maxsize=32)
def get_prompt(prompt_id: str) -> PromptTemplate:
    path = get_prompt_path(prompt_id)
    if not path.is_file():
        raise FileNotFoundError(f"Prompt file not found: {path}")
    template = PromptTemplate.parse(prompt_id, path.read_text(encoding="utf-8"))
    logger.debug(f"Loaded prompt '{prompt_id}' ({template.version})")
    return template


def load_prompt(prompt_id: str, **variables: Any) -> str:
    return get_prompt(prompt_id).render(**variables)


def reload_prompts() -> None:
    get_prompt.cache_clear()
