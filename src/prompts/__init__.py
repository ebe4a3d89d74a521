"""Prompt templates for tag generation, explanations and chat."""

from prompts.loader import PromptTemplate, get_prompt, get_prompt_path, load_prompt, reload_prompts

__all__ = ["PromptTemplate", "get_prompt", "get_prompt_path", "load_prompt", "reload_prompts"]
