"""
Configuration for the Boris chat server.

Runtime settings come from the environment (optionally via a ``.env`` file).
The model catalogue and the per-model sampling table are static data; the
sequencer receives the table at construction instead of reading it from here.
"""

import os
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional, Sequence

from .utils import normalize_base_url

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "qwen3:latest"
DEFAULT_TIMEOUT = 30.0
MAX_STEPS = 5

SYSTEM_PROMPT = (
    "You are a helpful assistant and friend named Boris. You were created by Kevin. "
    "Keep answers concise and focus on practical guidance. Boris enjoys helping humans "
    "and sees its role as an intelligent and kind assistant to the people. "
    "Don't use emojis.\n\n"
    "When you use tools, explain what you found in a natural, conversational way."
)


class ModelInfo(NamedTuple):
    """Entry of the model picker."""

    name: str
    value: str
    supports_tools: bool = True


class ModelOptions(NamedTuple):
    """Sampling options sent to the backend under ``options``."""

    temperature: float
    top_p: float
    top_k: int
    min_p: Optional[float] = None

    def to_wire(self) -> dict:
        options = {
            "temperature": self.temperature,
            "top_p": self.top_p,
            "top_k": self.top_k,
        }
        if self.min_p is not None:
            options["min_p"] = self.min_p
        return options


MODELS = (
    ModelInfo("Qwen 3 8b", "qwen3:latest"),
    ModelInfo("Llama 3.2 Latest", "llama3.2:latest"),
    ModelInfo("Llama 3.1 8B", "llama3.1:8b"),
    ModelInfo("Phi-4 Mini", "phi4-mini:latest"),
    ModelInfo("Mistral 7B", "mistral:7b"),
    ModelInfo("Qwen 3 Coder", "qwen3-coder:latest"),
    ModelInfo("Qwen 3 1.7B", "qwen3:1.7b"),
    ModelInfo("Deepseek R1 8b", "deepseek-r1:8b", supports_tools=False),
)

_QWEN = ModelOptions(temperature=0.7, top_p=0.8, top_k=20, min_p=0)
_LLAMA = ModelOptions(temperature=0.7, top_p=0.9, top_k=40)

FALLBACK_OPTIONS = ModelOptions(temperature=0.7, top_p=0.8, top_k=20, min_p=0)

MODEL_CONFIGS: Mapping[str, ModelOptions] = MappingProxyType(
    {
        "qwen3:latest": _QWEN,
        "qwen3:4b": _QWEN,
        "qwen3-coder:latest": _QWEN,
        "qwen3:1.7b": _QWEN,
        "llama3.2:latest": _LLAMA,
        "llama3.1:8b": _LLAMA,
        "phi4-mini:latest": ModelOptions(temperature=0.7, top_p=0.8, top_k=20),
    }
)


def get_model_options(
    model: str, configs: Mapping[str, ModelOptions] = MODEL_CONFIGS
) -> ModelOptions:
    """Look up sampling options for a model, falling back to the universal default."""
    return configs.get(model, FALLBACK_OPTIONS)


def model_supports_tools(model: str, models: Sequence[ModelInfo] = MODELS) -> bool:
    """Models missing from the catalogue are assumed to support tools."""
    for info in models:
        if info.value == model:
            return info.supports_tools
    return True


@dataclass(frozen=True)
class Settings:
    base_url: str = DEFAULT_BASE_URL
    default_model: str = DEFAULT_MODEL
    request_timeout: float = DEFAULT_TIMEOUT
    max_steps: int = MAX_STEPS


def load_settings() -> Settings:
    """Read settings from the environment."""
    timeout = os.getenv("BORIS_REQUEST_TIMEOUT")
    return Settings(
        base_url=normalize_base_url(os.getenv("OLLAMA_BASE_URL") or DEFAULT_BASE_URL),
        default_model=os.getenv("BORIS_DEFAULT_MODEL") or DEFAULT_MODEL,
        request_timeout=float(timeout) if timeout else DEFAULT_TIMEOUT,
    )
