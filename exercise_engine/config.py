from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

DEFAULTS = {
    "llm_provider": "ollama",
    "llm_model": "qwen3:8b",
    "ollama_url": "http://localhost:11434",
    "llm_thinking": False,
    "llm_temperature": 0.7,
    "modules_dir": "modules",
    "vocab_db_path": "vocabulary.db",
    "vocab_files": [],
    "generation_retries": 2,
    "structured_repairs": 2,
    "default_max_errors": 1,
    "default_difficulty": "intermediate",
    "picker_strategy": "random",
    "target_language": "German",
    "source_language": "English",
}


@dataclass
class Settings:
    llm_provider: str = DEFAULTS["llm_provider"]
    llm_model: str = DEFAULTS["llm_model"]
    ollama_url: str = DEFAULTS["ollama_url"]
    llm_thinking: bool = DEFAULTS["llm_thinking"]
    llm_temperature: float = DEFAULTS["llm_temperature"]
    modules_dir: str = DEFAULTS["modules_dir"]
    vocab_db_path: str = DEFAULTS["vocab_db_path"]
    vocab_files: list[str] = field(default_factory=lambda: list(DEFAULTS["vocab_files"]))
    generation_retries: int = DEFAULTS["generation_retries"]
    structured_repairs: int = DEFAULTS["structured_repairs"]
    default_max_errors: int = DEFAULTS["default_max_errors"]
    default_difficulty: str = DEFAULTS["default_difficulty"]
    picker_strategy: str = DEFAULTS["picker_strategy"]
    target_language: str = DEFAULTS["target_language"]
    source_language: str = DEFAULTS["source_language"]

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def modules_full_path(self) -> Path:
        return self.project_root / self.modules_dir

    @property
    def vocab_db_full_path(self) -> Path:
        return self.project_root / self.vocab_db_path

    def resolved_vocab_files(self) -> list[Path]:
        root = self.project_root
        return [root / f for f in self.vocab_files]

    def to_dict(self) -> dict:
        return {
            "llm_provider": self.llm_provider,
            "llm_model": self.llm_model,
            "ollama_url": self.ollama_url,
            "llm_thinking": self.llm_thinking,
            "llm_temperature": self.llm_temperature,
            "modules_dir": self.modules_dir,
            "vocab_db_path": self.vocab_db_path,
            "vocab_files": self.vocab_files,
            "generation_retries": self.generation_retries,
            "structured_repairs": self.structured_repairs,
            "default_max_errors": self.default_max_errors,
            "default_difficulty": self.default_difficulty,
            "picker_strategy": self.picker_strategy,
            "target_language": self.target_language,
            "source_language": self.source_language,
        }


def load_settings() -> Settings:
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
        known = {f.name for f in Settings.__dataclass_fields__.values()}
        filtered = {k: v for k, v in raw.items() if k in known}
        return Settings(**filtered)
    return Settings()


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")
