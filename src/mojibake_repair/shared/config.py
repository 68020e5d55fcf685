"""Configuration for the mojibake repair pipeline.

The pipeline configuration is an immutable value created once per run and passed
explicitly to every component that needs it; nothing reads encoding names from
process-wide state.
"""

import json
from dataclasses import asdict, dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

DEFAULT_INPUT_ENCODING = "utf-8"
DEFAULT_MIDDLE_ENCODING = "windows-1252"
DEFAULT_ORIGIN_ENCODING = "gbk"
DEFAULT_OUTPUT_ENCODING = "utf-8"

DEFAULT_CHUNK_SIZE = 4096
MIN_CHUNK_SIZE = 2
DEFAULT_MAX_CARRY_SIZE = 64 * 1024


class FailurePolicy(Enum):
    """What the stream driver does when a chunk cannot be handled cleanly."""

    CONTINUE = "continue"   # Record a diagnostic and make best-effort progress
    ABORT = "abort"         # Raise and stop the run


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigValidationError(ConfigError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, field_name: Optional[str] = None,
                 suggestions: Optional[List[str]] = None):
        super().__init__(message)
        self.field_name = field_name
        self.suggestions = suggestions or []


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable configuration for one conversion run.

    Attributes:
        input_encoding: Encoding the corrupted stream is currently stored in
        middle_encoding: Single-byte encoding the text was wrongly decoded with
        origin_encoding: Double-byte encoding the text was really written in
        output_encoding: Encoding to write the repaired text in
        chunk_size: Number of bytes read from the source per iteration
        segmentation_policy: Behavior when a chunk has no safe split point
        unsupported_encoding_policy: Behavior when an encoding name is unknown
        enable_decoding_fallback: Locate splits by replaying the chain when the
            byte scan finds none
        max_carry_size: Upper bound on bytes deferred to the next iteration
        track_memory: Sample process memory while converting
        correlation_id: Optional ID attached to every log record of the run
    """

    input_encoding: str = DEFAULT_INPUT_ENCODING
    middle_encoding: str = DEFAULT_MIDDLE_ENCODING
    origin_encoding: str = DEFAULT_ORIGIN_ENCODING
    output_encoding: str = DEFAULT_OUTPUT_ENCODING
    chunk_size: int = DEFAULT_CHUNK_SIZE
    segmentation_policy: FailurePolicy = FailurePolicy.CONTINUE
    unsupported_encoding_policy: FailurePolicy = FailurePolicy.CONTINUE
    enable_decoding_fallback: bool = True
    max_carry_size: int = DEFAULT_MAX_CARRY_SIZE
    track_memory: bool = False
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate the configuration."""
        for field_name in self.encoding_fields():
            value = getattr(self, field_name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigValidationError(
                    f"{field_name} must be a non-empty encoding name",
                    field_name=field_name,
                )
        if isinstance(self.chunk_size, bool) or not isinstance(self.chunk_size, int):
            raise ConfigValidationError(
                "chunk_size must be an integer", field_name="chunk_size"
            )
        if self.chunk_size < MIN_CHUNK_SIZE:
            raise ConfigValidationError(
                f"chunk_size must be >= {MIN_CHUNK_SIZE}, got {self.chunk_size}",
                field_name="chunk_size",
                suggestions=[f"Use the default of {DEFAULT_CHUNK_SIZE} bytes"],
            )
        if self.max_carry_size < self.chunk_size:
            raise ConfigValidationError(
                f"max_carry_size ({self.max_carry_size}) must be >= "
                f"chunk_size ({self.chunk_size})",
                field_name="max_carry_size",
                suggestions=["Increase max_carry_size", "Reduce chunk_size"],
            )
        for field_name in ("segmentation_policy", "unsupported_encoding_policy"):
            if not isinstance(getattr(self, field_name), FailurePolicy):
                raise ConfigValidationError(
                    f"{field_name} must be a FailurePolicy",
                    field_name=field_name,
                )

    @staticmethod
    def encoding_fields() -> List[str]:
        """Names of the four encoding fields, in chain order."""
        return ["input_encoding", "middle_encoding", "origin_encoding", "output_encoding"]

    @property
    def encodings(self) -> Dict[str, str]:
        """Mapping of chain stage to encoding name."""
        return {
            "input": self.input_encoding,
            "middle": self.middle_encoding,
            "origin": self.origin_encoding,
            "output": self.output_encoding,
        }

    def override(self, **kwargs: Any) -> "PipelineConfig":
        """Create a new configuration with specific overrides.

        ``None`` values are ignored so that unset CLI options can be passed
        straight through.

        Example:
            >>> config = PipelineConfig().override(chunk_size=256)
            >>> config.chunk_size
            256
        """
        changes = {key: value for key, value in kwargs.items() if value is not None}
        unknown = set(changes) - set(self.__dataclass_fields__)
        if unknown:
            raise ConfigValidationError(
                f"Unknown configuration fields: {', '.join(sorted(unknown))}"
            )
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary format."""
        result = asdict(self)
        for key, value in result.items():
            if isinstance(value, Enum):
                result[key] = value.value
        return result

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        """Create configuration from dictionary.

        Enum fields accept either the value (``"abort"``) or the member name
        (``"ABORT"``). Unknown keys are rejected.
        """
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigValidationError(
                f"Unknown configuration fields: {', '.join(sorted(unknown))}"
            )

        values = dict(data)
        for field_name in ("segmentation_policy", "unsupported_encoding_policy"):
            if field_name in values and isinstance(values[field_name], str):
                values[field_name] = _parse_policy(values[field_name], field_name)
        return cls(**values)

    @classmethod
    def from_json(cls, json_str: str) -> "PipelineConfig":
        """Create configuration from JSON string."""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(f"Invalid JSON configuration: {e}") from e
        if not isinstance(data, dict):
            raise ConfigValidationError("JSON configuration must be an object")
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "PipelineConfig":
        """Load configuration from a JSON file."""
        config_path = Path(path)
        try:
            content = config_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Could not read config file {config_path}: {e}") from e
        return cls.from_json(content)

    @classmethod
    def windows_1252(cls) -> "PipelineConfig":
        """UTF-8 text that went GBK -> Windows-1252 -> UTF-8 (the default chain)."""
        return cls()

    @classmethod
    def latin_1(cls) -> "PipelineConfig":
        """UTF-8 text that went GBK -> ISO-8859-1 -> UTF-8."""
        return cls(middle_encoding="iso-8859-1")

    @classmethod
    def utf16(cls, byte_order: Optional[str] = None) -> "PipelineConfig":
        """UTF-16 input, byte order ``"le"``, ``"be"`` or taken from the BOM."""
        if byte_order is None:
            name = "utf-16"
        elif byte_order.lower() in ("le", "be"):
            name = f"utf-16-{byte_order.lower()}"
        else:
            raise ConfigValidationError(
                f"byte_order must be 'le', 'be' or None, got {byte_order!r}",
                field_name="input_encoding",
            )
        return cls(input_encoding=name)


PRESETS = {
    "windows-1252": PipelineConfig.windows_1252,
    "latin-1": PipelineConfig.latin_1,
}


def _parse_policy(value: str, field_name: str) -> FailurePolicy:
    normalized = value.strip().lower()
    for policy in FailurePolicy:
        if normalized in (policy.value, policy.name.lower()):
            return policy
    raise ConfigValidationError(
        f"{field_name} must be one of "
        f"{[policy.value for policy in FailurePolicy]}, got {value!r}",
        field_name=field_name,
    )
