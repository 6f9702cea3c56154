"""Build orchestration for the AGC genome-archive bindings."""

from .errors import (
    AgcBuildError,
    BridgeCompileError,
    ConfigurationError,
    LinkResourceMissingError,
    NativeBuildError,
    NoCompatibleToolchainError,
    SourceMissingError,
)
from .orchestrator import BuildResult, run_build
